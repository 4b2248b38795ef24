from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List
from . import aggregation, cause_models, cause_schemas, donation_models, models
from .auth import require_user
from .database import get_db

router = APIRouter(prefix="/api/v1/causes", tags=["Causes"])


@router.get("", response_model=List[cause_schemas.Cause])
def list_causes(db: Session = Depends(get_db)):
    return db.query(cause_models.Cause).order_by(cause_models.Cause.name).all()


@router.post("", response_model=cause_schemas.Cause, status_code=201)
def create_cause(
    payload: cause_schemas.CauseCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_user),
):
    """Add a cause (names are unique, case-insensitive)"""
    name = payload.name.strip()
    existing = db.query(cause_models.Cause).filter(
        func.lower(cause_models.Cause.name) == name.lower()
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Cause already exists")

    cause = cause_models.Cause(
        name=name,
        description=payload.description,
        tags=[t.strip() for t in payload.tags if t.strip()],
        website_url=str(payload.website_url) if payload.website_url else None,
        user_id=user.id,
    )
    db.add(cause)
    db.commit()
    db.refresh(cause)
    return cause


@router.get("/stats", response_model=List[cause_schemas.CauseStats])
def cause_stats(db: Session = Depends(get_db)):
    """Fundraising numbers per cause, biggest first"""
    stats = aggregation.cause_stats(db.query(donation_models.Donation).all())
    causes = {c.name.lower(): c for c in db.query(cause_models.Cause).all()}

    result = []
    # causes with no donations yet are listed with zeros
    for key in sorted(set(causes) | set(stats)):
        s = stats.get(key, {'total_raised': 0.0, 'donation_count': 0, 'unique_donors': 0, 'avg_donation': 0.0})
        cause = causes.get(key)
        result.append(cause_schemas.CauseStats(
            name=cause.name if cause else key,
            description=cause.description if cause else None,
            **s,
        ))
    result.sort(key=lambda c: c.total_raised, reverse=True)
    return result
