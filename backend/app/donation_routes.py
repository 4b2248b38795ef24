"""
Donation endpoints: recording, listing, live totals and the realtime feed
"""
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import aggregation, donation_models, donation_schemas, models, order_models
from .auth import get_current_user, require_user
from .automation import donation_committed
from .database import SessionLocal, get_db
from .feed import event_stream, feed, serialize_donation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Donations"])

Donation = donation_models.Donation


class DonationReceipt(donation_schemas.Donation):
    check_drop: bool = False


@router.post('/donations', response_model=DonationReceipt)
def create_donation(
    payload: donation_schemas.DonationCreate,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    user: Optional[models.User] = Depends(get_current_user),
):
    d = Donation(**payload.model_dump(), user_id=user.id if user else None)
    db.add(d)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to record donation")
        raise HTTPException(status_code=503, detail="Failed to process donation. Please try again.")
    db.refresh(d)
    check_drop = donation_committed(d, background_tasks, request.app)
    receipt = DonationReceipt.model_validate(d)
    receipt.check_drop = check_drop
    return receipt


@router.get('/donations', response_model=List[donation_schemas.Donation])
def list_donations(
    cause: Optional[str] = None,
    user_id: Optional[int] = None,
    limit: Optional[int] = Query(None, ge=1, le=100000),
    db: Session = Depends(get_db),
):
    """Newest first. Without a limit the whole table is returned (dashboard snapshots)."""
    q = db.query(Donation)
    if cause:
        q = q.filter(Donation.cause == cause.strip().lower())
    if user_id is not None:
        q = q.filter(Donation.user_id == user_id)
    q = q.order_by(Donation.created_at.desc(), Donation.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


@router.get('/donations/totals', response_model=donation_schemas.DonationTotals)
def donation_totals(cause: Optional[str] = None, db: Session = Depends(get_db)):
    totals = aggregation.snapshot(db.query(Donation).all(), cause=cause)
    return aggregation.to_display(totals)


@router.get('/donations/series', response_model=List[donation_schemas.SeriesPoint])
def donation_series(period: Literal['monthly', 'yearly'] = 'monthly', db: Session = Depends(get_db)):
    rows = db.query(Donation).order_by(Donation.created_at.asc()).all()
    # monthly view shows the last 12 months
    return aggregation.series(rows, period, limit=12 if period == 'monthly' else None)


def replay_donations(after: int, cause: Optional[str] = None) -> List[dict]:
    """Committed donations with id > after, oldest first (runs in a worker thread)"""
    db = SessionLocal()
    try:
        q = db.query(Donation).filter(Donation.id > after)
        if cause:
            q = q.filter(Donation.cause == cause.strip().lower())
        return [serialize_donation(d) for d in q.order_by(Donation.id.asc()).all()]
    finally:
        db.close()


@router.get('/donations/stream')
async def stream_donations(request: Request, after: int = Query(0, ge=0), cause: Optional[str] = None):
    """Server-Sent Events: every donation inserted after `after`, then live inserts"""
    stream = event_stream(
        feed,
        replay=replay_donations,
        after=after,
        cause=cause,
        keepalive=request.app.state.settings.feed_keepalive,
        is_disconnected=request.is_disconnected,
    )
    return StreamingResponse(stream, media_type='text/event-stream',
                             headers={'Cache-Control': 'no-cache', 'X-Accel-Buffering': 'no'})


@router.get('/me/impact', response_model=donation_schemas.ImpactSummary)
def my_impact(db: Session = Depends(get_db), user: models.User = Depends(require_user)):
    """Everything the signed-in user gave, standalone and through orders"""
    donations = db.query(Donation).filter(Donation.user_id == user.id).all()
    stats = aggregation.cause_stats(donations)
    orders_with_donations = db.query(order_models.Order).filter(
        order_models.Order.user_id == user.id,
        order_models.Order.total_donation > 0,
    ).count()
    causes = sorted(
        (donation_schemas.ImpactCause(name=name, total_donated=s['total_raised'], donation_count=s['donation_count'])
         for name, s in stats.items()),
        key=lambda c: c.total_donated,
        reverse=True,
    )
    return donation_schemas.ImpactSummary(
        total_donated=aggregation.round_money(sum((d.amount for d in donations), aggregation.ZERO)),
        causes_supported=len(stats),
        orders_with_donations=orders_with_donations,
        causes=causes,
    )
