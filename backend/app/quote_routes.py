"""
Pressmaster quote endpoints.

POST /quote answers with the quote fields at the top level plus
`"success": true`; failures use `{"success": false, "error": ...}` with
401 (no signed-in user), 400 (invalid input, with `details`) or 500.
"""
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from . import models, quote_models, quote_schemas, quote_service
from .auth import require_user, resolve_user
from .database import get_db
from .pressmaster import QuoteProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/pressmaster", tags=["Pressmaster"])


def get_quote_provider(request: Request) -> QuoteProvider:
    return request.app.state.quote_provider


def _error(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})


def validation_details(e: ValidationError) -> List[dict]:
    return [
        {"field": ".".join(str(p) for p in err["loc"]) or "body", "message": err["msg"]}
        for err in e.errors()
    ]


@router.post("/quote")
async def request_quote(
    request: Request,
    db: Session = Depends(get_db),
    provider: QuoteProvider = Depends(get_quote_provider),
):
    # the body is read by hand so that auth is checked before anything is parsed
    user = await run_in_threadpool(resolve_user, db, request)
    if user is None:
        return _error(401, "Unauthorized")

    raw = await request.body()
    try:
        payload = json.loads(raw) if raw else None
    except ValueError:
        return _error(400, "Invalid input", details=[{"field": "body", "message": "Malformed JSON"}])
    if not isinstance(payload, dict):
        return _error(400, "Invalid input", details=[{"field": "body", "message": "Expected a JSON object"}])
    try:
        data = quote_schemas.QuoteRequestIn.model_validate(payload)
    except ValidationError as e:
        return _error(400, "Invalid input", details=validation_details(e))

    try:
        quote = await run_in_threadpool(quote_service.process_quote, db, provider, data, user.id)
    except Exception as e:
        logger.exception("Error in pressmaster quote request")
        return _error(500, str(e) or "Unknown error occurred")

    return {"success": True, **quote.model_dump(mode='json', exclude_none=True)}


@router.get("/requests", response_model=List[quote_schemas.QuoteRequestLog])
def list_requests(
    limit: int = Query(5, ge=1, le=100),
    donation_id: Optional[str] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(require_user),
):
    """The caller's most recent quote requests"""
    q = db.query(quote_models.QuoteRequest).filter(quote_models.QuoteRequest.user_id == user.id)
    if donation_id:
        q = q.filter(quote_models.QuoteRequest.donation_id == donation_id)
    return q.order_by(quote_models.QuoteRequest.created_at.desc(), quote_models.QuoteRequest.id.desc()).limit(limit).all()


@router.get("/mode")
def quote_mode(provider: QuoteProvider = Depends(get_quote_provider)):
    return {"mode": provider.mode}
