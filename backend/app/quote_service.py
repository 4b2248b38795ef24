"""Runs one quote request through the configured provider and writes its audit row."""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from . import quote_models
from .pressmaster import QuoteProvider
from .quote_schemas import QuoteRequestIn, QuoteResponse

logger = logging.getLogger(__name__)


def record_request(db: Session, *, user_id: Optional[int], payload: QuoteRequestIn, mode: str, status: str,
                   response: Optional[QuoteResponse] = None, error_message: Optional[str] = None) -> Optional[int]:
    """Best effort: a failed audit insert is logged and swallowed. Returns the row id."""
    try:
        row = quote_models.QuoteRequest(
            user_id=user_id,
            donation_id=payload.donationId,
            type='quote',
            mode=mode,
            status=status,
            request_body=payload.model_dump(mode='json'),
            response_body=response.model_dump(mode='json', exclude_none=True) if response else None,
            error_message=error_message,
        )
        db.add(row)
        db.commit()
        return row.id
    except Exception:
        db.rollback()
        logger.exception("Failed to write pressmaster request log (donation=%s)", payload.donationId)
        return None


def process_quote(db: Session, provider: QuoteProvider, payload: QuoteRequestIn,
                  user_id: Optional[int] = None) -> QuoteResponse:
    """Get a quote (stub or live) and log the attempt.

    Live failures come back as stub-shaped quotes with `fallback_reason` and are
    logged with status "error"; unexpected provider exceptions are logged and re-raised.
    """
    body = payload.model_dump(mode='json')
    logger.info("Pressmaster quote requested (mode=%s user=%s donation=%s)", provider.mode, user_id, payload.donationId)
    try:
        response = provider.get_quote(body)
    except Exception as e:
        record_request(db, user_id=user_id, payload=payload, mode=provider.mode, status='error',
                       error_message=str(e) or e.__class__.__name__)
        raise

    if response.fallback_reason:
        status = 'error'
    else:
        status = 'success'
    record_request(db, user_id=user_id, payload=payload, mode=provider.mode, status=status,
                   response=response, error_message=response.fallback_reason)
    return response
