"""
"Check drop" automation: a donation of $777 or more requests a print quote
from Pressmaster for the check-drop campaign assets.

The hook runs after the donation (or the order carrying it) has committed,
as a background task with its own database session. Whatever happens to
the quote, the donation stands; the outcome reaches the donor as a
notification.
"""
import logging
from decimal import Decimal
from typing import Any, Callable, Optional

from fastapi import BackgroundTasks, FastAPI
from pydantic import BaseModel

from . import models
from .database import SessionLocal
from .feed import feed
from .pressmaster import QuoteProvider
from .quote_schemas import QuoteRequestIn, QuoteResponse
from . import quote_service

logger = logging.getLogger(__name__)

CHECK_DROP_THRESHOLD = Decimal('777')
CHECK_DROP_PROJECT = 'Print Power Purpose'
CHECK_DROP_SPECS = 'Check-drop campaign assets'


def is_check_drop(amount: Any, threshold: Decimal = CHECK_DROP_THRESHOLD) -> bool:
    return Decimal(str(amount)) >= Decimal(str(threshold))


class DonationRecorded(BaseModel):
    donation_id: int
    amount: Decimal
    cause: str
    user_id: Optional[int] = None
    order_id: Optional[int] = None

    @classmethod
    def from_row(cls, donation) -> "DonationRecorded":
        return cls(donation_id=donation.id, amount=donation.amount, cause=donation.cause,
                   user_id=donation.user_id, order_id=getattr(donation, 'order_id', None))


class CheckDropAutomation:
    def __init__(self, requester: Callable[[dict], QuoteResponse],
                 notifier: Optional[Callable[..., None]] = None,
                 threshold: Decimal = CHECK_DROP_THRESHOLD):
        self.requester = requester
        self.notifier = notifier
        self.threshold = Decimal(str(threshold))

    def quote_payload(self, event: DonationRecorded) -> dict:
        return {
            'project': CHECK_DROP_PROJECT,
            'specs': CHECK_DROP_SPECS,
            'quantity': 1,
            'donationId': str(event.donation_id),
        }

    def handle(self, event: DonationRecorded) -> Optional[QuoteResponse]:
        """Request the quote if the donation qualifies. Never raises."""
        if not is_check_drop(event.amount, self.threshold):
            return None
        logger.info("Check drop triggered by donation %s (%s)", event.donation_id, event.amount)
        try:
            quote = self.requester(self.quote_payload(event))
        except Exception as e:
            logger.warning("Pressmaster quote failed (non-blocking) for donation %s: %s", event.donation_id, e)
            self._notify(event, 'check_drop_failed', 'Note',
                         "Order placed, but Pressmaster quote failed. We'll follow up.")
            return None

        self._notify(event, 'check_drop', f"${self.threshold:,.0f} Check Drop triggered!",
                     f"Pressmaster ({'Stub' if quote.mock else 'Live'}) quote ready.",
                     action_ref=quote.quote_id)
        return quote

    def _notify(self, event, type_, title, body, action_ref=None):
        if self.notifier is None or event.user_id is None:
            return
        try:
            self.notifier(user_id=event.user_id, type=type_, title=title, body=body, action_ref=action_ref)
        except Exception:
            logger.exception("Could not store check-drop notification for donation %s", event.donation_id)


def run_check_drop(event: DonationRecorded, provider: QuoteProvider, threshold: Decimal = CHECK_DROP_THRESHOLD):
    """Background task entry point"""
    db = SessionLocal()
    try:
        def requester(payload):
            return quote_service.process_quote(db, provider, QuoteRequestIn.model_validate(payload),
                                               user_id=event.user_id)

        def notifier(**fields):
            db.add(models.Notification(**fields))
            db.commit()

        CheckDropAutomation(requester, notifier, threshold).handle(event)
    finally:
        db.close()


def donation_committed(donation, background_tasks: BackgroundTasks, app: FastAPI) -> bool:
    """Post-commit hook for a new donation row.

    Publishes the insert to the realtime feed and, for check-drop sized
    donations, schedules the quote automation. Returns whether it was scheduled.
    """
    try:
        feed.publish(donation)
    except Exception:
        logger.exception("Could not publish donation %s to the feed", donation.id)

    threshold = app.state.settings.check_drop_threshold
    if not is_check_drop(donation.amount, threshold):
        return False
    background_tasks.add_task(run_check_drop, DonationRecorded.from_row(donation),
                              app.state.quote_provider, threshold)
    return True
