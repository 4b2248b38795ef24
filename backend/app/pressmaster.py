"""
Pressmaster print-quote integration.

Two providers share one interface:
- StubQuoteProvider answers with a mock quote and never touches the network.
- LiveQuoteProvider posts to the Pressmaster API with the configured bearer
  token. Any upstream failure (HTTP error, timeout, unusable body) degrades
  to a stub-shaped quote carrying `fallback_reason`.

The provider is chosen once at startup by `build_quote_provider(settings)`.

`PressmasterClient` is the caller-side counterpart: it requests a quote from
this API's `/api/v1/pressmaster/quote` endpoint and raises QuoteError for
anything but a successful answer.
"""
import datetime
import logging
from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError
from requests.exceptions import RequestException, Timeout

from .config import DEFAULT_PRESSMASTER_URL, Settings
from .errors import QuoteError, UpstreamQuoteError
from .quote_schemas import QuoteAmount, QuoteResponse

logger = logging.getLogger(__name__)

MOCK_PRICING = {
    "subtotal": 299.99,
    "shipping": 15.00,
    "tax": 31.50,
    "total": 346.49,
    "currency": "USD",
}
MOCK_DELIVERY = {"min_days": 3, "max_days": 5}
QUOTE_VALIDITY = datetime.timedelta(days=7)
STUB_NOTES = "Using mock data. Add PRESSMASTER_API_KEY to use real API."
FALLBACK_NOTES = "Pressmaster API unavailable; showing an estimated quote. We'll follow up with a confirmed price."


def _turnaround(delivery: Dict[str, Any]) -> str:
    return f"{delivery['min_days']}-{delivery['max_days']} business days"


def build_stub_quote(payload: Dict[str, Any], notes: str = STUB_NOTES,
                     fallback_reason: Optional[str] = None) -> QuoteResponse:
    now = datetime.datetime.now(datetime.timezone.utc)
    return QuoteResponse(
        mock=True,
        quote=QuoteAmount(amount=MOCK_PRICING["total"], currency=MOCK_PRICING["currency"]),
        turnaround=_turnaround(MOCK_DELIVERY),
        notes=notes,
        quote_id=f"MOCK-{int(now.timestamp() * 1000)}",
        status="pending",
        items=[{k: payload.get(k) for k in ("project", "specs", "quantity")}],
        pricing=dict(MOCK_PRICING),
        estimated_delivery=dict(MOCK_DELIVERY),
        created_at=now.isoformat(),
        valid_until=(now + QUOTE_VALIDITY).isoformat(),
        fallback_reason=fallback_reason,
    )


def parse_upstream_quote(data: Dict[str, Any]) -> QuoteResponse:
    """Map a Pressmaster API answer onto QuoteResponse. Raises UpstreamQuoteError if unusable."""
    if not isinstance(data, dict):
        raise UpstreamQuoteError("Pressmaster API returned a non-object body")
    if isinstance(data.get("data"), dict):
        data = data["data"]
    quote = data.get("quote") if isinstance(data.get("quote"), dict) else {}
    pricing = data.get("pricing") if isinstance(data.get("pricing"), dict) else {}
    amount = quote.get("amount", pricing.get("total", data.get("amount")))
    currency = quote.get("currency") or pricing.get("currency") or data.get("currency") or "USD"
    if amount is None:
        raise UpstreamQuoteError("Pressmaster API quote has no amount")

    quote_id = data.get("quote_id") or data.get("id")
    delivery = data.get("estimated_delivery")
    turnaround = data.get("turnaround")
    if not turnaround:
        if isinstance(delivery, dict) and {"min_days", "max_days"} <= delivery.keys():
            turnaround = _turnaround(delivery)
        else:
            turnaround = "TBD"
    try:
        return QuoteResponse(
            mock=False,
            quote=QuoteAmount(amount=amount, currency=currency),
            turnaround=str(turnaround),
            notes=str(data.get("notes") or ""),
            quote_id=str(quote_id) if quote_id is not None else None,
            status=data.get("status"),
            items=data.get("items"),
            pricing=pricing or None,
            estimated_delivery=delivery if isinstance(delivery, dict) else None,
            created_at=data.get("created_at"),
            valid_until=data.get("valid_until"),
        )
    except ValidationError as e:
        raise UpstreamQuoteError(f"Pressmaster API quote is malformed: {e.error_count()} invalid field(s)")


class QuoteProvider:
    mode = "stub"

    def get_quote(self, payload: Dict[str, Any]) -> QuoteResponse:
        raise NotImplementedError


class StubQuoteProvider(QuoteProvider):
    mode = "stub"

    def get_quote(self, payload: Dict[str, Any]) -> QuoteResponse:
        logger.info("No PRESSMASTER_API_KEY configured, returning mock quote")
        return build_stub_quote(payload)


class LiveQuoteProvider(QuoteProvider):
    mode = "live"

    def __init__(self, api_key: str, api_url: str = DEFAULT_PRESSMASTER_URL, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.api_url = api_url
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    def fetch_upstream(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self.session.post(self.api_url, json=payload, timeout=self.timeout)
        except Timeout as e:
            raise UpstreamQuoteError(f"Pressmaster API timed out after {self.timeout}s") from e
        except RequestException as e:
            raise UpstreamQuoteError(f"Pressmaster API unreachable: {e}") from e
        if not resp.ok:
            raise UpstreamQuoteError(f"Pressmaster API error {resp.status_code}: {resp.text[:500]}")
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamQuoteError("Pressmaster API returned invalid JSON") from e

    def get_quote(self, payload: Dict[str, Any]) -> QuoteResponse:
        logger.info("Calling Pressmaster API at %s", self.api_url)
        try:
            return parse_upstream_quote(self.fetch_upstream(payload))
        except UpstreamQuoteError as e:
            logger.warning("Pressmaster live quote failed, falling back to stub: %s", e)
            return build_stub_quote(payload, notes=FALLBACK_NOTES, fallback_reason=str(e))


def build_quote_provider(settings: Settings) -> QuoteProvider:
    if settings.pressmaster_api_key:
        logger.info("Pressmaster quotes in live mode")
        return LiveQuoteProvider(settings.pressmaster_api_key, settings.pressmaster_api_url,
                                 settings.pressmaster_timeout)
    logger.info("Pressmaster quotes in stub mode")
    return StubQuoteProvider()


class PressmasterClient:
    """Requests quotes from the storefront API on behalf of a signed-in user."""

    def __init__(self, base_url: str, token: str, timeout: float = 15.0,
                 session: Optional[requests.Session] = None):
        self.url = base_url.rstrip('/') + "/api/v1/pressmaster/quote"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {token}"})

    def request_quote(self, payload: Dict[str, Any]) -> QuoteResponse:
        try:
            resp = self.session.post(self.url, json=payload, timeout=self.timeout)
        except RequestException as e:
            raise QuoteError(f"Pressmaster quote failed: {e}")
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not resp.ok or not isinstance(data, dict) or not data.get("success"):
            message = data.get("error") if isinstance(data, dict) else None
            raise QuoteError(message or "Pressmaster quote request failed", status_code=resp.status_code)
        try:
            return QuoteResponse.model_validate({k: v for k, v in data.items() if k != "success"})
        except ValidationError:
            raise QuoteError("Pressmaster quote response was malformed", status_code=resp.status_code)
