"""
In-process realtime feed of donation inserts.

Write paths call `feed.publish(donation)` after their transaction commits.
Subscribers are plain callbacks; the SSE endpoint bridges them into an
asyncio queue per connected client (see `event_stream`).
"""
import asyncio
import datetime
import json
import logging
import threading
from decimal import Decimal
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Mapping, Optional

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

EVENT_NAME = 'donation'


def serialize_donation(row: Any) -> Dict[str, Any]:
    """JSON-ready dict for a Donation ORM row (or an already serialized dict)."""
    if isinstance(row, Mapping):
        return dict(row)
    created_at = row.created_at
    if isinstance(created_at, datetime.datetime) and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=datetime.timezone.utc)
    amount = row.amount
    return {
        'id': row.id,
        'donor_name': row.donor_name,
        'amount': float(amount) if isinstance(amount, Decimal) else amount,
        'cause': row.cause,
        'payment_method': row.payment_method,
        'user_id': row.user_id,
        'order_id': getattr(row, 'order_id', None),
        'created_at': created_at.isoformat() if isinstance(created_at, datetime.datetime) else created_at,
    }


class Subscription:
    def __init__(self, feed: "DonationFeed", callback: Callable[[Dict[str, Any]], None], cause: Optional[str] = None):
        self.feed = feed
        self.callback = callback
        self.cause = cause.strip().lower() if cause else None

    def wants(self, payload: Dict[str, Any]) -> bool:
        return self.cause is None or str(payload.get('cause', '')).lower() == self.cause

    def close(self):
        self.feed.unsubscribe(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class DonationFeed:
    """Thread-safe fan-out of inserted donations to subscribers, in publish order."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: List[Subscription] = []

    def subscribe(self, callback: Callable[[Dict[str, Any]], None], cause: Optional[str] = None) -> Subscription:
        sub = Subscription(self, callback, cause)
        with self._lock:
            self._subscriptions.append(sub)
        logger.debug("feed subscriber added (%d active)", self.subscriber_count)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            if sub in self._subscriptions:
                self._subscriptions.remove(sub)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def publish(self, donation: Any) -> int:
        """Deliver one inserted donation; returns the number of subscribers reached."""
        payload = serialize_donation(donation)
        with self._lock:
            subs = list(self._subscriptions)
        delivered = 0
        for sub in subs:
            if not sub.wants(payload):
                continue
            try:
                sub.callback(payload)
                delivered += 1
            except Exception:
                # a broken subscriber must not keep the others from hearing about the insert
                logger.exception("feed subscriber failed for donation %s", payload.get('id'))
        return delivered


feed = DonationFeed()


def format_sse(payload: Dict[str, Any], event: str = EVENT_NAME) -> str:
    return f"id: {payload['id']}\nevent: {event}\ndata: {json.dumps(payload)}\n\n"


async def event_stream(
    source: DonationFeed,
    replay: Optional[Callable[[int, Optional[str]], List[Dict[str, Any]]]] = None,
    after: int = 0,
    cause: Optional[str] = None,
    keepalive: float = 15.0,
    is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
) -> AsyncIterator[str]:
    """
    Server-Sent Events for donation inserts with id > `after`.

    Subscribes first, then replays committed rows newer than `after` (via the
    blocking `replay` callable, run in a worker thread), then streams live
    inserts. Rows delivered by the replay are not sent twice.
    """
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def enqueue(payload):
        if not loop.is_closed():
            loop.call_soon_threadsafe(queue.put_nowait, payload)

    sub = source.subscribe(enqueue, cause=cause)
    replayed = set()
    try:
        yield "retry: 3000\n\n"
        if replay is not None:
            rows = await run_in_threadpool(replay, after, cause)
            for payload in rows:
                if payload['id'] <= after or payload['id'] in replayed:
                    continue
                replayed.add(payload['id'])
                yield format_sse(payload)

        while True:
            if is_disconnected is not None and await is_disconnected():
                logger.debug("feed client disconnected")
                break
            try:
                payload = await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            if payload['id'] <= after or payload['id'] in replayed:
                continue
            yield format_sse(payload)
    finally:
        sub.close()
