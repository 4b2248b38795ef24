"""
Live donation dashboard session.

A `DonationDashboard` owns the running totals for one viewer: it takes a full
snapshot, subscribes to the donation feed from the snapshot's cursor, and
folds each inserted donation into the totals. When the feed drops it waits
with exponential backoff, takes a fresh snapshot (which repairs anything
missed while disconnected) and subscribes again.

`HttpDonationSource` talks to this API over HTTP (httpx): the snapshot is a
plain listing, the feed is the Server-Sent Events endpoint.
"""
import asyncio
import datetime
import json
import logging
from collections import deque
from typing import Any, AsyncIterator, Callable, Deque, Dict, List, Optional, Protocol

import httpx

from . import aggregation
from .aggregation import Totals
from .errors import FeedError

logger = logging.getLogger(__name__)

RECENT_LIMIT = 10


class DonationSource(Protocol):
    async def fetch_rows(self, cause: Optional[str] = None) -> List[Dict[str, Any]]:
        ...

    def events(self, after: int, cause: Optional[str] = None) -> AsyncIterator[Dict[str, Any]]:
        ...


def backoff_delay(attempt: int, base_delay: float = 0.5, max_delay: float = 30.0) -> float:
    """Delay before retry number `attempt` (1-based): base, 2*base, 4*base, ... capped."""
    return min(base_delay * (2 ** (attempt - 1)), max_delay)


class HttpDonationSource:
    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None,
                 token: Optional[str] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip('/')
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = client or httpx.AsyncClient(headers=headers, timeout=timeout)
        self.timeout = timeout

    async def fetch_rows(self, cause: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {"cause": cause} if cause else None
        try:
            resp = await self.client.get(f"{self.base_url}/api/v1/donations", params=params)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise FeedError(f"donation snapshot failed: {e}") from e

    async def events(self, after: int, cause: Optional[str] = None) -> AsyncIterator[Dict[str, Any]]:
        params: Dict[str, Any] = {"after": after}
        if cause:
            params["cause"] = cause
        # no read timeout: the server sends keepalive comments while idle
        timeout = httpx.Timeout(self.timeout, read=None)
        try:
            async with self.client.stream("GET", f"{self.base_url}/api/v1/donations/stream",
                                          params=params, timeout=timeout) as resp:
                resp.raise_for_status()
                data_lines: List[str] = []
                async for line in resp.aiter_lines():
                    if line.startswith("data:"):
                        data_lines.append(line[5:].strip())
                    elif line == "" and data_lines:
                        try:
                            event = json.loads("\n".join(data_lines))
                        except ValueError as e:
                            raise FeedError("donation stream sent invalid JSON") from e
                        data_lines = []
                        yield event
        except httpx.HTTPError as e:
            raise FeedError(f"donation stream failed: {e}") from e

    async def aclose(self):
        await self.client.aclose()


class DonationDashboard:
    def __init__(
        self,
        source: DonationSource,
        cause: Optional[str] = None,
        on_update: Optional[Callable[[Totals, Optional[Dict[str, Any]]], None]] = None,
        max_retries: int = 5,
        base_delay: float = 0.5,
        max_delay: float = 30.0,
        clock: Callable[[], datetime.datetime] = aggregation.utcnow,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        self.source = source
        self.cause = cause
        self.on_update = on_update
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.clock = clock
        self._sleep = sleep
        self.totals: Optional[Totals] = None
        self.recent: Deque[Dict[str, Any]] = deque(maxlen=RECENT_LIMIT)
        self.reconnects = 0
        self._task: Optional[asyncio.Task] = None
        self._stopped = False

    async def refresh(self) -> Totals:
        """Take a full snapshot, replacing the current totals."""
        rows = await self.source.fetch_rows(self.cause)
        self.totals = aggregation.snapshot(rows, now=self.clock(), cause=self.cause)
        newest = sorted((r for r in rows if isinstance(r, dict) and isinstance(r.get('id'), int)),
                        key=lambda r: r['id'], reverse=True)
        self.recent.clear()
        self.recent.extend(newest[:RECENT_LIMIT])
        if self.totals.rejected:
            logger.warning("snapshot rejected %d malformed donation row(s)", len(self.totals.rejected))
        self._notify(None)
        return self.totals

    def handle_event(self, event: Dict[str, Any]) -> Totals:
        before = self.totals
        self.totals = aggregation.apply(event, self.totals)
        # skipped, rejected and other-cause events leave the count alone
        if self.totals.count != before.count:
            self.recent.appendleft(event)
            self._notify(event)
        return self.totals

    def _notify(self, event):
        if self.on_update is None:
            return
        try:
            self.on_update(self.totals, event)
        except Exception:
            logger.exception("dashboard update callback failed")

    async def run(self) -> None:
        """Snapshot, subscribe, apply; reconnect with backoff until stopped."""
        attempt = 0
        while not self._stopped:
            try:
                await self.refresh()
                async for event in self.source.events(after=self.totals.cursor, cause=self.cause):
                    attempt = 0
                    self.handle_event(event)
                    if self._stopped:
                        return
                if self._stopped:
                    return
                raise FeedError("donation stream closed by server")
            except FeedError as e:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error("donation feed unavailable after %d attempts: %s", self.max_retries, e)
                    raise
                delay = backoff_delay(attempt, self.base_delay, self.max_delay)
                logger.warning("donation feed dropped (%s), re-syncing in %.1fs (attempt %d/%d)",
                               e, delay, attempt, self.max_retries)
                self.reconnects += 1
                await self._sleep(delay)

    def start(self) -> asyncio.Task:
        self._stopped = False
        self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        """Tear down the subscription; events still in flight are dropped."""
        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
