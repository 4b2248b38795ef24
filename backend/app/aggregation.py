"""
Donation aggregation: rolling totals per cause and per time window.

`snapshot()` reduces a full donation listing into an immutable `Totals`,
`apply()` folds one newly inserted donation into an existing `Totals` and
returns a new one. Both are pure; the session that owns the totals decides
where they live (see dashboard.py).

Time windows (today / last 7 days / last 60 seconds) are anchored at the
moment the snapshot was taken and are not re-evaluated as the clock moves.
Donations delivered later by the feed fall into a window when they were
created at or after that window's start.

The snapshot remembers the highest donation id it saw (`cursor`). Feed events
with an id at or below the cursor are already part of the snapshot and are
ignored, as are events whose id was applied before.
"""
import datetime
import logging
from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import MalformedDonationError

logger = logging.getLogger(__name__)

ZERO = Decimal('0')
CENT = Decimal('0.01')
WEEK = datetime.timedelta(days=7)
MINUTE = datetime.timedelta(seconds=60)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def as_utc(dt: datetime.datetime) -> datetime.datetime:
    # the database hands back naive datetimes that were stored as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


class DonationEvent(BaseModel):
    """A donation row as far as aggregation is concerned"""
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0)
    cause: str = Field(..., min_length=1)
    created_at: datetime.datetime
    donor_name: Optional[str] = None
    user_id: Optional[int] = None

    @field_validator('cause')
    @classmethod
    def normalise_cause(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError('cause must not be blank')
        return v

    @field_validator('created_at')
    @classmethod
    def normalise_created_at(cls, v: datetime.datetime) -> datetime.datetime:
        return as_utc(v)


def parse_row(row: Any) -> DonationEvent:
    """Validate a donation dict / ORM row. Raises MalformedDonationError."""
    if isinstance(row, DonationEvent):
        return row
    try:
        return DonationEvent.model_validate(row, from_attributes=not isinstance(row, Mapping))
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise MalformedDonationError(f"donation {_row_id(row)!r} rejected: invalid {fields}") from e


def _row_id(row: Any):
    if isinstance(row, Mapping):
        return row.get('id')
    return getattr(row, 'id', None)


class Totals(BaseModel):
    """Immutable aggregate of the donations seen so far"""
    model_config = ConfigDict(frozen=True)

    as_of: datetime.datetime
    cause_filter: Optional[str] = None
    total: Decimal = ZERO
    by_cause: Dict[str, Decimal] = Field(default_factory=dict)
    today: Decimal = ZERO
    this_week: Decimal = ZERO
    last_minute: Decimal = ZERO
    count: int = 0
    cursor: int = 0
    seen_ids: FrozenSet[int] = frozenset()
    rejected: Tuple[Union[int, str, None], ...] = ()

    @property
    def today_start(self) -> datetime.datetime:
        return self.as_of.replace(hour=0, minute=0, second=0, microsecond=0)

    @property
    def week_start(self) -> datetime.datetime:
        return self.as_of - WEEK

    @property
    def minute_start(self) -> datetime.datetime:
        return self.as_of - MINUTE

    def for_cause(self, cause: str) -> Decimal:
        return self.by_cause.get(cause.strip().lower(), ZERO)


def _matches(cause_filter: Optional[str], event: DonationEvent) -> bool:
    return cause_filter is None or event.cause == cause_filter


def snapshot(rows: Iterable[Any], now: Optional[datetime.datetime] = None,
             cause: Optional[str] = None) -> Totals:
    """Reduce a full donation listing into Totals.

    Malformed rows are left out of every sum and reported in `rejected`.
    """
    as_of = as_utc(now) if now else utcnow()
    cause_filter = cause.strip().lower() if cause else None
    base = Totals(as_of=as_of, cause_filter=cause_filter)

    by_cause: Dict[str, Decimal] = defaultdict(lambda: ZERO)
    total = today = week = minute = ZERO
    count = 0
    cursor = 0
    seen = set()
    rejected: List[Any] = []

    for row in rows:
        try:
            event = parse_row(row)
        except MalformedDonationError as e:
            logger.warning("%s", e)
            rejected.append(_row_id(row))
            continue
        if event.id in seen:
            continue
        seen.add(event.id)
        cursor = max(cursor, event.id)
        if not _matches(cause_filter, event):
            continue
        by_cause[event.cause] += event.amount
        total += event.amount
        count += 1
        if event.created_at >= base.today_start:
            today += event.amount
        if event.created_at >= base.week_start:
            week += event.amount
        if event.created_at >= base.minute_start:
            minute += event.amount

    return base.model_copy(update={
        'total': total,
        'by_cause': dict(by_cause),
        'today': today,
        'this_week': week,
        'last_minute': minute,
        'count': count,
        'cursor': cursor,
        'rejected': tuple(rejected),
    })


def apply(event: Any, totals: Totals) -> Totals:
    """Fold one inserted donation into `totals`, returning new Totals.

    Already-counted events (id <= cursor, or applied before) return `totals`
    unchanged. A malformed event is recorded in `rejected`.
    """
    try:
        event = parse_row(event)
    except MalformedDonationError as e:
        logger.warning("%s", e)
        return totals.model_copy(update={'rejected': totals.rejected + (_row_id(event),)})

    if event.id <= totals.cursor or event.id in totals.seen_ids:
        logger.debug("donation %s already counted, skipping", event.id)
        return totals

    seen_ids = totals.seen_ids | {event.id}
    if not _matches(totals.cause_filter, event):
        return totals.model_copy(update={'seen_ids': seen_ids})

    by_cause = dict(totals.by_cause)
    by_cause[event.cause] = by_cause.get(event.cause, ZERO) + event.amount
    update = {
        'seen_ids': seen_ids,
        'by_cause': by_cause,
        'total': totals.total + event.amount,
        'count': totals.count + 1,
    }
    if event.created_at >= totals.today_start:
        update['today'] = totals.today + event.amount
    if event.created_at >= totals.week_start:
        update['this_week'] = totals.this_week + event.amount
    if event.created_at >= totals.minute_start:
        update['last_minute'] = totals.last_minute + event.amount
    return totals.model_copy(update=update)


def round_money(value: Decimal) -> float:
    """Two-decimal rounding for display only"""
    return float(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def to_display(totals: Totals) -> Dict[str, Any]:
    return {
        'total': round_money(totals.total),
        'by_cause': {k: round_money(v) for k, v in sorted(totals.by_cause.items())},
        'today': round_money(totals.today),
        'this_week': round_money(totals.this_week),
        'last_minute': round_money(totals.last_minute),
        'count': totals.count,
        'cursor': totals.cursor,
        'rejected': [r for r in totals.rejected if isinstance(r, int)],
        'as_of': totals.as_of,
    }


def series(rows: Iterable[Any], period: str = 'monthly', limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Per-month ("2025-10") or per-year ("2025") amount / count / distinct causes, oldest first."""
    if period not in ('monthly', 'yearly'):
        raise ValueError(f"unknown period {period!r}")
    buckets: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        try:
            event = parse_row(row)
        except MalformedDonationError as e:
            logger.warning("%s", e)
            continue
        if period == 'monthly':
            key = f"{event.created_at.year}-{event.created_at.month:02d}"
        else:
            key = str(event.created_at.year)
        b = buckets.setdefault(key, {'amount': ZERO, 'donations': 0, 'causes': set()})
        b['amount'] += event.amount
        b['donations'] += 1
        b['causes'].add(event.cause)

    points = [
        {'period': k, 'donations': b['donations'], 'amount': round_money(b['amount']), 'causes': len(b['causes'])}
        for k, b in sorted(buckets.items())
    ]
    if limit:
        points = points[-limit:]
    return points


def cause_stats(rows: Iterable[Any]) -> Dict[str, Dict[str, Any]]:
    """total_raised / donation_count / unique_donors / avg_donation keyed by cause"""
    acc: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        try:
            event = parse_row(row)
        except MalformedDonationError as e:
            logger.warning("%s", e)
            continue
        s = acc.setdefault(event.cause, {'total': ZERO, 'count': 0, 'donors': set()})
        s['total'] += event.amount
        s['count'] += 1
        # anonymous donations are told apart by donor name
        s['donors'].add(event.user_id if event.user_id is not None else f"name:{event.donor_name}")

    return {
        cause: {
            'total_raised': round_money(s['total']),
            'donation_count': s['count'],
            'unique_donors': len(s['donors']),
            'avg_donation': round_money(s['total'] / s['count']),
        }
        for cause, s in acc.items()
    }
