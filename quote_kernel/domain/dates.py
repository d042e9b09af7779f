"""
Order-date normalization (``quote_kernel.domain.dates``).

Responsibility
--------------
Turns the loosely typed date a caller supplies (form string, ``date``,
``datetime`` or nothing at all) into the two canonical representations the
procurement records store: a calendar date for the purchase order row and
a midnight-UTC timestamp for item ``ordered_at``/``received_at`` values.

Both representations are produced from ONE parse so they can never
disagree.  Missing or unparseable input falls back to the clock's current
date; callers are never refused for a bad date.

Architecture position
---------------------
**Kernel domain layer** -- pure functions, ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone

from quote_kernel.domain.clock import Clock, SystemClock

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d", "%Y%m%d")


@dataclass(frozen=True)
class NormalizedDate:
    """A calendar date and its midnight-UTC timestamp, from one parse."""

    sql_date: date
    timestamp: datetime

    @classmethod
    def from_date(cls, value: date) -> NormalizedDate:
        return cls(
            sql_date=value,
            timestamp=datetime.combine(value, time.min, tzinfo=timezone.utc),
        )

    @property
    def iso_timestamp(self) -> str:
        return format_utc_timestamp(self.timestamp)


def parse_date_value(value: date | datetime | str | None) -> date | None:
    """Parse ``value`` to a calendar date, or None when it cannot be read.

    Datetimes (and ISO datetime strings) are converted to UTC first, so
    ``"2025-03-09T23:30:00-01:00"`` is the 10th.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        return None
    return ensure_utc(parsed).date()


def normalize_order_date(
    value: date | datetime | str | None,
    clock: Clock | None = None,
) -> NormalizedDate:
    """Normalize a supplied order date, defaulting to today when unusable."""
    parsed = parse_date_value(value)
    if parsed is None:
        parsed = (clock or SystemClock()).today()
    return NormalizedDate.from_date(parsed)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) or convert to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def ensure_utc_or_none(value: datetime | None) -> datetime | None:
    return ensure_utc(value) if value is not None else None


def format_utc_timestamp(value: datetime) -> str:
    """Render as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` (millisecond precision, UTC)."""
    utc = ensure_utc(value)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"
