"""Date and time helpers."""
from datetime import date, datetime, timezone, timedelta
from typing import Iterator, Optional


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_aware_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (SQLite) as UTC so they compare with aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when expires_at is set and not in the future."""
    if expires_at is None:
        return False
    now = as_aware_utc(now) if now else utcnow()
    return as_aware_utc(expires_at) <= now


def each_day(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def parse_iso_date(value: str) -> date:
    """Parse 'YYYY-MM-DD' (a trailing time part is ignored)."""
    return date.fromisoformat(value[:10])
