# utils/timeutil.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC "now"; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def hours_between(start: datetime | None, end: datetime) -> float | None:
    if start is None:
        return None
    return round((end - start).total_seconds() / 3600.0, 2)
