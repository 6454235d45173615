from datetime import datetime, timezone
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_datetime(value: Any) -> Optional[datetime]:
    """Convert Firestore timestamps, epoch millis and ISO strings to aware datetimes"""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if hasattr(value, 'datetime'):
        return to_datetime(value.datetime)
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return to_datetime(datetime.fromisoformat(value.replace('Z', '+00:00')))
        except ValueError:
            return None
    return None
