"""
Time helpers. All timestamps written by the service are timezone-aware UTC.
"""

from datetime import datetime, timezone
from typing import Optional, Union


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[Union[datetime, str]]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes read back from stores that drop tz info.

    ISO strings (records that crossed the Redis change feed) are parsed first.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
