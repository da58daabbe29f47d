"""
Date and Time utilities

The refresh engine works in integer epoch milliseconds; this module converts
between those and timezone-aware datetimes for logging and API responses.
"""
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import logging
import time

logger = logging.getLogger(__name__)

MS_PER_SECOND = 1000


class TimezoneError(ValueError):
    """Raised when a timezone name is invalid"""
    pass


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return time.time_ns() // 1_000_000


def seconds_to_ms(seconds: float) -> int:
    return int(seconds * MS_PER_SECOND)


def ms_to_datetime(epoch_ms: int) -> datetime:
    """
    Convert epoch milliseconds to a UTC datetime

    Args:
        epoch_ms: Milliseconds since the Unix epoch

    Returns:
        Timezone-aware datetime in UTC
    """
    return datetime.fromtimestamp(epoch_ms / MS_PER_SECOND, tz=timezone.utc)


def resolve_timezone(name: str) -> timezone | ZoneInfo:
    """
    Resolve an IANA timezone name, accepting 'UTC' without tz database lookup

    Raises:
        TimezoneError: If the name is not a known timezone
    """
    if name == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise TimezoneError(
            f"Invalid timezone: {name}. Must be a valid IANA timezone (e.g., 'Asia/Tokyo') or 'UTC'"
        ) from e


def format_epoch_ms(epoch_ms: int | None, target_tz: str = "UTC") -> str | None:
    """
    Render epoch milliseconds as ISO8601 in the target timezone

    Args:
        epoch_ms: Milliseconds since the Unix epoch, or None
        target_tz: Target timezone (IANA format or 'UTC')

    Returns:
        ISO8601 timestamp, or None when epoch_ms is None
    """
    if epoch_ms is None:
        return None
    return ms_to_datetime(epoch_ms).astimezone(resolve_timezone(target_tz)).isoformat()
