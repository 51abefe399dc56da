import re
import time
from datetime import datetime, timezone

PERMANENT_DURATION = "Permanent"

_DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([smhdw])\s*$", re.IGNORECASE)

_UNIT_SECONDS = {
    "s": 1,
    "m": 60,
    "h": 60 * 60,
    "d": 24 * 60 * 60,
    "w": 7 * 24 * 60 * 60,
}


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


def parse_duration_seconds(value: str | int | None) -> int | None:
    """Parse a short duration label such as ``"30m"``, ``"1h"`` or ``"7d"``.

    Integers are taken as seconds already. Returns None for empty or
    unparseable input so callers can treat it as "no duration".
    """
    if value is None:
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    match = _DURATION_PATTERN.match(value)
    if not match:
        return None
    amount, unit = match.groups()
    return int(amount) * _UNIT_SECONDS[unit.lower()]


def format_duration(seconds: int | None) -> str:
    """
    Convert a duration in seconds to a human-readable string.

    Args:
        seconds: Duration in seconds; 0 or None means permanent.

    Returns:
        str: Human-readable duration string.
    """
    if not seconds:
        return PERMANENT_DURATION
    elif seconds < 60:
        return f"{seconds} secs"
    elif seconds < 3600:
        return f"{seconds // 60} mins"
    elif seconds < 86400:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours != 1 else ''}"
    else:
        days = seconds // 86400
        return f"{days} day{'s' if days != 1 else ''}"


def humanize_timestamp(epoch_ms: int) -> str:
    """Return an epoch-millisecond timestamp as ``YYYY-MM-DD HH:MM:SS UTC``."""
    value = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")
