"""
Helpers for "HH:MM" schedule times.
"""

import re

MINUTES_IN_DAY = 24 * 60

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_time_to_minutes(value: str | None) -> int | None:
    """
    Parse a 24-hour "HH:MM" string into minutes since midnight.

    Returns None for missing or malformed values.
    """
    if not value:
        return None
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        return None
    hours = int(match.group(1))
    minutes = int(match.group(2))
    if hours > 24 or minutes > 59:
        return None
    return hours * 60 + minutes


def format_minutes(total_minutes: float) -> str:
    """Format minutes since midnight as "HH:MM", wrapping past midnight."""
    normalized = int(round(total_minutes)) % MINUTES_IN_DAY
    return f"{normalized // 60:02d}:{normalized % 60:02d}"


def format_clamped(total_minutes: float) -> str:
    """Format minutes as "HH:MM", clamped to 00:00..23:59."""
    clamped = max(0, min(int(round(total_minutes)), MINUTES_IN_DAY - 1))
    return f"{clamped // 60:02d}:{clamped % 60:02d}"


def format_duration_label(minutes: int) -> str:
    """Human label for a free-time block, e.g. "2h 30m" or "3 hours"."""
    hours, mins = divmod(minutes, 60)
    if mins > 0:
        return f"{hours}h {mins}m"
    return f"{hours} hours"
