"""ISO-8601 duration formatting for activation schedules."""

from __future__ import annotations

from datetime import timedelta

from azpim.domain.exceptions import ValidationError


def format_duration(duration: timedelta | int) -> str:
    """Format a duration as ``PT{h}H{m}M{s}S``, omitting zero components.

    Hours are not rolled up into days, so one day formats as ``PT24H``.

    Args:
        duration: A timedelta or a number of seconds. Fractional seconds
            are truncated.

    Returns:
        ISO-8601 duration string.

    Raises:
        ValidationError: If the duration is zero or negative.

    Example:
        >>> format_duration(3661)
        'PT1H1M1S'
        >>> format_duration(timedelta(hours=8))
        'PT8H'
    """
    seconds = int(duration.total_seconds()) if isinstance(duration, timedelta) else int(duration)
    if seconds <= 0:
        raise ValidationError("duration must be greater than zero", seconds=seconds)

    hours, remainder = divmod(seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    result = "PT"
    if hours:
        result += f"{hours}H"
    if minutes:
        result += f"{minutes}M"
    if seconds:
        result += f"{seconds}S"
    return result
