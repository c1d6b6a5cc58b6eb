"""Duration formatting and time parsing helpers."""

from datetime import datetime, time, timedelta, timezone

from mtt.errors import InvalidStopTime


def format_duration(duration: timedelta) -> str:
    """Format a duration into a human-readable string.

    Sub-second precision is dropped.

    Args:
        duration: Duration to format

    Returns:
        Formatted string like "1d 2h 5m 3s" or "45m 12s"
    """
    seconds = int(duration.total_seconds())
    if seconds <= 0:
        return "0s"

    days, seconds = divmod(seconds, 86400)
    hours, seconds = divmod(seconds, 3600)
    minutes, secs = divmod(seconds, 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0:
        parts.append(f"{secs}s")

    return " ".join(parts)


def parse_stop_time(text: str, now: datetime) -> datetime:
    """Parse a user-supplied stop time.

    Accepts a full ISO-8601 timestamp or a bare ``HH:MM[:SS]`` time of day,
    which refers to today. Values without a UTC offset are read as local
    time.

    Args:
        text: The value given on the command line
        now: Current time, used to determine "today"

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        InvalidStopTime: If the value can't be parsed
    """
    text = text.strip()
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        try:
            time_of_day = time.fromisoformat(text)
        except ValueError:
            raise InvalidStopTime(
                message=f"Invalid stop time '{text}', use HH:MM or YYYY-MM-DDTHH:MM:SS"
            ) from None
        local_now = now.astimezone()
        parsed = datetime.combine(
            local_now.date(),
            time_of_day.replace(tzinfo=None),
            tzinfo=time_of_day.tzinfo or local_now.tzinfo,
        )

    if parsed.tzinfo is None:
        parsed = parsed.astimezone()

    return parsed.astimezone(timezone.utc)
