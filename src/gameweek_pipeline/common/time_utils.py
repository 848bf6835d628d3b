"""Time utilities for consistent timestamp handling."""

from datetime import UTC, datetime, timedelta, tzinfo


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone.
    """
    return datetime.now(UTC)


def format_iso(dt: datetime) -> str:
    """Format datetime as ISO 8601 string in UTC with a trailing Z.

    Args:
        dt: Datetime to format.

    Returns:
        ISO 8601 formatted string, e.g. "2026-02-10T19:30:00.000Z".
    """
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_kickoff(value: str | datetime) -> datetime:
    """Parse a kickoff timestamp into an aware UTC datetime.

    Accepts ISO 8601 ("2026-02-10T19:30:00Z") and the provider's
    space-separated form ("2026-02-10 19:30:00"). Naive values are UTC.

    Args:
        value: Timestamp string or datetime.

    Returns:
        Aware datetime in UTC.

    Raises:
        ValueError: If the value is not a timestamp string or cannot be parsed.
    """
    if isinstance(value, datetime):
        dt = value
    elif not isinstance(value, str):
        raise ValueError(f"Invalid kickoff: {value!r}")
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def floor_to_bucket(dt: datetime, bucket: timedelta) -> datetime:
    """Round a timestamp down to an epoch-aligned bucket boundary.

    Args:
        dt: Aware datetime.
        bucket: Bucket width.

    Returns:
        Start of the bucket containing dt, in UTC.
    """
    width = int(bucket.total_seconds())
    seconds = int(dt.timestamp())
    return datetime.fromtimestamp(seconds - seconds % width, tz=UTC)


def local_day_bounds(now: datetime, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    """Get the start and end of the calendar day containing now.

    Args:
        now: Aware reference datetime.
        tz: Timezone defining the calendar day. Server-local when None.

    Returns:
        Tuple of (day start inclusive, next day start exclusive).
    """
    local = now.astimezone(tz)
    start = local.replace(hour=0, minute=0, second=0, microsecond=0)
    end = (start + timedelta(days=1)).replace(hour=0, minute=0, second=0, microsecond=0)
    return start, end
