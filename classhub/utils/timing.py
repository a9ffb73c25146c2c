from datetime import date, datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_timing(
    start_time: datetime, end_time: datetime | None, duration: int | None
) -> tuple[datetime, datetime, int]:
    """Derive the missing half of (end_time, duration) and check they agree.

    Raises:
        ValueError: when neither is given, the window is empty or negative,
            or an explicit end does not match start + duration.
    """
    if end_time is None and duration is None:
        raise ValueError("Either end_time or duration is required")
    if duration is not None and duration <= 0:
        raise ValueError("duration must be a positive number of minutes")

    if end_time is None:
        end_time = start_time + timedelta(minutes=duration)

    window = end_time - start_time
    if window <= timedelta(0):
        raise ValueError("end_time must be after start_time")

    if duration is None:
        if window % timedelta(minutes=1):
            raise ValueError("Class length must be a whole number of minutes")
        duration = int(window // timedelta(minutes=1))
    elif window != timedelta(minutes=duration):
        raise ValueError("end_time does not match start_time + duration")

    return start_time, end_time, duration


def sunday_index(day: date) -> int:
    """Weekday index with Sunday as 0, as used by the calendar views."""
    return (day.weekday() + 1) % 7


def week_start(day: date) -> date:
    """The Sunday that starts the week containing ``day``."""
    return day - timedelta(days=sunday_index(day))
