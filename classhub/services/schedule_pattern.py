"""Expansion of a recurring CourseSchedulePattern into concrete class slots."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from classhub.models.course import CourseSchedulePattern
from classhub.utils.timing import sunday_index, week_start


def _matches(pattern: CourseSchedulePattern, day: date, first_week: date) -> bool:
    if pattern.recurrence == "daily":
        return not pattern.days_of_week or sunday_index(day) in pattern.days_of_week

    if sunday_index(day) not in pattern.days_of_week:
        return False
    if pattern.recurrence == "biweekly":
        weeks_since_start = (week_start(day) - first_week).days // 7
        return weeks_since_start % 2 == 0
    return True


def expand_schedule_pattern(pattern: CourseSchedulePattern) -> list[tuple[datetime, datetime]]:
    """Return (start, end) pairs in UTC, in chronological order.

    Times of day are interpreted in the pattern's timezone, so a 18:00 class
    stays at 18:00 local time across DST changes.
    """
    tz = ZoneInfo(pattern.timezone)
    first_week = week_start(pattern.start_date)
    length = timedelta(minutes=pattern.session_duration)

    slots: list[tuple[datetime, datetime]] = []
    day = pattern.start_date
    while day <= pattern.end_date:
        if _matches(pattern, day, first_week):
            start = datetime.combine(day, pattern.start_time_of_day, tzinfo=tz).astimezone(
                timezone.utc
            )
            slots.append((start, start + length))
            if pattern.total_classes is not None and len(slots) >= pattern.total_classes:
                break
        day += timedelta(days=1)

    return slots
