"""Calendar projection of a learner's scheduled classes.

``project``, ``bucket_by_week`` and ``upcoming`` are pure: no store access,
no clock reads, same input gives the same output. ``CalendarService`` loads
the input from Firestore and hands it to them.
"""

from collections.abc import Iterable
from datetime import date, datetime, timedelta, timezone, tzinfo
from itertools import islice
import logging

from fastapi import HTTPException

from classhub.models.calendar import CalendarDay, CalendarEvent, CalendarWeek, CourseSchedule
from classhub.services.enrollment_service import EnrollmentService
from classhub.utils.timing import ensure_utc, week_start


logger = logging.getLogger(__name__)


def _event_key(event: CalendarEvent):
    return (event.start_time, event.course_id, event.id)


def project(enrolled_courses: Iterable[CourseSchedule]) -> list[CalendarEvent]:
    events = [
        CalendarEvent(
            id=scheduled_class.id,
            title=scheduled_class.title,
            course_id=entry.course.id,
            course_title=entry.course.title,
            instructor_name=scheduled_class.instructor_name or entry.course.instructor_name,
            start_time=scheduled_class.start_time,
            end_time=scheduled_class.end_time,
            status=scheduled_class.status,
            meeting_url=scheduled_class.meeting_url,
            platform=scheduled_class.platform,
        )
        for entry in enrolled_courses
        for scheduled_class in entry.scheduled_classes
    ]
    return sorted(events, key=_event_key)


def week_dates(reference_date: date) -> list[date]:
    """The seven dates, Sunday first, of the week containing ``reference_date``."""
    if isinstance(reference_date, datetime):
        reference_date = reference_date.date()
    first = week_start(reference_date)
    return [first + timedelta(days=offset) for offset in range(7)]


def bucket_by_week(
    events: Iterable[CalendarEvent], reference_date: date, tz: tzinfo = timezone.utc
) -> dict[int, list[CalendarEvent]]:
    """Group events by weekday (0 = Sunday) for the week of ``reference_date``.

    An event lands on the day its start falls on in ``tz``; events outside
    that week are dropped. Every weekday key is present.
    """
    dates = week_dates(reference_date)
    index_of = {day: index for index, day in enumerate(dates)}
    buckets: dict[int, list[CalendarEvent]] = {index: [] for index in range(7)}

    for event in sorted(events, key=_event_key):
        local_day = event.start_time.astimezone(tz).date()
        if local_day in index_of:
            buckets[index_of[local_day]].append(event)
    return buckets


def upcoming(events: Iterable[CalendarEvent], now: datetime, limit: int) -> list[CalendarEvent]:
    now = ensure_utc(now)
    ahead = (event for event in sorted(events, key=_event_key) if event.start_time > now)
    return list(islice(ahead, max(limit, 0)))


class CalendarService:
    def __init__(self, db, enrollment_service=None):
        self.db = db
        self.enrollment_service = enrollment_service or EnrollmentService(db)

    def load_course_schedules(self, user_id: str) -> list[CourseSchedule]:
        """Every enrolled course with all its classes; unreadable courses are skipped."""
        enrollment_service = self.enrollment_service
        schedules = []
        for enrollment in enrollment_service.get_enrollments_by_user(user_id):
            try:
                course = enrollment_service.course_service.get_course(enrollment.course_id)
                classes = enrollment_service.schedule_service.list_classes(course.id)
            except HTTPException as e:
                logger.warning(
                    f"Leaving course '{enrollment.course_id}' out of the calendar of "
                    f"user '{user_id}': {e.detail}"
                )
                continue
            schedules.append(CourseSchedule(course=course, scheduled_classes=classes))
        return schedules

    def events_for_user(self, user_id: str) -> list[CalendarEvent]:
        return project(self.load_course_schedules(user_id))

    def week_for_user(
        self, user_id: str, reference_date: date, tz: tzinfo = timezone.utc
    ) -> CalendarWeek:
        buckets = bucket_by_week(self.events_for_user(user_id), reference_date, tz)
        days = [
            CalendarDay(weekday=index, date=day, events=buckets[index])
            for index, day in enumerate(week_dates(reference_date))
        ]
        return CalendarWeek(
            week_start=days[0].date,
            days=days,
            total_events=sum(len(day.events) for day in days),
        )

    def upcoming_for_user(self, user_id: str, now: datetime, limit: int) -> list[CalendarEvent]:
        return upcoming(self.events_for_user(user_id), now, limit)
