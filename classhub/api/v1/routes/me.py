"""Learner dashboard: my courses, progress and calendar."""

from datetime import date
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, Query

from classhub.dependencies.auth import get_current_user, require_instructor
from classhub.initializers.firestore import get_db
from classhub.models.calendar import CalendarEvent, CalendarWeek
from classhub.models.course import Course
from classhub.models.enrollment import Enrollment, MyCourse, ProgressEventRequest
from classhub.models.user import User
from classhub.services.calendar_service import CalendarService
from classhub.services.course_service import CourseService
from classhub.services.enrollment_service import EnrollmentService
from classhub.utils.exceptions import ValidationError
from classhub.utils.timing import utcnow

router = APIRouter()


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone '{name}'.") from e


@router.get("/my-courses", response_model=list[MyCourse])
def get_my_courses(
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Get every course the current user is enrolled in.

    Each entry carries progress, the next class and the classes after it.
    A course that fails to load comes back with ``error`` set.
    """
    return EnrollmentService(db).get_my_courses(current_user.id)


@router.post("/my-courses/{course_id}/progress", response_model=Enrollment)
def record_progress(
    course_id: str,
    body: ProgressEventRequest,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Record a completed lesson or an attended class.

    Sending the same event twice has no further effect.

    Raises:
        403: Enrollment was cancelled
        404: Not enrolled in the course
    """
    return EnrollmentService(db).record_progress(current_user.id, course_id, body.event)


@router.get("/calendar", response_model=CalendarWeek)
def get_calendar_week(
    week_of: date | None = None,
    tz: str = "UTC",
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Get the current user's classes for one Sunday-based week.

    Args:
        week_of: Any date inside the wanted week (defaults to today)
        tz: IANA timezone deciding which day a class falls on
    """
    zone = _zone(tz)
    reference_date = week_of or utcnow().astimezone(zone).date()
    return CalendarService(db).week_for_user(current_user.id, reference_date, zone)


@router.get("/calendar/upcoming", response_model=list[CalendarEvent])
def get_upcoming_events(
    limit: int = Query(10, ge=1, le=100),
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get the next classes across all of the current user's courses."""
    return CalendarService(db).upcoming_for_user(current_user.id, utcnow(), limit)


@router.get("/teaching", response_model=list[Course])
def get_teaching_courses(
    limit: int = Query(100, ge=1, le=500),
    db=Depends(get_db),
    current_user: User = Depends(require_instructor),
):
    """Get the courses the current user teaches."""
    return CourseService(db).get_courses_by_instructor(current_user.id, limit=limit)
