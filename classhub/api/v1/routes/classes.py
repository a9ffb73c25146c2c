"""Scheduled class endpoints for instructors and learners."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from classhub.dependencies.auth import get_current_user, require_instructor
from classhub.initializers.firestore import get_db
from classhub.models.scheduled_class import (
    ClassCancel,
    ClassView,
    JoinInfo,
    ScheduledClass,
    ScheduledClassCreate,
    ScheduledClassUpdate,
)
from classhub.models.user import User
from classhub.services.class_status import class_view
from classhub.services.course_service import CourseService
from classhub.services.enrollment_service import EnrollmentService
from classhub.services.schedule_service import ScheduleService
from classhub.utils.timing import utcnow

router = APIRouter()


def _managed_schedule(db, class_id: str, current_user: User) -> ScheduleService:
    """Schedule service for a class the current user is allowed to change."""
    course_service = CourseService(db)
    schedule_service = ScheduleService(db, course_service)
    scheduled_class = schedule_service.get_class(class_id)
    course_service.ensure_can_manage(
        course_service.get_course(scheduled_class.course_id), current_user
    )
    return schedule_service


@router.post("", response_model=ScheduledClass, status_code=status.HTTP_201_CREATED)
def create_class(
    class_data: ScheduledClassCreate,
    db=Depends(get_db),
    current_user: User = Depends(require_instructor),
):
    """
    Schedule a live class in one of the current user's courses.

    Either ``end_time`` or ``duration`` must be given; the other is derived.

    Raises:
        403: Not the course instructor
        404: Course not found
        422: Invalid title or timing
    """
    course_service = CourseService(db)
    course_service.ensure_can_manage(course_service.get_course(class_data.course_id), current_user)

    # Instructor is always the authenticated user
    class_data.instructor_id = current_user.id
    class_data.instructor_name = current_user.name

    return ScheduleService(db, course_service).create_class(class_data)


@router.get("/teaching", response_model=list[ClassView])
def list_teaching_classes(
    from_time: datetime | None = Query(None, alias="from"),
    limit: int = Query(100, ge=1, le=500),
    db=Depends(get_db),
    current_user: User = Depends(require_instructor),
):
    """Upcoming classes across all courses the current user teaches."""
    now = utcnow()
    classes = ScheduleService(db).list_instructor_classes(
        current_user.id, from_time or now, limit=limit
    )
    return [class_view(scheduled_class, now) for scheduled_class in classes]


@router.get("/{class_id}", response_model=ClassView)
def get_class(class_id: str, db=Depends(get_db)):
    """
    Get a class together with its effective status and whether it can be joined now.

    Raises:
        404: Class not found
    """
    return class_view(ScheduleService(db).get_class(class_id), utcnow())


@router.patch("/{class_id}", response_model=ScheduledClass)
def update_class(
    class_id: str,
    class_update: ScheduledClassUpdate,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Reschedule, change the meeting link or move a class through its lifecycle.

    Send ``expected_version`` to reject the change if someone else edited the
    class in the meantime.

    Raises:
        403: Not the course instructor
        404: Class not found
        409: Invalid status transition, terminal class, or stale version
        422: Invalid timing
    """
    return _managed_schedule(db, class_id, current_user).update_class(class_id, class_update)


@router.post("/{class_id}/cancel", response_model=ScheduledClass)
def cancel_class(
    class_id: str,
    cancel_data: ClassCancel,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Cancel a scheduled class, keeping it in the history."""
    return _managed_schedule(db, class_id, current_user).cancel_class(
        class_id, cancel_data.reason
    )


@router.delete("/{class_id}")
def delete_class(
    class_id: str,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Delete a class that never took place.

    Raises:
        409: The class is live, completed, or has booked seats
    """
    return _managed_schedule(db, class_id, current_user).delete_class(class_id)


@router.post("/{class_id}/join", response_model=JoinInfo)
def join_class(
    class_id: str,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Get the meeting link of a class the current user is enrolled in.

    Joining counts as attending the class.

    Raises:
        403: Not enrolled in the class's course
        409: Too early, no meeting link yet, or the class is over
    """
    return EnrollmentService(db).join_class(current_user.id, class_id)


@router.post("/{class_id}/seats", response_model=ScheduledClass)
def book_seat(
    class_id: str,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Book a seat in a class. Booking twice is a no-op.

    Raises:
        403: Not enrolled in the class's course
        409: Class is full or no longer open
    """
    return EnrollmentService(db).book_class_seat(current_user.id, class_id)


@router.delete("/{class_id}/seats", response_model=ScheduledClass)
def release_seat(
    class_id: str,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Give up the current user's seat in a class."""
    return EnrollmentService(db).release_class_seat(current_user.id, class_id)
