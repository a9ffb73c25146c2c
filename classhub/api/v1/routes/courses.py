"""Course endpoints: catalogue, enrollment and the course timetable."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, status

from classhub.dependencies.auth import get_current_user, require_instructor
from classhub.initializers.firestore import get_db
from classhub.models.course import Course, CourseCreate, CourseUpdate, GenerateClassesRequest
from classhub.models.enrollment import Enrollment, EnrollmentCreate
from classhub.models.scheduled_class import ClassView, ScheduledClass
from classhub.models.user import User
from classhub.services.class_status import class_view
from classhub.services.course_service import CourseService
from classhub.services.enrollment_service import EnrollmentService
from classhub.services.schedule_service import ScheduleService
from classhub.utils.exceptions import ValidationError
from classhub.utils.timing import utcnow

router = APIRouter()


@router.post("", response_model=Course, status_code=status.HTTP_201_CREATED)
def create_course(
    course_data: CourseCreate,
    db=Depends(get_db),
    current_user: User = Depends(require_instructor),
):
    """
    Create a course taught by the current user.

    Raises:
        403: Current user is not an instructor
    """
    return CourseService(db).create_course(course_data, current_user)


@router.get("/{course_id}", response_model=Course)
def get_course(course_id: str, db=Depends(get_db)):
    """
    Get a course by ID.

    Raises:
        404: Course not found
    """
    return CourseService(db).get_course(course_id)


@router.patch("/{course_id}", response_model=Course)
def update_course(
    course_id: str,
    course_update: CourseUpdate,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Update a course. Only its instructor (or an admin) may do this.

    Raises:
        403: Not the course instructor
        404: Course not found
    """
    course_service = CourseService(db)
    course_service.ensure_can_manage(course_service.get_course(course_id), current_user)
    return course_service.update_course(course_id, course_update)


@router.post(
    "/{course_id}/enroll", response_model=Enrollment, status_code=status.HTTP_201_CREATED
)
def enroll_in_course(
    course_id: str,
    enrollment_data: EnrollmentCreate,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Enroll the current user in a course.

    Raises:
        402: Paid course without a payment reference
        404: Course not found
        409: Already enrolled, or the course is full
    """
    return EnrollmentService(db).enroll(
        current_user.id, course_id, payment_reference=enrollment_data.payment_reference
    )


@router.delete("/{course_id}/enrollment", response_model=Enrollment)
def cancel_enrollment(
    course_id: str,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Cancel the current user's enrollment and free the seat."""
    return EnrollmentService(db).cancel_enrollment(current_user.id, course_id)


@router.get("/{course_id}/classes", response_model=list[ClassView])
def list_course_classes(
    course_id: str,
    from_time: datetime | None = Query(None, alias="from"),
    db=Depends(get_db),
):
    """
    List a course's classes in start order.

    Args:
        from_time: Only classes starting at or after this instant (``?from=``)
    """
    schedule_service = ScheduleService(db)
    if from_time is None:
        classes = schedule_service.list_classes(course_id)
    else:
        classes = schedule_service.list_upcoming(course_id, from_time)

    now = utcnow()
    return [class_view(scheduled_class, now) for scheduled_class in classes]


@router.post(
    "/{course_id}/classes/generate",
    response_model=list[ScheduledClass],
    status_code=status.HTTP_201_CREATED,
)
def generate_course_classes(
    course_id: str,
    request: GenerateClassesRequest,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create concrete classes from the course's recurring schedule.

    Slots that already have a class are skipped.

    Raises:
        403: Not the course instructor
        422: Course has no schedule
    """
    course_service = CourseService(db)
    course = course_service.get_course(course_id)
    course_service.ensure_can_manage(course, current_user)
    if course.schedule is None:
        raise ValidationError(f"Course '{course.title}' has no recurring schedule.")

    return ScheduleService(db, course_service).generate_from_pattern(
        course_id, course.schedule, request
    )


@router.post("/{course_id}/classes/reconcile", response_model=list[ScheduledClass])
def reconcile_course_classes(
    course_id: str,
    db=Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Persist time-driven status changes (scheduled -> live -> completed)."""
    course_service = CourseService(db)
    course_service.ensure_can_manage(course_service.get_course(course_id), current_user)
    return ScheduleService(db, course_service).reconcile_statuses(course_id)
