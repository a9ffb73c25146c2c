from datetime import datetime
import logging
import threading

from fastapi import HTTPException
from google.api_core import exceptions as gcp_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

from classhub.core.config import settings
from classhub.models.course import Course
from classhub.models.enrollment import (
    ClassAttended,
    Enrollment,
    LessonCompleted,
    MyCourse,
    ProgressEvent,
    ProgressSummary,
)
from classhub.models.scheduled_class import TERMINAL_STATUSES, ClassStatus, JoinInfo, ScheduledClass
from classhub.services.class_status import is_joinable, is_open
from classhub.services.course_service import CourseService
from classhub.services.schedule_service import CONFLICT_ERRORS, ScheduleService, sort_classes
from classhub.utils.exceptions import (
    AlreadyEnrolledError,
    ClassNotJoinableError,
    ConflictError,
    NotFoundError,
    PaymentRequiredError,
    PermissionDeniedError,
    SeatLimitError,
    ValidationError,
)
from classhub.utils.firestore_exception import handle_firestore_exceptions
from classhub.utils.subscription import SubscriptionGroup
from classhub.utils.timing import ensure_utc, utcnow


logger = logging.getLogger(__name__)


def compute_progress(
    lessons_completed: int, total_lessons: int, classes_attended: int, total_classes: int
) -> float:
    """Unweighted mean of the lesson and attendance ratios.

    Dimensions with a zero total are left out; each ratio is capped at 1.
    """
    ratios = []
    if total_lessons > 0:
        ratios.append(min(lessons_completed / total_lessons, 1.0))
    if total_classes > 0:
        ratios.append(min(classes_attended / total_classes, 1.0))
    if not ratios:
        return 0.0
    return round(sum(ratios) / len(ratios) * 100, 1)


def summarize_progress(enrollment: Enrollment, course: Course) -> ProgressSummary:
    return ProgressSummary(
        overall_progress=compute_progress(
            enrollment.lessons_completed,
            course.total_lessons,
            enrollment.classes_attended,
            course.total_classes,
        ),
        lessons_completed=enrollment.lessons_completed,
        total_lessons=course.total_lessons,
        classes_attended=enrollment.classes_attended,
        total_classes=course.total_classes,
    )


def build_my_course(
    course: Course, enrollment: Enrollment, classes: list[ScheduledClass], now: datetime
) -> MyCourse:
    """Join one enrollment with its course and schedule as seen at ``now``."""
    open_classes = [c for c in sort_classes(classes) if is_open(c, now)]
    return MyCourse(
        course_id=course.id,
        course=course,
        enrollment=enrollment,
        progress=summarize_progress(enrollment, course),
        next_class=open_classes[0] if open_classes else None,
        upcoming_classes=open_classes[1 : 1 + settings.UPCOMING_CLASSES_LIMIT],
    )


class EnrollmentService:
    def __init__(self, db, course_service=None, schedule_service=None):
        self.db = db
        self.collection = db.collection("enrollments")
        self.course_service = course_service or CourseService(db)
        self.schedule_service = schedule_service or ScheduleService(db, self.course_service)

    def _generate_enrollment_id(self, user_id: str, course_id: str) -> str:
        """Generate composite key for enrollment."""
        return f"{user_id}_{course_id}"

    # ------------------------------------------------------------------
    # Enrollment lifecycle
    # ------------------------------------------------------------------

    @handle_firestore_exceptions(retry=False)
    def enroll(
        self, user_id: str, course_id: str, payment_reference: str | None = None
    ) -> Enrollment:
        """Enroll a learner, reserving a course seat atomically.

        The enrollment document and the course's seat list are committed in
        one batch; the course write is conditional on the course not having
        changed since it was read, so two learners cannot both take the last
        seat. Transient failures are not retried here: the caller decides.
        """
        enrollment_ref = self.collection.document(self._generate_enrollment_id(user_id, course_id))
        course_ref = self.course_service.collection.document(course_id)

        for attempt in range(1, settings.CAS_MAX_ATTEMPTS + 1):
            course_snapshot = course_ref.get()
            if not course_snapshot.exists:
                raise NotFoundError(f"Course with ID '{course_id}' not found.")
            course = CourseService._to_model(course_snapshot)

            existing = enrollment_ref.get()
            if existing.exists and existing.to_dict().get("status") == "active":
                raise AlreadyEnrolledError("You are already enrolled in this course.")

            if not course.is_free and not payment_reference:
                raise PaymentRequiredError(
                    f"Course '{course.title}' requires a completed payment before enrollment."
                )

            if user_id not in course.enrolled_students and course.is_full:
                logger.warning(f"Enrollment rejected: course '{course_id}' is full")
                raise SeatLimitError(f"Course '{course.title}' has no seats left.")

            now = utcnow()
            enrollment_data = Enrollment(
                id=enrollment_ref.id,
                user_id=user_id,
                course_id=course_id,
                payment_reference=payment_reference,
                enrolled_at=now,
                last_activity=now,
                created_at=now,
                updated_at=now,
            ).model_dump()

            seats = course.enrolled_students
            if user_id not in seats:
                seats = [*seats, user_id]

            batch = self.db.batch()
            if existing.exists:
                # re-enrolling after a cancellation reuses the same document
                batch.update(
                    enrollment_ref,
                    enrollment_data,
                    option=self.db.write_option(last_update_time=existing.update_time),
                )
            else:
                batch.create(enrollment_ref, enrollment_data)
            batch.update(
                course_ref,
                {"enrolled_students": seats, "updated_at": now},
                option=self.db.write_option(last_update_time=course_snapshot.update_time),
            )

            try:
                batch.commit()
            except gcp_exceptions.AlreadyExists as e:
                raise AlreadyEnrolledError("You are already enrolled in this course.") from e
            except CONFLICT_ERRORS:
                logger.warning(
                    f"Concurrent enrollment on course '{course_id}' (attempt {attempt}), re-reading"
                )
                continue

            logger.info(f"Enrolled user '{user_id}' in course '{course_id}'")
            return Enrollment(**enrollment_data)

        raise ConflictError("The course is busy right now. Please try enrolling again.")

    @handle_firestore_exceptions
    def cancel_enrollment(self, user_id: str, course_id: str) -> Enrollment:
        enrollment_ref = self.collection.document(self._generate_enrollment_id(user_id, course_id))
        course_ref = self.course_service.collection.document(course_id)

        for attempt in range(1, settings.CAS_MAX_ATTEMPTS + 1):
            enrollment_snapshot = enrollment_ref.get()
            if not enrollment_snapshot.exists:
                raise NotFoundError(
                    f"Enrollment not found for user '{user_id}' in course '{course_id}'."
                )
            enrollment = Enrollment(**enrollment_snapshot.to_dict())
            if not enrollment.is_active:
                self._release_class_seats(user_id, course_id)
                return enrollment

            now = utcnow()
            batch = self.db.batch()
            batch.update(
                enrollment_ref,
                {"status": "cancelled", "updated_at": now},
                option=self.db.write_option(last_update_time=enrollment_snapshot.update_time),
            )
            course_snapshot = course_ref.get()
            if course_snapshot.exists:
                seats = course_snapshot.to_dict().get("enrolled_students", [])
                batch.update(
                    course_ref,
                    {"enrolled_students": [s for s in seats if s != user_id], "updated_at": now},
                    option=self.db.write_option(last_update_time=course_snapshot.update_time),
                )

            try:
                batch.commit()
            except CONFLICT_ERRORS:
                logger.warning(
                    f"Concurrent write while cancelling enrollment '{enrollment_ref.id}' "
                    f"(attempt {attempt}), re-reading"
                )
                continue

            self._release_class_seats(user_id, course_id)
            logger.info(f"Cancelled enrollment of user '{user_id}' in course '{course_id}'")
            return enrollment.model_copy(update={"status": "cancelled", "updated_at": now})

        raise ConflictError("The enrollment is busy right now. Please retry.")

    def _release_class_seats(self, user_id: str, course_id: str) -> None:
        """Give back every seat the learner still holds in open classes of the course."""
        for scheduled_class in self.schedule_service.list_classes(course_id):
            if (
                scheduled_class.status not in TERMINAL_STATUSES
                and user_id in scheduled_class.enrolled_students
            ):
                self.schedule_service.release_seat(scheduled_class.id, user_id)
                logger.info(
                    f"Released seat of user '{user_id}' in class '{scheduled_class.id}' "
                    f"after enrollment cancellation"
                )

    @handle_firestore_exceptions
    def get_enrollment(self, user_id: str, course_id: str) -> Enrollment:
        enrollment_id = self._generate_enrollment_id(user_id, course_id)
        doc = self.collection.document(enrollment_id).get()

        if not doc.exists:
            raise NotFoundError(
                f"Enrollment not found for user '{user_id}' in course '{course_id}'."
            )

        return Enrollment(**doc.to_dict())

    def require_active_enrollment(self, user_id: str, course_id: str) -> Enrollment:
        try:
            enrollment = self.get_enrollment(user_id, course_id)
        except NotFoundError as e:
            raise PermissionDeniedError("You are not enrolled in this course.") from e
        if not enrollment.is_active:
            raise PermissionDeniedError("Your enrollment in this course was cancelled.")
        return enrollment

    @handle_firestore_exceptions
    def get_enrollments_by_user(self, user_id: str, limit: int = 100) -> list[Enrollment]:
        """Active enrollments of a user, most recent first."""
        docs = (
            self.collection.where(filter=FieldFilter("user_id", "==", user_id))
            .where(filter=FieldFilter("status", "==", "active"))
            .limit(limit)
            .get()
        )
        enrollments = [Enrollment(**doc.to_dict()) for doc in docs]
        return sorted(enrollments, key=lambda e: (e.enrolled_at, e.id), reverse=True)

    # ------------------------------------------------------------------
    # My Courses
    # ------------------------------------------------------------------

    def _my_course(
        self, enrollment: Enrollment, now: datetime, classes: list[ScheduledClass] | None = None
    ) -> MyCourse:
        try:
            course = self.course_service.get_course(enrollment.course_id)
            if classes is None:
                classes = self.schedule_service.list_classes(course.id)
            return build_my_course(course, enrollment, classes, now)
        except HTTPException as e:
            logger.warning(
                f"Could not load course '{enrollment.course_id}' for user "
                f"'{enrollment.user_id}': {e.detail}"
            )
            return MyCourse(
                course_id=enrollment.course_id,
                enrollment=enrollment,
                error=f"Could not load this course: {e.detail}",
            )

    def get_my_courses(self, user_id: str, now: datetime | None = None) -> list[MyCourse]:
        """Courses, progress and next classes for one learner.

        A course that fails to load is returned with ``error`` set instead of
        failing the whole list.
        """
        now = ensure_utc(now) if now else utcnow()
        return [self._my_course(e, now) for e in self.get_enrollments_by_user(user_id)]

    def subscribe_my_courses(
        self, user_id: str, on_change, now: datetime | None = None
    ) -> SubscriptionGroup:
        """Live "My Courses": one schedule subscription per enrolled course.

        ``on_change(my_courses)`` fires once every course has reported its
        initial state, then after every schedule change. Release the returned
        group to stop all inner subscriptions.
        """
        group = SubscriptionGroup(f"my_courses:{user_id}")
        enrollments = self.get_enrollments_by_user(user_id)
        order = [e.course_id for e in enrollments]
        rows: dict[str, MyCourse] = {}
        # held while delivering so watch threads hand over lists in build order
        lock = threading.RLock()

        def moment() -> datetime:
            return ensure_utc(now) if now else utcnow()

        def publish(course_id: str, row: MyCourse) -> None:
            with lock:
                rows[course_id] = row
                if len(rows) < len(order):
                    return
                on_change([rows[cid] for cid in order])

        if not enrollments:
            on_change([])
            return group

        try:
            for enrollment in enrollments:
                try:
                    course = self.course_service.get_course(enrollment.course_id)
                except HTTPException:
                    publish(enrollment.course_id, self._my_course(enrollment, moment()))
                    continue

                def handle(classes, enrollment=enrollment, course=course):
                    publish(course.id, build_my_course(course, enrollment, classes, moment()))

                group.add(self.schedule_service.subscribe(course.id, handle))
        except BaseException:
            group.unsubscribe()
            raise

        return group

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    @handle_firestore_exceptions
    def record_progress(self, user_id: str, course_id: str, event: ProgressEvent) -> Enrollment:
        """Apply a lesson-completed or class-attended event exactly once.

        Events are deduplicated by ``event.dedup_key``, which makes the
        operation safe to retry.
        """
        enrollment_ref = self.collection.document(self._generate_enrollment_id(user_id, course_id))
        course = self.course_service.get_course(course_id)

        if isinstance(event, ClassAttended):
            attended = self.schedule_service.get_class(event.class_id)
            if attended.course_id != course_id:
                raise ValidationError(
                    f"Class '{event.class_id}' does not belong to course '{course_id}'."
                )

        for attempt in range(1, settings.CAS_MAX_ATTEMPTS + 1):
            snapshot = enrollment_ref.get()
            if not snapshot.exists:
                raise NotFoundError(
                    f"Enrollment not found for user '{user_id}' in course '{course_id}'."
                )
            enrollment = Enrollment(**snapshot.to_dict())

            if not enrollment.is_active:
                raise PermissionDeniedError("Your enrollment in this course was cancelled.")
            if event.dedup_key in enrollment.processed_event_ids:
                logger.debug(f"Ignoring duplicate progress event '{event.dedup_key}'")
                return enrollment
            if enrollment.completed:
                logger.info(
                    f"Enrollment '{enrollment.id}' already completed; ignoring '{event.dedup_key}'"
                )
                return enrollment

            lessons = enrollment.lessons_completed
            classes = enrollment.classes_attended
            if isinstance(event, LessonCompleted):
                lessons += 1
            else:
                classes += 1
            progress = compute_progress(lessons, course.total_lessons, classes, course.total_classes)
            now = utcnow()
            changes = {
                "lessons_completed": lessons,
                "classes_attended": classes,
                "progress": progress,
                "processed_event_ids": [*enrollment.processed_event_ids, event.dedup_key],
                "last_activity": now,
                "updated_at": now,
            }
            if progress >= 100.0:
                changes["completed_at"] = now

            try:
                enrollment_ref.update(
                    changes, option=self.db.write_option(last_update_time=snapshot.update_time)
                )
            except CONFLICT_ERRORS:
                logger.warning(
                    f"Concurrent progress update on '{enrollment.id}' (attempt {attempt}), re-reading"
                )
                continue

            logger.info(
                f"Recorded {event.kind} for user '{user_id}' in course '{course_id}': "
                f"progress {progress}%"
            )
            return enrollment.model_copy(update=changes)

        raise ConflictError("Progress is being updated concurrently. Please retry.")

    # ------------------------------------------------------------------
    # Live classes
    # ------------------------------------------------------------------

    @handle_firestore_exceptions
    def join_class(self, user_id: str, class_id: str, now: datetime | None = None) -> JoinInfo:
        """Hand out the meeting link and count the learner as attending."""
        now = ensure_utc(now) if now else utcnow()
        scheduled_class = self.schedule_service.get_class(class_id)
        self.require_active_enrollment(user_id, scheduled_class.course_id)

        if scheduled_class.status == ClassStatus.CANCELLED:
            raise ClassNotJoinableError(f"Class '{scheduled_class.title}' was cancelled.")
        if scheduled_class.status == ClassStatus.COMPLETED:
            raise ClassNotJoinableError(f"Class '{scheduled_class.title}' has already ended.")
        if not is_joinable(scheduled_class, now):
            raise ClassNotJoinableError(
                f"Meeting link will be available {settings.JOIN_WINDOW_MINUTES} minutes "
                f"before class starts."
            )
        if not scheduled_class.meeting_url:
            raise ClassNotJoinableError("The instructor has not shared a meeting link yet.")

        self.record_progress(
            user_id, scheduled_class.course_id, ClassAttended(class_id=scheduled_class.id)
        )
        return JoinInfo(
            class_id=scheduled_class.id,
            course_id=scheduled_class.course_id,
            meeting_url=scheduled_class.meeting_url,
            platform=scheduled_class.platform,
            joined_at=now,
        )

    @handle_firestore_exceptions
    def book_class_seat(self, user_id: str, class_id: str) -> ScheduledClass:
        scheduled_class = self.schedule_service.get_class(class_id)
        self.require_active_enrollment(user_id, scheduled_class.course_id)
        booked = self.schedule_service.book_seat(class_id, user_id)
        logger.info(f"User '{user_id}' booked a seat in class '{class_id}'")
        return booked

    @handle_firestore_exceptions
    def release_class_seat(self, user_id: str, class_id: str) -> ScheduledClass:
        return self.schedule_service.release_seat(class_id, user_id)
