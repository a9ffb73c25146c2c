from datetime import datetime
import logging

from google.api_core import exceptions as gcp_exceptions
from google.cloud.firestore_v1.base_query import FieldFilter
import pydantic

from classhub.core.config import settings
from classhub.models.course import CourseSchedulePattern, GenerateClassesRequest
from classhub.models.scheduled_class import (
    TERMINAL_STATUSES,
    ClassStatus,
    ScheduledClass,
    ScheduledClassCreate,
    ScheduledClassUpdate,
)
from classhub.services.class_status import validate_transition
from classhub.services.course_service import CourseService
from classhub.services.schedule_pattern import expand_schedule_pattern
from classhub.utils.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    SeatLimitError,
    ValidationError,
)
from classhub.utils.firestore_exception import handle_firestore_exceptions
from classhub.utils.subscription import Subscription
from classhub.utils.timing import ensure_utc, resolve_timing, utcnow


logger = logging.getLogger(__name__)

# Raised by Firestore when a last_update_time precondition no longer holds
CONFLICT_ERRORS = (gcp_exceptions.FailedPrecondition, gcp_exceptions.Aborted)

NON_NULLABLE_FIELDS = ("title", "start_time", "platform", "status")


def sort_classes(classes: list[ScheduledClass]) -> list[ScheduledClass]:
    """Ascending by start time; ties broken by id so the order is stable."""
    return sorted(classes, key=lambda c: (c.start_time, c.id))


class ScheduleService:
    def __init__(self, db, course_service=None):
        self.db = db
        self.collection = db.collection("scheduled_classes")
        self.course_service = course_service or CourseService(db)

    @staticmethod
    def _to_model(doc) -> ScheduledClass:
        data = doc.to_dict()
        data["id"] = doc.id
        return ScheduledClass(**data)

    def _course_query(self, course_id: str):
        return self.collection.where(filter=FieldFilter("course_id", "==", course_id))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @handle_firestore_exceptions
    def create_class(self, data: ScheduledClassCreate | dict) -> ScheduledClass:
        if isinstance(data, dict):
            try:
                data = ScheduledClassCreate(**data)
            except pydantic.ValidationError as e:
                messages = "; ".join(err["msg"] for err in e.errors())
                raise ValidationError(f"Invalid class: {messages}") from e

        course = self.course_service.get_course(data.course_id)

        doc_ref = self.collection.document()
        class_data = self._new_class_data(doc_ref.id, data, course)
        doc_ref.set(class_data)

        logger.info(
            f"Scheduled class '{doc_ref.id}' for course '{data.course_id}' "
            f"at {class_data['start_time'].isoformat()}"
        )
        return ScheduledClass(**class_data)

    @staticmethod
    def _new_class_data(class_id: str, data: ScheduledClassCreate, course) -> dict:
        now = utcnow()
        class_data = data.model_dump()
        class_data.update(
            id=class_id,
            instructor_id=data.instructor_id or course.instructor_id,
            instructor_name=data.instructor_name or course.instructor_name,
            status=ClassStatus.SCHEDULED.value,
            enrolled_students=[],
            cancellation_reason=None,
            cancelled_at=None,
            version=1,
            created_at=now,
            updated_at=now,
        )
        return class_data

    def _mutate(self, class_id: str, build_changes, expected_version: int | None = None):
        """Read-modify-write guarded by the document's last update time.

        ``build_changes(current)`` returns the fields to write (empty for a
        no-op) or raises a domain error. On a concurrent write the document is
        re-read and the changes rebuilt, up to CAS_MAX_ATTEMPTS times.
        """
        doc_ref = self.collection.document(class_id)

        for attempt in range(1, settings.CAS_MAX_ATTEMPTS + 1):
            snapshot = doc_ref.get()
            if not snapshot.exists:
                raise NotFoundError(f"Scheduled class with ID '{class_id}' not found.")

            current = self._to_model(snapshot)
            if expected_version is not None and expected_version != current.version:
                raise ConflictError(
                    f"Class '{class_id}' was changed by someone else "
                    f"(version {current.version}, expected {expected_version}). Reload and retry."
                )

            changes = build_changes(current)
            if not changes:
                return current

            changes["version"] = current.version + 1
            changes["updated_at"] = utcnow()
            try:
                doc_ref.update(
                    changes, option=self.db.write_option(last_update_time=snapshot.update_time)
                )
            except CONFLICT_ERRORS:
                logger.warning(
                    f"Concurrent write on class '{class_id}' (attempt {attempt}), re-reading"
                )
                continue

            return self._to_model(doc_ref.get())

        raise ConflictError(f"Class '{class_id}' is being modified concurrently. Please retry.")

    @handle_firestore_exceptions
    def update_class(self, class_id: str, data: ScheduledClassUpdate) -> ScheduledClass:
        def build_changes(current: ScheduledClass) -> dict:
            changes = data.model_dump(exclude_unset=True, exclude={"expected_version"})
            for field in NON_NULLABLE_FIELDS:
                if field in changes and changes[field] is None:
                    del changes[field]

            new_status = changes.pop("status", None)
            if new_status is not None and ClassStatus(new_status) != current.status:
                validate_transition(current.status, new_status)
                changes["status"] = ClassStatus(new_status).value
                if new_status == ClassStatus.CANCELLED:
                    changes["cancelled_at"] = utcnow()

            if not changes:
                return {}

            if current.status in TERMINAL_STATUSES:
                raise InvalidTransitionError(
                    f"Class '{class_id}' is {current.status.value} and can no longer be changed."
                )

            if data.touches_timing:
                changes.update(self._rescheduled_timing(current, changes))

            max_students = changes.get("max_students")
            if max_students is not None and max_students < len(current.enrolled_students):
                raise ValidationError(
                    f"max_students cannot be lower than the {len(current.enrolled_students)} "
                    f"seats already booked."
                )
            return changes

        updated = self._mutate(class_id, build_changes, expected_version=data.expected_version)
        logger.info(f"Updated class '{class_id}' to version {updated.version}")
        return updated

    @staticmethod
    def _rescheduled_timing(current: ScheduledClass, changes: dict) -> dict:
        start = changes.get("start_time", current.start_time)
        end = changes.get("end_time")
        duration = changes.get("duration")
        if end is None and duration is None:
            # moving the start keeps the class length
            duration = current.duration

        try:
            start, end, duration = resolve_timing(start, end, duration)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        return {"start_time": start, "end_time": end, "duration": duration}

    @handle_firestore_exceptions
    def cancel_class(self, class_id: str, reason: str | None = None) -> ScheduledClass:
        def build_changes(current: ScheduledClass) -> dict:
            if current.status == ClassStatus.CANCELLED:
                return {}
            validate_transition(current.status, ClassStatus.CANCELLED)
            return {
                "status": ClassStatus.CANCELLED.value,
                "cancellation_reason": reason,
                "cancelled_at": utcnow(),
            }

        cancelled = self._mutate(class_id, build_changes)
        logger.info(f"Cancelled class '{class_id}': {reason or 'no reason given'}")
        return cancelled

    @handle_firestore_exceptions
    def delete_class(self, class_id: str) -> dict:
        """Remove a class for good.

        Only classes that never happened may be deleted: cancelled ones, or
        scheduled ones nobody has booked. Everything else is history.
        """
        doc_ref = self.collection.document(class_id)
        snapshot = doc_ref.get()
        if not snapshot.exists:
            raise NotFoundError(f"Scheduled class with ID '{class_id}' not found.")

        current = self._to_model(snapshot)
        deletable = current.status == ClassStatus.CANCELLED or (
            current.status == ClassStatus.SCHEDULED and not current.enrolled_students
        )
        if not deletable:
            raise InvalidTransitionError(
                f"Class '{class_id}' is {current.status.value} with "
                f"{len(current.enrolled_students)} booked seats; cancel it instead."
            )

        try:
            doc_ref.delete(option=self.db.write_option(last_update_time=snapshot.update_time))
        except CONFLICT_ERRORS as e:
            raise ConflictError(
                f"Class '{class_id}' changed while being deleted. Reload and retry."
            ) from e

        logger.info(f"Deleted class '{class_id}' from course '{current.course_id}'")
        return {"message": f"Scheduled class '{class_id}' deleted successfully."}

    @handle_firestore_exceptions
    def book_seat(self, class_id: str, user_id: str) -> ScheduledClass:
        def build_changes(current: ScheduledClass) -> dict:
            if current.status in TERMINAL_STATUSES:
                raise InvalidTransitionError(
                    f"Class '{class_id}' is {current.status.value}; seats can no longer be booked."
                )
            if user_id in current.enrolled_students:
                return {}
            if current.is_full:
                raise SeatLimitError(f"Class '{current.title}' is full.")
            return {"enrolled_students": [*current.enrolled_students, user_id]}

        return self._mutate(class_id, build_changes)

    @handle_firestore_exceptions
    def release_seat(self, class_id: str, user_id: str) -> ScheduledClass:
        def build_changes(current: ScheduledClass) -> dict:
            if user_id not in current.enrolled_students:
                return {}
            return {
                "enrolled_students": [s for s in current.enrolled_students if s != user_id]
            }

        return self._mutate(class_id, build_changes)

    @handle_firestore_exceptions
    def generate_from_pattern(
        self,
        course_id: str,
        pattern: CourseSchedulePattern,
        request: GenerateClassesRequest | None = None,
    ) -> list[ScheduledClass]:
        """Create one class per slot of ``pattern``.

        Slots whose start time already has a class in the course are skipped,
        so running the generation twice does not duplicate sessions.
        """
        request = request or GenerateClassesRequest()
        course = self.course_service.get_course(course_id)
        taken = {c.start_time for c in self.list_classes(course_id)}

        batch = self.db.batch()
        created: list[ScheduledClass] = []
        for number, (start, end) in enumerate(expand_schedule_pattern(pattern), start=1):
            if start in taken:
                continue
            doc_ref = self.collection.document()
            data = ScheduledClassCreate(
                course_id=course_id,
                title=f"{request.title_prefix} {number}",
                start_time=start,
                end_time=end,
                meeting_url=request.meeting_url,
                platform=request.platform,
                max_students=request.max_students,
            )
            class_data = self._new_class_data(doc_ref.id, data, course)
            batch.set(doc_ref, class_data)
            created.append(ScheduledClass(**class_data))

        if created:
            batch.commit()
        logger.info(
            f"Generated {len(created)} classes for course '{course_id}' ({pattern.frequency})"
        )
        return created

    @handle_firestore_exceptions
    def reconcile_statuses(self, course_id: str, now: datetime | None = None) -> list[ScheduledClass]:
        """Write the time-driven transitions scheduled -> live -> completed.

        A scheduled class whose whole window has passed goes through live
        first so no transition is skipped.
        """
        now = ensure_utc(now) if now else utcnow()
        changed: list[ScheduledClass] = []

        for scheduled_class in self.list_classes(course_id):
            current = scheduled_class
            if current.status == ClassStatus.SCHEDULED and now >= current.start_time:
                current = self.update_class(
                    current.id, ScheduledClassUpdate(status=ClassStatus.LIVE)
                )
            if current.status == ClassStatus.LIVE and now > current.end_time:
                current = self.update_class(
                    current.id, ScheduledClassUpdate(status=ClassStatus.COMPLETED)
                )
            if current.status != scheduled_class.status:
                changed.append(current)

        if changed:
            logger.info(f"Reconciled {len(changed)} class statuses in course '{course_id}'")
        return changed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @handle_firestore_exceptions
    def get_class(self, class_id: str) -> ScheduledClass:
        doc = self.collection.document(class_id).get()
        if not doc.exists:
            raise NotFoundError(f"Scheduled class with ID '{class_id}' not found.")
        return self._to_model(doc)

    @handle_firestore_exceptions
    def list_classes(self, course_id: str) -> list[ScheduledClass]:
        docs = self._course_query(course_id).order_by("start_time").get()
        return sort_classes([self._to_model(doc) for doc in docs])

    @handle_firestore_exceptions
    def list_upcoming(self, course_id: str, from_time: datetime) -> list[ScheduledClass]:
        """Snapshot of classes starting at or after ``from_time``."""
        docs = (
            self._course_query(course_id)
            .where(filter=FieldFilter("start_time", ">=", ensure_utc(from_time)))
            .order_by("start_time")
            .get()
        )
        return sort_classes([self._to_model(doc) for doc in docs])

    @handle_firestore_exceptions
    def list_instructor_classes(
        self, instructor_id: str, from_time: datetime, limit: int = 100
    ) -> list[ScheduledClass]:
        docs = (
            self.collection.where(filter=FieldFilter("instructor_id", "==", instructor_id))
            .where(filter=FieldFilter("start_time", ">=", ensure_utc(from_time)))
            .order_by("start_time")
            .limit(limit)
            .get()
        )
        return sort_classes([self._to_model(doc) for doc in docs])

    def subscribe(self, course_id: str, on_change) -> Subscription:
        """Live feed of a course's classes.

        ``on_change(classes)`` is called with the full ordered list once for
        the current state and again after every change. Callers must release
        the returned handle (``unsubscribe()`` or ``with``) when done.
        """
        subscription = Subscription(f"scheduled_classes:{course_id}")

        def on_snapshot(docs, changes, read_time):
            try:
                classes = sort_classes([self._to_model(doc) for doc in docs])
                subscription.deliver(on_change, classes)
            except Exception:
                logger.exception(f"Schedule listener for course '{course_id}' failed")

        watch = self._course_query(course_id).on_snapshot(on_snapshot)
        subscription.attach(watch)
        logger.info(f"Subscribed to schedule of course '{course_id}'")
        return subscription
