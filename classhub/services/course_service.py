import logging

from google.cloud.firestore_v1.base_query import FieldFilter

from classhub.models.course import Course, CourseCreate, CourseSchedulePattern, CourseUpdate
from classhub.models.user import User
from classhub.utils.exceptions import NotFoundError, PermissionDeniedError
from classhub.utils.firestore_exception import handle_firestore_exceptions
from classhub.utils.timing import utcnow


logger = logging.getLogger(__name__)


def _to_firestore(data: dict) -> dict:
    # dates and times inside the pattern are not Firestore types
    if data.get("schedule") is not None:
        data["schedule"] = CourseSchedulePattern(**data["schedule"]).model_dump(mode="json")
    return data


class CourseService:
    def __init__(self, db):
        self.db = db
        self.collection = db.collection("courses")

    @staticmethod
    def _to_model(doc) -> Course:
        data = doc.to_dict()
        data["id"] = doc.id
        return Course(**data)

    @handle_firestore_exceptions
    def create_course(self, data: CourseCreate, instructor: User) -> Course:
        if not instructor.can_teach:
            raise PermissionDeniedError("Only instructors can create courses.")

        doc_ref = self.collection.document()
        now = utcnow()
        course_data = _to_firestore(data.model_dump())
        course_data.update(
            id=doc_ref.id,
            instructor_id=instructor.id,
            instructor_name=instructor.name,
            enrolled_students=[],
            created_at=now,
            updated_at=now,
        )
        doc_ref.set(course_data)
        logger.info(f"Created course '{doc_ref.id}' for instructor '{instructor.id}'")
        return Course(**course_data)

    @handle_firestore_exceptions
    def get_course(self, course_id: str) -> Course:
        doc = self.collection.document(course_id).get()
        if not doc.exists:
            raise NotFoundError(f"Course with ID '{course_id}' not found.")
        return self._to_model(doc)

    @handle_firestore_exceptions
    def update_course(self, course_id: str, data: CourseUpdate) -> Course:
        doc_ref = self.collection.document(course_id)
        if not doc_ref.get().exists:
            raise NotFoundError(f"Course with ID '{course_id}' not found.")

        update_data = _to_firestore(
            {k: v for k, v in data.model_dump().items() if v is not None}
        )
        if update_data:
            update_data["updated_at"] = utcnow()
            doc_ref.update(update_data)

        return self._to_model(doc_ref.get())

    @handle_firestore_exceptions
    def get_courses_by_instructor(self, instructor_id: str, limit: int = 100) -> list[Course]:
        docs = (
            self.collection.where(filter=FieldFilter("instructor_id", "==", instructor_id))
            .limit(limit)
            .get()
        )
        return [self._to_model(doc) for doc in docs]

    def ensure_can_manage(self, course: Course, user: User) -> None:
        """Only the course's instructor or an admin may change its schedule."""
        if user.role == "admin" or course.instructor_id == user.id:
            return
        raise PermissionDeniedError("Only the course instructor can manage its classes.")
