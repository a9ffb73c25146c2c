from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from classhub.models.course import Course
from classhub.models.scheduled_class import ScheduledClass
from classhub.utils.timing import utcnow


class Enrollment(BaseModel):
    id: str = Field(..., description="Composite key: {userId}_{courseId}")
    user_id: str = Field(..., description="ID of the enrolled user")
    course_id: str = Field(..., description="ID of the course")
    status: Literal["active", "cancelled"] = "active"
    enrolled_at: datetime = Field(default_factory=utcnow)
    completed_at: datetime | None = Field(
        None, description="Set once overall progress reaches 100"
    )
    lessons_completed: int = Field(default=0, ge=0)
    classes_attended: int = Field(default=0, ge=0)
    progress: float = Field(
        default=0.0, ge=0.0, le=100.0, description="Progress percentage (0-100)"
    )
    processed_event_ids: list[str] = Field(
        default_factory=list, description="Progress events already applied"
    )
    payment_reference: str | None = None
    last_activity: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def completed(self) -> bool:
        return self.completed_at is not None


class EnrollmentCreate(BaseModel):
    payment_reference: str | None = Field(
        None, description="Cleared payment reference, required for paid courses"
    )


class ProgressSummary(BaseModel):
    overall_progress: float = Field(..., ge=0.0, le=100.0)
    lessons_completed: int
    total_lessons: int
    classes_attended: int
    total_classes: int


class LessonCompleted(BaseModel):
    kind: Literal["lesson_completed"] = "lesson_completed"
    lesson_id: str
    event_id: str | None = None

    @property
    def dedup_key(self) -> str:
        return self.event_id or f"lesson:{self.lesson_id}"


class ClassAttended(BaseModel):
    kind: Literal["class_attended"] = "class_attended"
    class_id: str
    event_id: str | None = None

    @property
    def dedup_key(self) -> str:
        return self.event_id or f"class:{self.class_id}"


ProgressEvent = LessonCompleted | ClassAttended


class ProgressEventRequest(BaseModel):
    event: ProgressEvent = Field(..., discriminator="kind")


class MyCourse(BaseModel):
    """One row of a learner's "My Courses" view."""

    course_id: str
    course: Course | None = None
    enrollment: Enrollment | None = None
    progress: ProgressSummary | None = None
    next_class: ScheduledClass | None = None
    upcoming_classes: list[ScheduledClass] = Field(default_factory=list)
    error: str | None = Field(None, description="Set when this course could not be loaded")
