from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from classhub.utils.timing import ensure_utc, resolve_timing, utcnow


Platform = Literal["zoom", "meet", "teams", "custom"]


class ClassStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({ClassStatus.COMPLETED, ClassStatus.CANCELLED})


class ScheduledClass(BaseModel):
    id: str
    course_id: str = Field(..., description="ID of the owning course")
    title: str
    description: str | None = None
    instructor_id: str
    instructor_name: str
    start_time: datetime
    end_time: datetime
    duration: int = Field(..., gt=0, description="Length in minutes (end_time - start_time)")
    meeting_url: str | None = Field(
        None, description="Opaque meeting link, may stay empty until shortly before start"
    )
    platform: Platform = "zoom"
    status: ClassStatus = ClassStatus.SCHEDULED
    enrolled_students: list[str] = Field(
        default_factory=list, description="Learner IDs holding a seat in this class"
    )
    max_students: int | None = Field(None, gt=0)
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    version: int = Field(default=1, ge=1)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("start_time", "end_time")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def seats_left(self) -> int | None:
        if self.max_students is None:
            return None
        return max(self.max_students - len(self.enrolled_students), 0)

    @property
    def is_full(self) -> bool:
        return self.seats_left == 0


class ScheduledClassCreate(BaseModel):
    course_id: str
    title: str = Field(..., min_length=1)
    description: str | None = None
    instructor_id: str = ""
    instructor_name: str = ""
    start_time: datetime
    end_time: datetime | None = None
    duration: int | None = Field(None, gt=0)
    meeting_url: str | None = None
    platform: Platform = "zoom"
    max_students: int | None = Field(None, gt=0)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title must not be blank")
        return value.strip()

    @field_validator("start_time", "end_time")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _check_timing(self):
        self.start_time, self.end_time, self.duration = resolve_timing(
            self.start_time, self.end_time, self.duration
        )
        return self


class ScheduledClassUpdate(BaseModel):
    """Partial update - only fields that are set are written."""

    title: str | None = Field(None, min_length=1)
    description: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    duration: int | None = Field(None, gt=0)
    meeting_url: str | None = None
    platform: Platform | None = None
    status: ClassStatus | None = None
    max_students: int | None = Field(None, gt=0)
    expected_version: int | None = Field(
        None, description="Reject the update if the stored version differs"
    )

    @field_validator("start_time", "end_time")
    @classmethod
    def _to_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @property
    def touches_timing(self) -> bool:
        return any(
            field in self.model_fields_set for field in ("start_time", "end_time", "duration")
        )


class ClassCancel(BaseModel):
    reason: str | None = None


class ClassView(ScheduledClass):
    """Class as shown to a viewer at a point in time."""

    effective_status: ClassStatus
    joinable: bool


class JoinInfo(BaseModel):
    class_id: str
    course_id: str
    meeting_url: str
    platform: Platform
    joined_at: datetime
