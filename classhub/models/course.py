from datetime import date, datetime, time
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

from classhub.utils.timing import utcnow


WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


class CourseSchedulePattern(BaseModel):
    """Recurring timetable from which concrete classes are generated.

    Weekday indices are Sunday-based: 0 = Sunday .. 6 = Saturday.
    """

    recurrence: Literal["daily", "weekly", "biweekly"] = "weekly"
    days_of_week: list[int] = Field(default_factory=list)
    start_time_of_day: time
    session_duration: int = Field(..., gt=0, description="Minutes per session")
    timezone: str = "UTC"
    start_date: date
    end_date: date
    total_classes: int | None = Field(None, gt=0, description="Stop after this many sessions")
    frequency: str | None = Field(None, description="Human readable, e.g. 'Mon, Wed at 18:00'")

    @field_validator("days_of_week")
    @classmethod
    def _valid_days(cls, value: list[int]) -> list[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("days_of_week entries must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(value))

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{value}'") from e
        return value

    @model_validator(mode="after")
    def _check_pattern(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if self.recurrence != "daily" and not self.days_of_week:
            raise ValueError(f"{self.recurrence} recurrence needs at least one day_of_week")
        if self.frequency is None:
            self.frequency = self.describe()
        return self

    def describe(self) -> str:
        at = self.start_time_of_day.strftime("%H:%M")
        if self.recurrence == "daily":
            return f"Daily at {at} ({self.timezone})"
        days = ", ".join(WEEKDAY_NAMES[day] for day in self.days_of_week)
        every = "Every other week" if self.recurrence == "biweekly" else "Weekly"
        return f"{every} on {days} at {at} ({self.timezone})"


class Course(BaseModel):
    id: str
    title: str
    description: str = ""
    instructor_id: str
    instructor_name: str
    price: float = Field(default=0.0, ge=0.0)
    currency: str = "INR"
    total_lessons: int = Field(default=0, ge=0)
    total_classes: int = Field(default=0, ge=0)
    max_students: int | None = Field(None, gt=0, description="Course seat limit")
    enrolled_students: list[str] = Field(default_factory=list)
    schedule: CourseSchedulePattern | None = None
    is_published: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_free(self) -> bool:
        return self.price == 0

    @property
    def is_full(self) -> bool:
        return self.max_students is not None and len(self.enrolled_students) >= self.max_students


class CourseCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    price: float = Field(default=0.0, ge=0.0)
    currency: str = "INR"
    total_lessons: int = Field(default=0, ge=0)
    total_classes: int = Field(default=0, ge=0)
    max_students: int | None = Field(None, gt=0)
    schedule: CourseSchedulePattern | None = None
    is_published: bool = True


class CourseUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    price: float | None = Field(None, ge=0.0)
    total_lessons: int | None = Field(None, ge=0)
    total_classes: int | None = Field(None, ge=0)
    max_students: int | None = Field(None, gt=0)
    schedule: CourseSchedulePattern | None = None
    is_published: bool | None = None


class GenerateClassesRequest(BaseModel):
    title_prefix: str = "Session"
    meeting_url: str | None = None
    platform: Literal["zoom", "meet", "teams", "custom"] = "zoom"
    max_students: int | None = Field(None, gt=0)
