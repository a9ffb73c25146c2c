import datetime as dt

from pydantic import BaseModel, ConfigDict, Field

from classhub.models.course import Course
from classhub.models.scheduled_class import ClassStatus, Platform, ScheduledClass


class CourseSchedule(BaseModel):
    """A course together with its scheduled classes, input to the calendar projection."""

    course: Course
    scheduled_classes: list[ScheduledClass] = Field(default_factory=list)


class CalendarEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="ID of the scheduled class")
    title: str
    course_id: str
    course_title: str
    instructor_name: str
    start_time: dt.datetime
    end_time: dt.datetime
    status: ClassStatus
    meeting_url: str | None = None
    platform: Platform


class CalendarDay(BaseModel):
    weekday: int = Field(..., ge=0, le=6, description="0 = Sunday")
    date: dt.date
    events: list[CalendarEvent] = Field(default_factory=list)


class CalendarWeek(BaseModel):
    week_start: dt.date
    days: list[CalendarDay]
    total_events: int
