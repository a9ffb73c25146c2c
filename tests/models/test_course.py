"""Tests for course models and the recurring schedule pattern."""

from datetime import date, time

import pytest
from pydantic import ValidationError

from classhub.models.course import Course, CourseSchedulePattern


def _pattern(**overrides):
    data = {
        "recurrence": "weekly",
        "days_of_week": [3, 1],
        "start_time_of_day": time(18, 0),
        "session_duration": 60,
        "timezone": "UTC",
        "start_date": date(2025, 3, 1),
        "end_date": date(2025, 3, 31),
    }
    data.update(overrides)
    return CourseSchedulePattern(**data)


def test_days_are_sorted_and_unique():
    assert _pattern(days_of_week=[3, 1, 3]).days_of_week == [1, 3]


def test_frequency_is_described():
    assert _pattern().frequency == "Weekly on Mon, Wed at 18:00 (UTC)"
    assert _pattern(recurrence="biweekly").frequency.startswith("Every other week on Mon, Wed")
    assert _pattern(recurrence="daily", days_of_week=[]).frequency == "Daily at 18:00 (UTC)"


def test_explicit_frequency_kept():
    assert _pattern(frequency="Mondays and Wednesdays").frequency == "Mondays and Wednesdays"


@pytest.mark.parametrize("days", [[7], [-1]])
def test_day_out_of_range_rejected(days):
    with pytest.raises(ValidationError):
        _pattern(days_of_week=days)


def test_weekly_needs_days():
    with pytest.raises(ValidationError, match="day_of_week"):
        _pattern(days_of_week=[])


def test_unknown_timezone_rejected():
    with pytest.raises(ValidationError, match="Unknown timezone"):
        _pattern(timezone="Mars/Olympus")


def test_end_before_start_rejected():
    with pytest.raises(ValidationError):
        _pattern(start_date=date(2025, 4, 1), end_date=date(2025, 3, 1))


def test_course_free_and_full():
    course = Course(
        id="course123",
        title="Python 101",
        instructor_id="teacher1",
        instructor_name="Asha",
        max_students=1,
        enrolled_students=["u1"],
    )
    assert course.is_free
    assert course.is_full
    assert not course.model_copy(update={"max_students": None}).is_full
    assert not course.model_copy(update={"price": 499.0}).is_free


def test_course_schedule_round_trips_through_json():
    pattern = _pattern(timezone="Asia/Kolkata")
    course = Course(
        id="course123",
        title="Python 101",
        instructor_id="teacher1",
        instructor_name="Asha",
        schedule=pattern.model_dump(mode="json"),
    )
    assert course.schedule == pattern
