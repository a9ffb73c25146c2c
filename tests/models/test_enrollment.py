"""Tests for enrollment and progress event models.

Focus: Data validation and model structure only.
"""

import pytest
from pydantic import ValidationError

from classhub.models.enrollment import (
    ClassAttended,
    Enrollment,
    LessonCompleted,
    ProgressEventRequest,
)


def test_enrollment_defaults():
    enrollment = Enrollment(id="user1_course1", user_id="user1", course_id="course1")

    assert enrollment.status == "active"
    assert enrollment.is_active
    assert not enrollment.completed
    assert enrollment.progress == 0.0
    assert enrollment.processed_event_ids == []


def test_progress_bounds():
    with pytest.raises(ValidationError):
        Enrollment(id="a_b", user_id="a", course_id="b", progress=101)


def test_unknown_status_rejected():
    with pytest.raises(ValidationError):
        Enrollment(id="a_b", user_id="a", course_id="b", status="paused")


def test_dedup_keys_default_to_subject():
    assert LessonCompleted(lesson_id="l1").dedup_key == "lesson:l1"
    assert ClassAttended(class_id="c1").dedup_key == "class:c1"
    assert LessonCompleted(lesson_id="l1", event_id="evt-9").dedup_key == "evt-9"


def test_event_request_discriminates_on_kind():
    lesson = ProgressEventRequest(event={"kind": "lesson_completed", "lesson_id": "l1"})
    attended = ProgressEventRequest(event={"kind": "class_attended", "class_id": "c1"})

    assert isinstance(lesson.event, LessonCompleted)
    assert isinstance(attended.event, ClassAttended)


def test_event_request_unknown_kind_rejected():
    with pytest.raises(ValidationError):
        ProgressEventRequest(event={"kind": "quiz_passed", "quiz_id": "q1"})
