"""Endpoint tests for the learner dashboard: my courses, progress and calendar."""

from datetime import datetime, timedelta, timezone

from fastapi import FastAPI
import pytest
from starlette.testclient import TestClient

from classhub.api.v1.routes.me import router
from classhub.core.app import classhub_error_handler
from classhub.dependencies.auth import get_current_user
from classhub.initializers.firestore import get_db
from classhub.models.scheduled_class import ScheduledClassCreate
from classhub.models.user import User
from classhub.services.enrollment_service import EnrollmentService
from classhub.services.schedule_service import ScheduleService
from classhub.utils.exceptions import ClassHubError
from classhub.utils.timing import utcnow


@pytest.fixture
def learner():
    return User(id="user1", firebase_uid="fb_user1", name="Ravi", email="ravi@example.com")


def _course(course_id, title, instructor_id="teacher1"):
    return {
        "id": course_id,
        "title": title,
        "instructor_id": instructor_id,
        "instructor_name": "Asha",
        "total_lessons": 4,
        "total_classes": 2,
    }


@pytest.fixture
def test_app(firestore, learner):
    """Learner enrolled in two courses, logged in."""
    firestore.seed("courses", "course1", _course("course1", "Python 101"))
    firestore.seed("courses", "course2", _course("course2", "SQL Basics"))
    enrollment_service = EnrollmentService(firestore)
    enrollment_service.enroll("user1", "course1")
    enrollment_service.enroll("user1", "course2")

    app = FastAPI()
    app.add_exception_handler(ClassHubError, classhub_error_handler)
    app.dependency_overrides[get_db] = lambda: firestore
    app.dependency_overrides[get_current_user] = lambda: learner
    app.include_router(router, prefix="/me")
    return app


def _schedule(firestore, course_id, title, start):
    return ScheduleService(firestore).create_class(
        ScheduledClassCreate(course_id=course_id, title=title, start_time=start, duration=60)
    )


# ============================================================================
# MY COURSES
# ============================================================================


def test_my_courses_with_next_class(test_app, firestore):
    now = utcnow()
    _schedule(firestore, "course1", "Second", now + timedelta(days=2))
    _schedule(firestore, "course1", "First", now + timedelta(days=1))
    _schedule(firestore, "course1", "Over", now - timedelta(days=1))
    client = TestClient(test_app)

    response = client.get("/me/my-courses")

    assert response.status_code == 200
    rows = {row["course_id"]: row for row in response.json()}
    assert set(rows) == {"course1", "course2"}
    assert rows["course1"]["next_class"]["title"] == "First"
    assert [c["title"] for c in rows["course1"]["upcoming_classes"]] == ["Second"]
    assert rows["course2"]["next_class"] is None
    assert rows["course1"]["progress"]["overall_progress"] == 0.0


def test_my_courses_reports_broken_course_inline(test_app, firestore):
    firestore.collection("courses").document("course2").delete()
    client = TestClient(test_app)

    response = client.get("/me/my-courses")

    assert response.status_code == 200
    rows = {row["course_id"]: row for row in response.json()}
    assert rows["course1"]["error"] is None
    assert rows["course2"]["course"] is None
    assert "not found" in rows["course2"]["error"]


def test_record_lesson_progress(test_app, firestore):
    client = TestClient(test_app)
    event = {"event": {"kind": "lesson_completed", "lesson_id": "lesson1"}}

    first = client.post("/me/my-courses/course1/progress", json=event)
    repeat = client.post("/me/my-courses/course1/progress", json=event)

    assert first.status_code == 200
    assert first.json()["lessons_completed"] == 1
    assert first.json()["progress"] == 12.5
    assert repeat.json()["lessons_completed"] == 1


def test_record_progress_unknown_kind(test_app):
    client = TestClient(test_app)

    response = client.post(
        "/me/my-courses/course1/progress", json={"event": {"kind": "quiz_passed"}}
    )

    assert response.status_code == 422


def test_record_progress_not_enrolled(test_app):
    client = TestClient(test_app)

    response = client.post(
        "/me/my-courses/other/progress",
        json={"event": {"kind": "lesson_completed", "lesson_id": "lesson1"}},
    )

    assert response.status_code == 404


# ============================================================================
# CALENDAR
# ============================================================================


def test_calendar_week_groups_by_day(test_app, firestore):
    # 2025-03-10 is a Monday; its week starts on Sunday 2025-03-09
    _schedule(firestore, "course1", "Monday class", datetime(2025, 3, 10, 9, tzinfo=timezone.utc))
    _schedule(firestore, "course2", "Friday class", datetime(2025, 3, 14, 9, tzinfo=timezone.utc))
    _schedule(firestore, "course1", "Next week", datetime(2025, 3, 17, 9, tzinfo=timezone.utc))
    client = TestClient(test_app)

    response = client.get("/me/calendar", params={"week_of": "2025-03-12"})

    assert response.status_code == 200
    week = response.json()
    assert week["week_start"] == "2025-03-09"
    assert week["total_events"] == 2
    assert [e["title"] for e in week["days"][1]["events"]] == ["Monday class"]
    assert [e["title"] for e in week["days"][5]["events"]] == ["Friday class"]
    assert week["days"][5]["events"][0]["course_title"] == "SQL Basics"


def test_calendar_week_uses_timezone(test_app, firestore):
    # Saturday 20:00 UTC is already Sunday in Tokyo
    _schedule(firestore, "course1", "Late", datetime(2025, 3, 15, 20, tzinfo=timezone.utc))
    client = TestClient(test_app)

    utc_week = client.get("/me/calendar", params={"week_of": "2025-03-12"}).json()
    tokyo_week = client.get(
        "/me/calendar", params={"week_of": "2025-03-16", "tz": "Asia/Tokyo"}
    ).json()

    assert [e["title"] for e in utc_week["days"][6]["events"]] == ["Late"]
    assert [e["title"] for e in tokyo_week["days"][0]["events"]] == ["Late"]


def test_calendar_rejects_unknown_timezone(test_app):
    client = TestClient(test_app)

    response = client.get("/me/calendar", params={"tz": "Mars/Olympus"})

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_calendar_upcoming(test_app, firestore):
    now = utcnow()
    _schedule(firestore, "course2", "B", now + timedelta(hours=3))
    _schedule(firestore, "course1", "A", now + timedelta(hours=1))
    _schedule(firestore, "course1", "C", now + timedelta(hours=5))
    _schedule(firestore, "course1", "Past", now - timedelta(hours=5))
    client = TestClient(test_app)

    response = client.get("/me/calendar/upcoming", params={"limit": 2})

    assert response.status_code == 200
    assert [e["title"] for e in response.json()] == ["A", "B"]


def test_teaching_requires_instructor(test_app):
    client = TestClient(test_app)

    assert client.get("/me/teaching").status_code == 403


def test_teaching_lists_instructor_courses(test_app):
    teacher = User(
        id="teacher1",
        firebase_uid="fb_teacher1",
        name="Asha",
        email="asha@example.com",
        role="instructor",
    )
    test_app.dependency_overrides[get_current_user] = lambda: teacher
    client = TestClient(test_app)

    response = client.get("/me/teaching")

    assert response.status_code == 200
    assert {c["id"] for c in response.json()} == {"course1", "course2"}
