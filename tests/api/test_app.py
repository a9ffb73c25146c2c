"""Tests for the assembled application."""

from unittest.mock import MagicMock, patch

import pytest
from starlette.testclient import TestClient

from classhub.core.app import create_app
from classhub.models.user import User
from classhub.utils.exceptions import NotFoundError


@pytest.fixture
def client():
    app = create_app(use_lifespan=False)
    app.state.db = MagicMock()
    return TestClient(app)


def test_health_is_public(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_api_requires_authentication(client):
    response = client.get("/api/v1/me/my-courses")

    assert response.status_code == 401
    assert response.json()["error_code"] == "AUTH_MISSING"


def test_session_status_is_reachable_without_session(client):
    response = client.get("/api/v1/auth/session-status")

    assert response.status_code == 401
    assert response.json()["detail"] == "No session cookie found"


def test_domain_errors_render_error_code(client):
    with (
        patch("classhub.utils.auth.auth") as mock_auth,
        patch("classhub.utils.auth.UserService") as mock_user_service,
        patch("classhub.api.v1.routes.courses.CourseService") as mock_course_service,
    ):
        mock_auth.verify_session_cookie.return_value = {"uid": "fb_user1", "email": "ravi@example.com"}
        mock_user_service.return_value.get_or_create_user.return_value = User(
            id="user1", firebase_uid="fb_user1", name="Ravi", email="ravi@example.com"
        )
        mock_course_service.return_value.get_course.side_effect = NotFoundError(
            "Course with ID 'missing' not found."
        )

        client.cookies.set("session", "valid")
        response = client.get("/api/v1/courses/missing")

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"
    assert response.json()["retryable"] is False
