"""Unit tests for auth dependencies"""

from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException, Request

from classhub.dependencies.auth import get_current_user, require_instructor
from classhub.models.user import User
from classhub.utils.exceptions import PermissionDeniedError


@pytest.fixture
def mock_user():
    """Test user data"""
    return User(
        id="user123",
        firebase_uid="firebase123",
        email="test@example.com",
        name="Test User",
    )


@pytest.fixture
def mock_request_without_user():
    """Request without authenticated user"""
    request = MagicMock(spec=Request)
    request.state = MagicMock()
    del request.state.current_user
    return request


def test_get_current_user_success(mock_user):
    """Should return user when authenticated"""
    request = MagicMock(spec=Request)
    request.state.current_user = mock_user

    assert get_current_user(request).id == "user123"


def test_get_current_user_not_authenticated_raises_401(mock_request_without_user):
    """Should raise 401 when user not authenticated"""
    with pytest.raises(HTTPException) as exc:
        get_current_user(mock_request_without_user)

    assert exc.value.status_code == 401
    assert "Not authenticated" in exc.value.detail


def test_require_instructor_rejects_students(mock_user):
    with pytest.raises(PermissionDeniedError) as exc:
        require_instructor(mock_user)

    assert exc.value.status_code == 403


@pytest.mark.parametrize("role", ["instructor", "admin"])
def test_require_instructor_accepts_teaching_roles(mock_user, role):
    teacher = mock_user.model_copy(update={"role": role})
    assert require_instructor(teacher) is teacher
