"""Authentication dependencies for route handlers"""

from fastapi import Depends, HTTPException, Request, status

from classhub.models.user import User
from classhub.utils.exceptions import PermissionDeniedError


def get_current_user(request: Request) -> User:
    """
    Get the current authenticated user.

    Returns:
        User: The authenticated user object

    Raises:
        HTTPException: 401 if user is not authenticated
    """
    user = getattr(request.state, "current_user", None)

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def require_instructor(current_user: User = Depends(get_current_user)) -> User:
    """The current user, provided they may teach (instructor or admin)."""
    if not current_user.can_teach:
        raise PermissionDeniedError("This action is only available to instructors.")
    return current_user
