from fastapi import APIRouter, Depends

from classhub.dependencies.auth import get_current_user
from classhub.initializers.firestore import get_db
from classhub.models.user import ProfileUpdate, RoleUpdate, User, UserUpdate
from classhub.services.user_service import UserService
from classhub.utils.exceptions import PermissionDeniedError

router = APIRouter()


@router.get("/profile", response_model=User)
def get_profile(
    current_user: User = Depends(get_current_user),
    db=Depends(get_db),
):
    """Get current user profile."""
    return UserService(db).get_user(current_user.id)


@router.patch("/profile", response_model=User)
def update_profile(
    profile_update: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_db),
):
    """Update name or picture of the current user."""
    return UserService(db).update_user(current_user.id, UserUpdate(**profile_update.model_dump()))


@router.put("/{user_id}/role", response_model=User)
def set_role(
    user_id: str,
    role_update: RoleUpdate,
    current_user: User = Depends(get_current_user),
    db=Depends(get_db),
):
    """
    Grant or revoke instructor rights.

    Raises:
        403: Current user is not an admin
        404: User not found
    """
    if current_user.role != "admin":
        raise PermissionDeniedError("Only admins can change user roles.")
    return UserService(db).update_user(user_id, UserUpdate(role=role_update.role))
