from fastapi import APIRouter

from .routes.auth import router as auth_router
from .routes.classes import router as classes_router
from .routes.courses import router as courses_router
from .routes.me import router as me_router
from .routes.schedule_feed import router as schedule_feed_router
from .routes.user import router as user_router

router = APIRouter()

router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(user_router, prefix="/user", tags=["user"])
router.include_router(courses_router, prefix="/courses", tags=["courses"])
router.include_router(schedule_feed_router, prefix="/courses", tags=["courses"])
router.include_router(classes_router, prefix="/classes", tags=["classes"])
router.include_router(me_router, prefix="/me", tags=["me"])
