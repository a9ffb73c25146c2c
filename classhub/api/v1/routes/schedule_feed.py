"""WebSocket live feed of a course's scheduled classes"""

import asyncio
from contextlib import suppress
import logging

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status
from starlette.concurrency import run_in_threadpool

from classhub.models.scheduled_class import ScheduledClass
from classhub.models.user import User
from classhub.models.websocket_messages import (
    ClassesSnapshotMessage,
    ConnectedMessage,
    ErrorMessage,
    MessageType,
    PongMessage,
)
from classhub.services.class_status import class_view
from classhub.services.course_service import CourseService
from classhub.services.enrollment_service import EnrollmentService
from classhub.services.schedule_service import ScheduleService
from classhub.utils.auth import AuthError, extract_token, user_from_claims, verify_token
from classhub.utils.timing import utcnow

logger = logging.getLogger(__name__)
router = APIRouter()


async def authenticate(websocket: WebSocket, db) -> User:
    """Resolve the user from cookie, bearer header or ``?token=``.

    Raises:
        AuthError: missing or invalid credentials
    """
    token = extract_token(websocket.cookies, websocket.headers, websocket.query_params)
    if not token:
        raise AuthError("Missing authentication token", "AUTH_MISSING")
    decoded_claims = verify_token(token)
    return await run_in_threadpool(user_from_claims, db, decoded_claims)


def authorize(db, course_id: str, user: User) -> None:
    """The course instructor, an admin, or a learner with an active enrollment.

    Raises:
        HTTPException: course missing or access denied
    """
    course_service = CourseService(db)
    course = course_service.get_course(course_id)
    if user.role == "admin" or course.instructor_id == user.id:
        return
    EnrollmentService(db, course_service).require_active_enrollment(user.id, course_id)


async def forward_snapshots(websocket: WebSocket, course_id: str, updates: asyncio.Queue):
    while True:
        classes: list[ScheduledClass] = await updates.get()
        now = utcnow()
        message = ClassesSnapshotMessage(
            course_id=course_id, classes=[class_view(c, now) for c in classes]
        )
        await websocket.send_json(message.model_dump(mode="json"))


@router.websocket("/{course_id}/classes/ws")
async def course_classes_websocket(websocket: WebSocket, course_id: str):
    """Push the course's full class list on connect and after every change"""
    db = websocket.app.state.db

    try:
        user = await authenticate(websocket, db)
        await run_in_threadpool(authorize, db, course_id, user)
    except AuthError as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.detail)
        return
    except HTTPException as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e.detail)[:123])
        return

    await websocket.accept()

    loop = asyncio.get_running_loop()
    updates: asyncio.Queue = asyncio.Queue()

    def on_change(classes: list[ScheduledClass]) -> None:
        # called on the Firestore watch thread
        loop.call_soon_threadsafe(updates.put_nowait, classes)

    subscription = await run_in_threadpool(ScheduleService(db).subscribe, course_id, on_change)
    sender = None
    try:
        await websocket.send_json(
            ConnectedMessage(
                course_id=course_id, message="Connected to the live class schedule."
            ).model_dump(mode="json")
        )
        sender = asyncio.create_task(forward_snapshots(websocket, course_id, updates))
        logger.info(f"User '{user.id}' opened the live schedule of course '{course_id}'")

        while True:
            data = await websocket.receive_json()
            if isinstance(data, dict) and data.get("type") == MessageType.PING:
                await websocket.send_json(PongMessage().model_dump(mode="json"))
            else:
                await websocket.send_json(
                    ErrorMessage(
                        message="Only ping messages are accepted on this feed"
                    ).model_dump(mode="json")
                )
    except WebSocketDisconnect:
        logger.info(f"User '{user.id}' left the live schedule of course '{course_id}'")
    finally:
        subscription.unsubscribe()
        if sender is not None:
            sender.cancel()
            with suppress(asyncio.CancelledError, WebSocketDisconnect):
                await sender
