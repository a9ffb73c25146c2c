"""WebSocket message models for the live class feed"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel

from classhub.models.scheduled_class import ClassView


class MessageType(str, Enum):
    """WebSocket message types"""

    CONNECTED = "connected"
    CLASSES_SNAPSHOT = "classes_snapshot"
    PING = "ping"
    PONG = "pong"
    ERROR = "error"


# ============================================================================
# Client → Server Messages
# ============================================================================


class PingMessage(BaseModel):
    """Ping message for connection keepalive"""

    type: Literal[MessageType.PING] = MessageType.PING


# ============================================================================
# Server → Client Messages
# ============================================================================


class ConnectedMessage(BaseModel):
    """Initial connection confirmation"""

    type: Literal[MessageType.CONNECTED] = MessageType.CONNECTED
    course_id: str
    message: str


class ClassesSnapshotMessage(BaseModel):
    """Full, ordered class list of a course after a change"""

    type: Literal[MessageType.CLASSES_SNAPSHOT] = MessageType.CLASSES_SNAPSHOT
    course_id: str
    classes: list[ClassView]


class PongMessage(BaseModel):
    """Response to ping for connection keepalive"""

    type: Literal[MessageType.PONG] = MessageType.PONG


class ErrorMessage(BaseModel):
    """Error notification"""

    type: Literal[MessageType.ERROR] = MessageType.ERROR
    message: str


ScheduleFeedServerMessage = ConnectedMessage | ClassesSnapshotMessage | PongMessage | ErrorMessage
