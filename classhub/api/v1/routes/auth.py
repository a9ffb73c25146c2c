"""Firebase session cookie endpoints"""

from datetime import timedelta
import logging
from time import time

from fastapi import APIRouter, HTTPException, Request, Response, status
from firebase_admin import auth
from firebase_admin.auth import ExpiredIdTokenError, InvalidIdTokenError, RevokedIdTokenError
from firebase_admin.exceptions import FirebaseError
from pydantic import BaseModel

from classhub.core.config import settings
from classhub.utils.auth import SESSION_COOKIE_NAME, AuthError, verify_token

logger = logging.getLogger(__name__)
router = APIRouter()


class CreateSessionRequest(BaseModel):
    """Request body for creating a session cookie"""

    id_token: str


class SessionResponse(BaseModel):
    """Response for session operations"""

    message: str
    uid: str | None = None


def _set_session_cookie(response: Response, session_cookie: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session_cookie,
        httponly=True,
        secure=True,
        samesite="lax",
        max_age=60 * 60 * 24 * settings.SESSION_DURATION_DAYS,
        path="/",
    )


@router.post("/create-session", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def create_session(body: CreateSessionRequest, response: Response):
    """
    Exchange a Firebase ID token for an HTTP-only session cookie.

    Raises:
        401: Token invalid, expired, revoked or sign-in not recent enough
    """
    try:
        decoded_token = auth.verify_id_token(body.id_token, check_revoked=True)
    except ExpiredIdTokenError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="ID token has expired") from e
    except RevokedIdTokenError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="ID token has been revoked") from e
    except InvalidIdTokenError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid ID token") from e

    if decoded_token.get("auth_time", 0) < time() - settings.RECENT_SIGN_IN_SECONDS:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Recent sign-in required to create session",
        )

    try:
        session_cookie = auth.create_session_cookie(
            body.id_token, expires_in=timedelta(days=settings.SESSION_DURATION_DAYS)
        )
    except FirebaseError as e:
        logger.error(f"Failed to create session cookie for uid={decoded_token['uid']}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create session"
        ) from e

    _set_session_cookie(response, session_cookie)
    logger.info(f"Session created for uid={decoded_token['uid']}")
    return SessionResponse(message="Session created successfully", uid=decoded_token["uid"])


@router.post("/logout", response_model=SessionResponse)
def logout(request: Request, response: Response):
    """Clear the session cookie and revoke the user's refresh tokens."""
    session_cookie = request.cookies.get(SESSION_COOKIE_NAME)

    if session_cookie:
        try:
            decoded_claims = verify_token(session_cookie)
            auth.revoke_refresh_tokens(decoded_claims["uid"])
        except AuthError as e:
            # the cookie is dropped either way
            logger.info(f"Logout with unusable session: {e.error_code}")

    response.delete_cookie(
        key=SESSION_COOKIE_NAME, path="/", httponly=True, secure=True, samesite="lax"
    )
    return SessionResponse(message="Logged out successfully", uid=None)


@router.get("/session-status", response_model=SessionResponse)
def get_session_status(request: Request):
    """Check if the current session cookie is still valid"""
    session_cookie = request.cookies.get(SESSION_COOKIE_NAME)

    if not session_cookie:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="No session cookie found"
        )

    try:
        decoded_claims = verify_token(session_cookie)
    except AuthError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.detail) from e

    return SessionResponse(message="Session is valid", uid=decoded_claims["uid"])
