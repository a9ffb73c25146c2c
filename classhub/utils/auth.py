"""Firebase credential verification shared by the HTTP middleware and WebSockets."""

from firebase_admin import auth
from firebase_admin.auth import (
    ExpiredIdTokenError,
    ExpiredSessionCookieError,
    InvalidIdTokenError,
    InvalidSessionCookieError,
    RevokedIdTokenError,
    RevokedSessionCookieError,
)

from classhub.models.user import User, UserCreate
from classhub.services.user_service import UserService


SESSION_COOKIE_NAME = "session"


class AuthError(Exception):
    def __init__(self, detail: str, error_code: str):
        super().__init__(detail)
        self.detail = detail
        self.error_code = error_code


def extract_token(cookies, headers, query_params=None) -> str | None:
    """Session cookie first, then ``Authorization: Bearer``, then ``?token=``."""
    token = cookies.get(SESSION_COOKIE_NAME)
    if not token:
        auth_header = headers.get("authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header.removeprefix("Bearer ")
    if not token and query_params is not None:
        token = query_params.get("token")
    return token or None


def _is_issuer_error(error: Exception) -> bool:
    # an ID token handed to verify_session_cookie fails on its issuer
    message = str(error).lower()
    return (
        "iss" in message
        and "issuer" in message
        and ("securetoken.google.com" in message or "session.firebase.google.com" in message)
    )


def _verify_id_token(token: str) -> dict:
    try:
        return auth.verify_id_token(token, check_revoked=True)
    except ExpiredIdTokenError as e:
        raise AuthError("ID token expired", "TOKEN_EXPIRED") from e
    except RevokedIdTokenError as e:
        raise AuthError("ID token revoked", "TOKEN_REVOKED") from e
    except InvalidIdTokenError as e:
        raise AuthError("Invalid ID token", "TOKEN_INVALID") from e


def verify_token(token: str) -> dict:
    """Decode a Firebase session cookie, falling back to a Firebase ID token.

    Raises:
        AuthError: with an ``error_code`` the client can act on.
    """
    try:
        return auth.verify_session_cookie(token, check_revoked=True)
    except ExpiredSessionCookieError as e:
        raise AuthError("Session expired", "SESSION_EXPIRED") from e
    except RevokedSessionCookieError as e:
        raise AuthError("Session revoked", "SESSION_REVOKED") from e
    except InvalidSessionCookieError as e:
        if _is_issuer_error(e):
            return _verify_id_token(token)
        raise AuthError("Invalid session", "SESSION_INVALID") from e


def user_from_claims(db, decoded_claims: dict) -> User:
    email = decoded_claims.get("email")
    if not email:
        raise AuthError("Token does not carry an email address", "TOKEN_INVALID")

    user_create = UserCreate(
        firebase_uid=decoded_claims["uid"],
        email=email,
        name=decoded_claims.get("name") or email.split("@")[0],
        picture=decoded_claims.get("picture"),
    )
    return UserService(db).get_or_create_user(user_create)
