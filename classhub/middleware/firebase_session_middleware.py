"""Firebase session cookie / ID token authentication middleware"""

import logging
import re

from fastapi import HTTPException, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from classhub.utils.auth import AuthError, extract_token, user_from_claims, verify_token


logger = logging.getLogger(__name__)

EXCLUDED_PATHS = {
    r"^/api/v1/auth/create-session$",
    r"^/api/v1/auth/session-status$",
    r"^/api/v1/auth/logout$",
    r"^/api/health$",
    r"^/docs$",
    r"^/openapi\.json$",
    r"^/redoc$",
}


class FirebaseSessionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.method == "OPTIONS" or any(
            re.match(pattern, request.url.path) for pattern in EXCLUDED_PATHS
        ):
            return await call_next(request)

        token = extract_token(request.cookies, request.headers)
        if not token:
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Missing authentication token. Provide either a session cookie or Authorization header with Bearer token",
                    "error_code": "AUTH_MISSING",
                },
            )

        try:
            decoded_claims = verify_token(token)
            request.state.current_user = user_from_claims(request.app.state.db, decoded_claims)
        except AuthError as e:
            return JSONResponse(
                status_code=401, content={"detail": e.detail, "error_code": e.error_code}
            )
        except HTTPException as e:
            return JSONResponse(
                status_code=e.status_code,
                content={"detail": e.detail, "error_code": getattr(e, "error_code", "AUTH_FAILED")},
            )
        except Exception as e:
            logger.error(f"Authentication failed unexpectedly: {e}", exc_info=True)
            return JSONResponse(
                status_code=401,
                content={"detail": "Invalid authentication token", "error_code": "AUTH_INVALID"},
            )

        return await call_next(request)
