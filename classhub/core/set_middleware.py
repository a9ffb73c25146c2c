"""Middleware registration"""

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from classhub.core.config import settings
from classhub.middleware.firebase_session_middleware import FirebaseSessionMiddleware


def setup_middleware(app: FastAPI) -> None:
    """Register all application middleware"""

    # Firebase authentication runs inside CORS so preflight responses carry headers
    app.add_middleware(FirebaseSessionMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,  # Required for session cookies
        allow_methods=["*"],
        allow_headers=["*"],
    )
