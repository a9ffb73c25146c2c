"""Application factory"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from classhub.core.config import settings
from classhub.core.initializer import startup_handler
from classhub.core.set_middleware import setup_middleware
from classhub.core.set_routes import setup_routes
from classhub.utils.exceptions import ClassHubError


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan"""
    await startup_handler(app)
    yield


async def classhub_error_handler(request: Request, exc: ClassHubError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title=settings.APP_TITLE,
        description=settings.APP_DESCRIPTION,
        lifespan=lifespan if use_lifespan else None,
    )

    app.add_exception_handler(ClassHubError, classhub_error_handler)

    setup_middleware(app)
    setup_routes(app)

    return app
