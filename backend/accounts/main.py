"""Accounts Service - user registration and session API."""
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from accounts.config import get_settings
from accounts.errors import InternalError, ServiceError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    from accounts.database import Base, engine

    # Import all models so they're registered with Base
    from accounts import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    """Render the uniform error envelope."""
    return JSONResponse(
        status_code=status_code,
        content={"status": status_code, "message": message, "success": False},
        headers=headers,
    )


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return error_response(exc.status_code, exc.message, headers)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()))
        message = f"Invalid request: {location} {errors[0].get('msg', '')}".strip()
    return error_response(400, message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path} raised {type(exc).__name__}")
    return error_response(500, InternalError.default_message)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="User registration, login and session token management",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "app": settings.app_name}

    from accounts.api import users

    app.include_router(users.router, prefix=settings.api_prefix)
    return app


app = create_app()
