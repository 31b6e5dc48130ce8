"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import health, versions, workflow
from core.config import get_settings
from db.session import get_engine
from services.exceptions import (
    ConfigurationError,
    IntegrityViolationError,
    InvalidTransitionError,
    OwnerNotFoundError,
    PublishRequirementsError,
    StaleVersionError,
    UnauthorizedTransitionError,
    VersionNotFoundError,
    WorkflowError,
)

logger = logging.getLogger(__name__)

# Checked in order: subclasses before their bases
ERROR_STATUS_CODES: list[tuple[type[WorkflowError], int]] = [
    (StaleVersionError, 409),
    (InvalidTransitionError, 422),
    (PublishRequirementsError, 422),
    (UnauthorizedTransitionError, 403),
    (VersionNotFoundError, 404),
    (OwnerNotFoundError, 404),
    (ConfigurationError, 500),
    (IntegrityViolationError, 500),
]


def status_code_for(exc: WorkflowError) -> int:
    """HTTP status for a workflow error; unknown subclasses are server errors."""
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    yield

    # Shutdown: release pooled database connections
    await get_engine().dispose()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        return response


app_settings = get_settings()
logging.getLogger().setLevel(app_settings.log_level)

app = FastAPI(
    title="Editorial Workflow API",
    description="Content versioning and config-driven editorial workflow for posts and pages.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(WorkflowError)
async def workflow_exception_handler(
    _request: Request, exc: WorkflowError,
) -> JSONResponse:
    """Render workflow errors with a status code per error kind."""
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc)

    content: dict = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, InvalidTransitionError):
        content["from_status"] = exc.from_status
        content["to_status"] = exc.to_status
    elif isinstance(exc, UnauthorizedTransitionError):
        content["required_roles"] = sorted(exc.required_roles)
    elif isinstance(exc, PublishRequirementsError):
        content["missing_fields"] = exc.missing_fields
    return JSONResponse(status_code=status_code, content=content)


# Security headers middleware (runs after CORS, adds headers to responses)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(workflow.router)
app.include_router(versions.router)
