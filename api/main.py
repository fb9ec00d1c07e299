"""
Camp Planner API.

FastAPI app behind the planner UI:
- Sign-in/sign-up against the identity provider
- Onboarding and the account's kid roster
- Schedule editing with optimistic concurrency
- Live schedule updates over Server-Sent Events
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from camp_planner.errors import (
    AccessDeniedError,
    AccountExistsError,
    AccountNotFoundError,
    AuthError,
    AuthErrorCode,
    DuplicateScheduleError,
    IntegrityViolationError,
    InvalidCellError,
    KidNotInRosterError,
    PlannerError,
    ScheduleCreationError,
    ScheduleIdCollisionError,
    ScheduleNotFoundError,
    StoreError,
    UnknownKidError,
    VersionConflictError,
)
from camp_planner.logging_config import configure_logging, get_logger

from .dependencies import close_backends, init_backends
from .settings import get_settings

configure_logging(source="api")
logger = get_logger(__name__)

# Most specific first; the first isinstance match wins
ERROR_STATUS: list[tuple[type[PlannerError], int]] = [
    (VersionConflictError, 409),
    (IntegrityViolationError, 422),
    (ScheduleIdCollisionError, 503),
    (ScheduleCreationError, 503),
    (ScheduleNotFoundError, 404),
    (AccountNotFoundError, 404),
    (AccessDeniedError, 403),
    (AccountExistsError, 409),
    (DuplicateScheduleError, 409),
    (InvalidCellError, 422),
    (UnknownKidError, 422),
    (KidNotInRosterError, 422),
    (StoreError, 503),
]


# Problems the user fixes by editing the form or retrying the sign-in window;
# everything else is a failed sign-in
AUTH_INPUT_ERRORS = {
    AuthErrorCode.MISSING_FIELDS,
    AuthErrorCode.WEAK_PASSWORD,
    AuthErrorCode.INVALID_EMAIL,
    AuthErrorCode.EMAIL_IN_USE,
    AuthErrorCode.POPUP_CLOSED,
}


def status_for(error: PlannerError) -> int:
    if isinstance(error, AuthError):
        return 400 if error.code in AUTH_INPUT_ERRORS else 401
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


def error_body(error: PlannerError) -> dict[str, Any]:
    body: dict[str, Any] = {"detail": str(error), "error": type(error).__name__}
    if isinstance(error, AuthError):
        body["detail"] = error.message
        body["code"] = error.code.value
    elif isinstance(error, VersionConflictError):
        body["current_version"] = error.actual
    elif isinstance(error, IntegrityViolationError):
        body["problems"] = error.problems
    elif isinstance(error, AccountNotFoundError):
        body["detail"] = "needs_onboarding"
    return body


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Validate settings and build the backends before serving; release them after."""
    settings = get_settings()

    settings.validate_runtime()
    await init_backends(settings)
    logger.info(f"Camp planner started (store={settings.store_backend}, auth={settings.get_effective_auth_mode()})")

    yield

    await close_backends()


def create_app() -> FastAPI:
    """Build the app: error mapping, CORS, routers and the unauthenticated endpoints."""
    app = FastAPI(title="Camp Planner API", description="Shared per-kid camp schedules", lifespan=lifespan)

    @app.exception_handler(PlannerError)
    async def planner_error_handler(request: Request, exc: PlannerError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}")
        else:
            logger.debug(f"{request.method} {request.url.path} -> {status} {type(exc).__name__}")
        return JSONResponse(status_code=status, content=error_body(exc))

    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    from .routers import accounts, auth, schedules

    app.include_router(auth.router)
    app.include_router(accounts.router)
    app.include_router(schedules.router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "camp-planner-api"}

    @app.get("/api/config")
    async def get_auth_config() -> dict[str, Any]:
        """Lets the UI know whether to show the sign-in form."""
        return {"auth_mode": settings.get_effective_auth_mode()}

    return app


app = create_app()
