"""Global error handlers: consistent JSON error responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnhub.gamification.exceptions import (
    ConcurrencyConflict,
    GamificationError,
    NotFoundFailure,
    PersistenceFailure,
)

logger = structlog.get_logger()

# Most specific first
_GAMIFICATION_STATUS: list[tuple[type[GamificationError], int]] = [
    (NotFoundFailure, 404),
    (ConcurrencyConflict, 409),
    (PersistenceFailure, 503),
]


def status_for(exc: GamificationError) -> int:
    for exc_type, status_code in _GAMIFICATION_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return 400


def setup_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": jsonable_errors(exc)},
        )

    @app.exception_handler(GamificationError)
    async def gamification_exception_handler(request: Request, exc: GamificationError) -> JSONResponse:
        status_code = status_for(exc)
        log = logger.error if status_code >= 500 else logger.warning
        log("gamification_error", path=request.url.path, error_type=type(exc).__name__, error=str(exc))
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all for unhandled exceptions; always return JSON."""
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without non-serializable ``ctx`` payloads."""
    return [{k: v for k, v in error.items() if k not in ("ctx", "input")} for error in exc.errors()]
