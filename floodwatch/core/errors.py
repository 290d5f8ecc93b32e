"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Domain-specific exception classes for the monitoring core
    • Consistent JSON error response format
    • Automatic logging of unhandled errors

Recovery policy inside the monitoring loop:

    ConfigurationError  → raised once by start(LIVE); demo mode unaffected
    FetchError          → area skipped for the cycle, logged
    ParseError          → area skipped for the cycle, logged
    PersistenceError    → logged; stale level persists until a later cycle

Only ConfigurationError ever reaches a caller of the scheduler.

Usage:
    from floodwatch.core.errors import FetchError, register_error_handlers

    raise FetchError("openweathermap", "HTTP 503", lat=13.08, lon=80.27)
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from floodwatch.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class FloodWatchError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(FloodWatchError):
    """Missing or invalid configuration, e.g. weather credential (503)."""

    def __init__(self, message: str, *, setting: Optional[str] = None):
        details = {"setting": setting} if setting else {}
        super().__init__(
            message=message,
            status_code=503,
            error_code="CONFIGURATION_ERROR",
            details=details,
        )


class FetchError(FloodWatchError):
    """Weather provider call failed: network, non-success status or timeout (502)."""

    def __init__(self, service: str, message: str = "", **details: Any):
        super().__init__(
            message=f"External service '{service}' failed: {message}",
            status_code=502,
            error_code="FETCH_ERROR",
            details={"service": service, **details},
        )


class ParseError(FloodWatchError):
    """Stored payload (geometry, coordinates) could not be decoded (422)."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message,
            status_code=422,
            error_code="PARSE_ERROR",
            details=details,
        )


class PersistenceError(FloodWatchError):
    """Area store rejected a write (500)."""

    def __init__(self, area_id: str, message: str = ""):
        super().__init__(
            message=f"Update of area {area_id} rejected: {message}",
            status_code=500,
            error_code="PERSISTENCE_ERROR",
            details={"area_id": area_id},
        )


class ValidationError(FloodWatchError):
    """Input validation failed (422)."""

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        d = {**details}
        if field:
            d["field"] = field
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=d,
        )


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: Dict[str, Any] = {
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
    }

    if details:
        body["error"]["details"] = details

    # Include request path in non-production
    if request and not settings.is_production:
        body["error"]["path"] = str(request.url.path)
        body["error"]["method"] = request.method

    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(FloodWatchError)
    async def handle_floodwatch_error(request: Request, exc: FloodWatchError):
        logger.error(
            "API Error [%s]: %s | details=%s",
            exc.error_code, exc.message, exc.details,
        )
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message,
            exc.details, request,
        )

    @app.exception_handler(ValueError)
    async def handle_value_error(request: Request, exc: ValueError):
        logger.warning("ValueError: %s", exc)
        return _build_error_response(
            422, "VALIDATION_ERROR", str(exc), request=request,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        message = str(exc) if settings.DEBUG else "Internal server error"
        return _build_error_response(
            500, "INTERNAL_ERROR", message, request=request,
        )
