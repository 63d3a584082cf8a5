"""FastAPI exception handlers for the manager's error hierarchy.

RpcManagerError subclasses (plus Pydantic's RequestValidationError and
unhandled exceptions) are rendered as a consistent JSON envelope:
{ success, data, error, meta }.
"""

from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from rpc_manager.errors import RpcManagerError
from rpc_manager.logging_config import redact

logger = logging.getLogger(__name__)


def _envelope(
    status_code: int,
    error: str,
    meta: dict | None = None,
) -> JSONResponse:
    """Build a JSON envelope error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": error,
            "meta": meta,
        },
    )


async def _manager_error_handler(_request: Request, exc: RpcManagerError) -> JSONResponse:
    """Handle RpcManagerError subclasses."""
    meta = {key: redact(str(value)) for key, value in exc.details.items()} if exc.details else None
    return _envelope(exc.status_code, redact(exc.message), meta=meta)


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI / Pydantic RequestValidationError (422)."""
    field_errors = [
        {
            "field": " -> ".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    return _envelope(
        status_code=422,
        error="Validation error",
        meta={"fields": field_errors},
    )


async def _unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions. Logs the traceback and returns a generic 500."""
    logger.error(
        "Unhandled exception: %s\n%s",
        exc,
        traceback.format_exc(),
    )
    return _envelope(status_code=500, error="Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Wire up all exception handlers on the FastAPI application."""
    app.add_exception_handler(RpcManagerError, _manager_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]
