"""Exception handlers rendering errors as ``{"error": {...}}`` JSON bodies.

Domain errors use the status declared on their class; anything else becomes
a generic 500. Every body carries the request id so a client report can be
matched to the server log line.
"""

import logging
from typing import Any, Mapping

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from guard.core.errors import AppError
from guard.core.logging import get_request_id

logger = logging.getLogger(__name__)

INTERNAL_ERROR_CODE = "internal_server_error"
INTERNAL_ERROR_MESSAGE = "An unexpected error occurred. Please try again later."


def error_response(
    status_code: int,
    code: str,
    message: str,
    details: Mapping[str, Any] | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    if details:
        body["details"] = dict(details)
    return JSONResponse(status_code=status_code, content={"error": body})


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render an ``AppError`` with the status declared by its class."""
    status_code = exc.http_status

    logger.log(
        logging.ERROR if status_code >= 500 else logging.WARNING,
        "request.app_error",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "path": request.url.path,
            "has_details": bool(exc.details),
        },
    )
    return error_response(status_code, exc.code, exc.message, exc.details)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler; the client only ever sees a generic message."""
    logger.error(
        "request.unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return error_response(500, INTERNAL_ERROR_CODE, INTERNAL_ERROR_MESSAGE)


def setup_exception_handlers(app: FastAPI) -> None:
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
