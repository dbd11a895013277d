"""
Exception handlers mapping failures to stable ``(kind, detail)`` bodies.

* ``DomainError`` subclasses carry their own kind and status code.
* Request-shape problems caught by FastAPI become ``validation_error``.
* Anything else is logged with its traceback and rendered as
  ``internal_error``; the traceback is only echoed back in debug mode.
"""

import logging
from traceback import format_exception

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from carpool.config import settings
from carpool.domain.errors import DomainError

logger = logging.getLogger(__name__)


def _error_body(kind: str, detail: str, **extra) -> dict:
    return {"kind": kind, "detail": detail, **extra}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.kind, exc.message),
        headers={"X-Error": type(exc).__name__},
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    detail = f"{location}: {message}" if location else message
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("validation_error", detail),
        headers={"X-Error": "ValidationError"},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    extra = {}
    if settings.debug:
        extra["trace"] = format_exception(type(exc), exc, exc.__traceback__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("internal_error", "Internal server error", **extra),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
