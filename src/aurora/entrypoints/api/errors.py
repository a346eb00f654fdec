"""Translation of exceptions into the JSON error envelope.

Every error response has the shape ``{"success": false, "message": ..., "code": ...}``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from aurora.core.exceptions import AuroraError

logger = structlog.get_logger()

_STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
}


def error_response(
    status_code: int,
    message: str,
    code: str,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build an error envelope response."""
    if status_code == 401:
        headers = {"WWW-Authenticate": "Bearer", **(headers or {})}
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "code": code},
        headers=headers,
    )


def register_exception_handlers(app: FastAPI, *, expose_internal_errors: bool = False) -> None:
    """Install the handlers that produce the error envelope.

    Args:
        app: Application to configure.
        expose_internal_errors: Return the real message of unexpected
            exceptions instead of a generic one (development only).
    """

    async def handle_aurora_error(request: Request, exc: AuroraError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=exc.message)
        return error_response(exc.status_code, exc.message, exc.code)

    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        first = errors[0] if errors else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        detail = first.get("msg", "Invalid request")
        message = f"{location}: {detail}" if location else detail
        return error_response(400, message, "bad_request")

    async def handle_http_exception(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        code = _STATUS_CODES.get(exc.status_code, "error")
        return error_response(exc.status_code, str(exc.detail), code, headers=exc.headers)

    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", path=request.url.path, error_type=type(exc).__name__)
        message = str(exc) if expose_internal_errors else "Internal server error"
        return error_response(500, message, "internal_error")

    app.add_exception_handler(AuroraError, handle_aurora_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(Exception, handle_unexpected)
