"""
Exception handlers producing the ``{"success": false, "message": ...}`` envelope.

Every failure leaves the API in this shape; internal reasons (which secret
failed, stack traces) are logged but never returned.
"""

import logfire

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from schema.security import ErrorResponse
from utils.exceptions import AuthError, InvalidToken, MalformedRequest


def _error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(message=message).model_dump(),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error envelope handlers on ``app``."""

    @app.exception_handler(AuthError)
    async def handle_auth_error(request: Request, exc: AuthError):
        logfire.info(
            "{error} on {method} {path}",
            error=type(exc).__name__,
            method=request.method,
            path=request.url.path,
            status_code=exc.status_code,
        )
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, InvalidToken) else None
        return _error_response(exc.status_code, exc.message, headers)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        # Missing or malformed fields are client-fixable and never counted as failed logins
        logfire.info(
            "Validation error on {method} {path}",
            method=request.method,
            path=request.url.path,
            errors=[error.get("loc") for error in exc.errors()],
        )
        error = MalformedRequest()
        return _error_response(error.status_code, error.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return _error_response(exc.status_code, message, getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logfire.error(
            "Unhandled error on {method} {path}: {error}",
            method=request.method,
            path=request.url.path,
            error=repr(exc),
        )
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
