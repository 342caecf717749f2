"""
Centralized Error Handlers for Link Station

Every failure leaves the API in the same envelope:

    {"success": false, "error": "<ErrorCode>", "message": "...",
     "status_code": 409, "details": {...}}

Domain 4xx outcomes (room full, already voted, ...) are normal game flow
and only logged at DEBUG. Store failures and unexpected exceptions are
logged at ERROR.
"""

from traceback import format_exc
from typing import Any, Optional, Union

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from linkstation.config import Settings, settings as default_settings
from linkstation.exceptions import AppException, BackendFailureException, ErrorCode
from linkstation.utils.logging_config import get_logger


logger = get_logger(__name__)

# Status codes raised by the framework itself (unknown route, wrong method...)
HTTP_STATUS_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.ADMIN_SESSION_EXPIRED,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.NOT_FOUND,
    405: ErrorCode.VALIDATION_ERROR,
    422: ErrorCode.VALIDATION_ERROR,
}


class ErrorResponse:
    """Standard error response body"""

    @staticmethod
    def create(
        error_code: Union[ErrorCode, str],
        message: str,
        status_code: int,
        details: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": False,
            "error": error_code.value if isinstance(error_code, ErrorCode) else error_code,
            "message": message,
            "status_code": status_code,
        }
        if details:
            body["details"] = details
        return body

    @classmethod
    def json(
        cls,
        error_code: Union[ErrorCode, str],
        message: str,
        status_code: int,
        details: Optional[dict[str, Any]] = None,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=cls.create(error_code, message, status_code, details),
        )


def log_error(request: Request, error: Exception, level: str = "ERROR", **extra: Any) -> None:
    """Log a failed request with method, path and client bound to the record."""
    client = request.client.host if request.client else None
    logger.bind(
        method=request.method,
        path=request.url.path,
        client=client,
        error_type=type(error).__name__,
        **extra,
    ).log(level, f"{request.method} {request.url.path} -> {type(error).__name__}: {error}")


def app_exception_level(exc: AppException) -> str:
    if isinstance(exc, BackendFailureException) or exc.status_code >= 500:
        return "ERROR"
    return "DEBUG"


def validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    """Flatten pydantic errors; the leading 'body' / 'query' location is dropped."""
    return [
        {
            "field": ".".join(str(loc) for loc in error["loc"][1:]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]


def register_exception_handlers(app: FastAPI, config: Optional[Settings] = None) -> None:
    """Install all exception handlers on the application."""
    config = config or default_settings

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        log_error(request, exc, app_exception_level(exc), code=exc.code.value)
        return ErrorResponse.json(exc.code, exc.message, exc.status_code, exc.details or None)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        log_error(request, exc, "WARNING")
        return ErrorResponse.json(
            HTTP_STATUS_CODES.get(exc.status_code, ErrorCode.INTERNAL_SERVER_ERROR),
            str(exc.detail) if exc.detail else "HTTP error",
            exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = validation_errors(exc)
        log_error(request, exc, "WARNING", validation_errors=errors)
        return ErrorResponse.json(
            ErrorCode.VALIDATION_ERROR,
            "Validation error, please check your input",
            422,
            {"validation_errors": errors},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Traceback is only returned to the client in DEBUG mode."""
        log_error(request, exc, "ERROR")
        if config.DEBUG:
            return ErrorResponse.json(
                ErrorCode.INTERNAL_SERVER_ERROR,
                f"{type(exc).__name__}: {exc}",
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                {"traceback": format_exc()},
            )
        return ErrorResponse.json(
            ErrorCode.INTERNAL_SERVER_ERROR,
            "An unexpected error occurred. Please try again later.",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
