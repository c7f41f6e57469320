import uuid
from datetime import UTC, datetime
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from starforge.config.logging import add_request_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class StarForgeException(Exception):
    """Base exception for the StarForge job platform."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(StarForgeException):
    """Raised when a job request is malformed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_422_UNPROCESSABLE_ENTITY, details)


class NotFoundError(StarForgeException):
    """Raised when a job (or other resource) does not exist."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status.HTTP_404_NOT_FOUND, details)


class HandlerNotFoundError(StarForgeException, KeyError):
    """Raised when no job handler is registered for a job type.

    Also a KeyError so registry lookups behave like mapping lookups.
    """

    def __init__(self, job_type: str):
        super().__init__(
            f"No handler registered for job type '{job_type}'",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"job_type": job_type},
        )
        self.job_type = job_type

    def __str__(self) -> str:
        return self.message


class JobTimeoutError(StarForgeException):
    """Raised when a handler overruns the worker's per-job deadline."""

    def __init__(self, timeout_s: float):
        super().__init__(
            f"Job timed out after {timeout_s}s",
            status.HTTP_504_GATEWAY_TIMEOUT,
            {"timeout_s": timeout_s},
        )
        self.timeout_s = timeout_s


def create_error_response(
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    """Create standardized error response envelope."""
    return {
        "ok": False,
        "error": {
            "message": message,
            "code": status_code,
            "details": details or {},
        },
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def create_success_response(
    data: Any, message: str | None = None, request_id: str | None = None
) -> dict[str, Any]:
    """Create standardized success response envelope."""
    return {
        "ok": True,
        "data": data,
        "message": message,
        "request_id": request_id,
        "timestamp": datetime.now(UTC).isoformat(),
    }


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


def _error_json(
    request: Request,
    status_code: int,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=create_error_response(
            status_code=status_code,
            message=message,
            details=details,
            request_id=_request_id(request),
        ),
    )


async def starforge_exception_handler(
    request: Request, exc: StarForgeException
) -> JSONResponse:
    """Handle application-specific exceptions."""
    logger.warning(
        "request_failed",
        exception=exc.__class__.__name__,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
    )
    return _error_json(request, exc.status_code, exc.message, exc.details)


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Wrap FastAPI body/query validation failures in the error envelope."""
    errors = jsonable_encoder(exc.errors())
    logger.info("request_invalid", errors=len(errors))
    return _error_json(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "Request validation failed",
        {"errors": errors},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTP exceptions (unknown routes, bad methods)."""
    logger.info("http_exception", status_code=exc.status_code, detail=exc.detail)
    return _error_json(request, exc.status_code, str(exc.detail))


async def storage_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Report job store outages as 503 rather than a generic 500."""
    logger.error(
        "job_store_unavailable", exception=exc.__class__.__name__, exc_info=True
    )
    return _error_json(
        request, status.HTTP_503_SERVICE_UNAVAILABLE, "Job store unavailable"
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(
        "unhandled_exception",
        exception=exc.__class__.__name__,
        message=str(exc),
        exc_info=True,
    )
    return _error_json(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"
    )


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a correlation id to each request, reusing the caller's if sent."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        add_request_context(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
