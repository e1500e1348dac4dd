"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from typing import Any, Dict

from driver_backend.app.domain.ports import StoreError

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class TripTransitionError(AppException):
    """Raised at the HTTP boundary when a trip phase transition did not happen."""

    _STATUS_BY_KIND = {
        "not_found": (status.HTTP_404_NOT_FOUND, "ERR_TRIP_NOT_FOUND"),
        "precondition": (status.HTTP_409_CONFLICT, "ERR_TRIP_PRECONDITION"),
        "busy": (status.HTTP_409_CONFLICT, "ERR_TRIP_BUSY"),
        "store": (status.HTTP_503_SERVICE_UNAVAILABLE, "ERR_TRIP_STORE"),
    }

    def __init__(self, kind: str, message: str, trip_id: Any = None):
        status_code, error_code = self._STATUS_BY_KIND.get(
            kind, (status.HTTP_500_INTERNAL_SERVER_ERROR, "ERR_TRIP_UNKNOWN")
        )
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details={"trip_id": trip_id, "kind": kind}
        )


class ShiftError(AppException):
    """Raised when a clock-in/clock-out rule is violated."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="ERR_SHIFT_001",
            status_code=status.HTTP_409_CONFLICT
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_encoder(exc.errors())
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    """Handler for record store failures that reached the HTTP layer."""
    logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "error_code": "ERR_STORE_UNAVAILABLE",
            "message": "The data store is temporarily unavailable",
            "details": {}
        }
    )
