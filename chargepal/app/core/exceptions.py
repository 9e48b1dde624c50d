"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict, List

logger = logging.getLogger("chargepal")


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


class DuplicateLicensePlateError(AppException):
    """Raised when a license plate is already used by another vehicle."""

    def __init__(self, license_plate: str):
        super().__init__(
            message=f"License plate {license_plate} is already registered",
            error_code="ERR_VEHICLE_PLATE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"license_plate": license_plate}
        )


# Sync errors. All of them are retryable by the caller.

class SyncError(AppException):
    """Base class for sync failures; ``message`` is user-facing text."""


class ConfigMissingError(SyncError):
    """Raised when the remote project URL or API key is not configured."""

    def __init__(self):
        super().__init__(
            message="Sync is not configured: project URL and API key are required",
            error_code="ERR_SYNC_CONFIG",
            status_code=status.HTTP_400_BAD_REQUEST
        )


class MissingIdentityKeyError(SyncError):
    """Raised when vehicles without a license plate block a sync."""

    def __init__(self, vehicle_names: List[str]):
        self.vehicle_names = vehicle_names
        super().__init__(
            message=(
                f"Sync failed: {len(vehicle_names)} vehicle(s) have no license plate "
                f"({', '.join(vehicle_names)}). The license plate identifies a vehicle across devices."
            ),
            error_code="ERR_SYNC_IDENTITY",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"vehicles": vehicle_names}
        )


class RemoteOperationFailedError(SyncError):
    """Raised when a remote store call fails during a sync step."""

    def __init__(self, step: str, error: str):
        self.step = step
        self.error = error
        super().__init__(
            message=f"Sync failed while trying to {step}: {error}",
            error_code="ERR_SYNC_REMOTE",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"step": step, "error": error}
        )


class SyncInProgressError(SyncError):
    """Raised when the ledger lock is held by another sync or write."""

    def __init__(self):
        super().__init__(
            message="Another sync or ledger update is in progress, try again shortly",
            error_code="ERR_SYNC_BUSY",
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
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
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
        }
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
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
