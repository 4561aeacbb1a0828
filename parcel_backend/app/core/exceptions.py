"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from decimal import Decimal
from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

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


class OrderValidationError(AppException):
    """Raised when an order request fails business validation."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_ORDER",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class PricingError(OrderValidationError):
    """Raised when a parcel cannot be priced (e.g. overweight)."""


class PriceMismatchError(AppException):
    """Raised when the client-declared amount disagrees with the server price."""

    def __init__(self, expected: Decimal, declared: Decimal):
        super().__init__(
            message=f"Invalid price calculation. Expected: ${expected:.2f}",
            error_code="ERR_PRICE_MISMATCH",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"expected": f"{expected:.2f}", "declared": f"{declared:.2f}"}
        )


class MalformedWebhookError(AppException):
    """Raised when a webhook body cannot be parsed into a known shape."""

    def __init__(self, message: str = "Invalid webhook payload", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_WEBHOOK_PAYLOAD",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class WebhookSignatureError(AppException):
    """Raised when a webhook signature is missing or does not match."""

    def __init__(self, message: str = "Invalid signature", status_code: int = status.HTTP_400_BAD_REQUEST):
        super().__init__(
            message=message,
            error_code="ERR_WEBHOOK_SIGNATURE",
            status_code=status_code
        )


class ProviderError(AppException):
    """Base class for failures talking to an external provider."""

    def __init__(self, provider: str, message: str, error_code: str, transient: bool = False,
                 upstream_status: int = None):
        self.provider = provider
        self.transient = transient
        self.upstream_status = upstream_status
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"provider": provider, "upstream_status": upstream_status}
        )


class PaymentProviderError(ProviderError):
    """Raised when the payment provider is unreachable or rejects a request."""

    def __init__(self, message: str, transient: bool = False, upstream_status: int = None):
        super().__init__("payment", message, "ERR_PAYMENT_PROVIDER", transient, upstream_status)


class DeliveryProviderError(ProviderError):
    """
    Raised when the delivery provider is unreachable or rejects a request.

    `transient` is True for network errors, timeouts and 5xx responses,
    which are worth retrying; validation (4xx) errors are not.
    """

    def __init__(self, message: str, transient: bool = False, upstream_status: int = None):
        super().__init__("delivery", message, "ERR_DELIVERY_PROVIDER", transient, upstream_status)


class ShortCodeExhaustedError(AppException):
    """Raised when no unused short code could be drawn."""

    def __init__(self, attempts: int):
        super().__init__(
            message=f"Could not allocate a unique tracking code after {attempts} attempts",
            error_code="ERR_SHORT_CODE",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
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
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
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
    """Handler for unhandled exceptions. Internal detail never leaves the server."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
