"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
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


class InvalidRequestError(AppException):
    """Raised when a request fails domain validation."""

    def __init__(self, message: str = "Invalid request", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_BAD_REQUEST_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class InvalidAmountError(AppException):
    """Raised when a monetary amount is out of range."""

    def __init__(self, amount: Any, message: str = "Amount must be greater than zero"):
        super().__init__(
            message=message,
            error_code="ERR_BAD_REQUEST_002",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"amount": str(amount)}
        )


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None, error_code: str = "ERR_NOT_FOUND_001"):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class VendorNotFoundError(ResourceNotFoundError):
    def __init__(self, vendor_id: Any):
        super().__init__("Vendor", vendor_id, error_code="ERR_NOT_FOUND_002")


class WalletNotFoundError(ResourceNotFoundError):
    def __init__(self, vendor_id: Any):
        super().__init__("Wallet for vendor", vendor_id, error_code="ERR_NOT_FOUND_003")


class TransactionNotFoundError(ResourceNotFoundError):
    """Raised when a payment transaction cannot be resolved."""

    def __init__(self, reference_id: Any = None, gateway_payment_id: Any = None):
        super().__init__("Payment transaction", reference_id or gateway_payment_id, error_code="ERR_NOT_FOUND_004")
        self.details.update({
            "reference_id": reference_id,
            "gateway_payment_id": gateway_payment_id,
        })


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class MalformedWebhookError(AppException):
    """Raised when a webhook body cannot be parsed or lacks identifiers."""

    def __init__(self, message: str = "Malformed webhook payload"):
        super().__init__(
            message=message,
            error_code="ERR_WEBHOOK_001",
            status_code=status.HTTP_400_BAD_REQUEST
        )


class InvalidSignatureError(AppException):
    def __init__(self, message: str = "Invalid signature"):
        super().__init__(
            message=message,
            error_code="ERR_WEBHOOK_002",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class WebhookConfigurationError(AppException):
    """Raised when webhook verification is required but no secret is configured."""

    def __init__(self):
        super().__init__(
            message="Webhook signing secret is not configured",
            error_code="ERR_WEBHOOK_003",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )


class GatewayAuthFailedError(AppException):
    """Raised when the gateway access token could not be refreshed."""

    def __init__(self, message: str = "Payment gateway authentication failed", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_GATEWAY_001",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=details
        )


class GatewayRequestFailedError(AppException):
    """Raised when the gateway rejects a payment link request."""

    def __init__(self, message: str = "Payment gateway request failed", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_GATEWAY_002",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details=details
        )


class TripSourceUnavailableError(AppException):
    """Raised when any trip-completion source cannot be read."""

    def __init__(self, source: str):
        super().__init__(
            message=f"Trip completion source '{source}' is unavailable",
            error_code="ERR_UPSTREAM_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details={"source": source}
        )


class PersistenceFailedError(AppException):
    """
    Raised when local bookkeeping could not be written.

    When `reconciliation_required` is set, an external side effect already
    happened and the record must be reconciled out-of-band.
    """

    def __init__(self, message: str = "Failed to persist record", reconciliation_required: bool = False, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERSISTENCE_001",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details
        )
        self.reconciliation_required = reconciliation_required
        self.details["reconciliation_required"] = reconciliation_required


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
                "errors": jsonable_errors(exc)
            }
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances (e.g. ValueError from validators)
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {key: str(value) for key, value in error["ctx"].items()}
        errors.append(error)
    return errors


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s: %s", type(exc).__name__, exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
