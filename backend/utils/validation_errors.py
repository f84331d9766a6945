"""
Structured Error Utilities

Standardized error bodies so the operator UI can tell validation errors,
authorization failures, vanished records and provider outages apart.

Error Response Format:
{
    "error": "invalid_parameter" | "validation_error" | "forbidden" | "not_found" | "unavailable",
    "parameter": "retention_days",
    "message": "retention_days must be at least 1"
}
"""

from fastapi import HTTPException, status
from typing import Optional, Any

from identity_sync.errors import (
    IdentitySyncError,
    AuthorizationError,
    NotFoundError,
    TransientNetworkError,
    ValidationError,
)


class ValidationErrorResponse:
    """Structured error response builder."""

    @staticmethod
    def invalid_parameter(parameter: str, message: str, value: Optional[Any] = None) -> dict:
        """
        Create an invalid parameter error response.

        Args:
            parameter: Name of the invalid parameter
            message: Description of the validation error
            value: The invalid value (optional, for debugging)

        Returns:
            Structured error dict
        """
        response = {
            "error": "invalid_parameter",
            "parameter": parameter,
            "message": message
        }
        if value is not None:
            response["received_value"] = str(value)[:100]  # Truncate for safety
        return response

    @staticmethod
    def sync_error(error: IdentitySyncError, code: str) -> dict:
        response = {
            "error": code,
            "error_type": error.error_type,
            "message": error.message
        }
        if error.external_id:
            response["external_id"] = error.external_id
        if error.account_id is not None:
            response["account_id"] = error.account_id
        return response


def raise_invalid_parameter(parameter: str, message: str, value: Optional[Any] = None):
    """
    Raise HTTPException with structured invalid parameter error.

    Raises:
        HTTPException with 400 status and structured error body
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=ValidationErrorResponse.invalid_parameter(parameter, message, value)
    )


_SYNC_ERROR_STATUS = [
    (ValidationError, status.HTTP_400_BAD_REQUEST, "validation_error"),
    (AuthorizationError, status.HTTP_403_FORBIDDEN, "forbidden"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "not_found"),
    (TransientNetworkError, status.HTTP_503_SERVICE_UNAVAILABLE, "unavailable"),
]


def http_error_for(error: IdentitySyncError) -> HTTPException:
    """Map an identity sync error onto an HTTPException."""
    for error_class, status_code, code in _SYNC_ERROR_STATUS:
        if isinstance(error, error_class):
            return HTTPException(
                status_code=status_code,
                detail=ValidationErrorResponse.sync_error(error, code)
            )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=ValidationErrorResponse.sync_error(error, "sync_error")
    )
