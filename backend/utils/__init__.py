"""
Utils Package

Provides utility modules for:
- validation_errors: structured HTTP error bodies for the operator API
"""

from .validation_errors import (
    ValidationErrorResponse,
    raise_invalid_parameter,
    http_error_for,
)

__all__ = [
    'ValidationErrorResponse',
    'raise_invalid_parameter',
    'http_error_for',
]
