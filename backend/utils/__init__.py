"""
Utils Package

Provides utility modules for:
- validation_errors: Structured HTTP error bodies
"""

from .validation_errors import (
    ErrorResponse,
    raise_validation_error,
    raise_conflict,
    raise_internal_error,
    raise_forbidden,
)

__all__ = [
    'ErrorResponse',
    'raise_validation_error',
    'raise_conflict',
    'raise_internal_error',
    'raise_forbidden',
]
