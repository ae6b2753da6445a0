"""
Structured Error Utilities

Provides standardized error bodies for the identity API so clients can
tell validation failures apart from conflicts and server errors.

Error Response Format:
{
    "error": "validation_error" | "conflict" | "internal_error" | "forbidden",
    "message": "Validation error",
    "errors": [{"field": "email", "message": "...", "type": "..."}]
}
"""

from fastapi import HTTPException, status
from typing import Optional, List, Dict, Any, NoReturn


class ErrorResponse:
    """Structured error response builder."""

    @staticmethod
    def validation_error(errors: List[Dict[str, Any]], message: str = "Validation error") -> dict:
        """
        Create a validation error response.

        Args:
            errors: Field-level errors ({field, message, type})
            message: Summary message

        Returns:
            Structured error dict
        """
        return {
            "error": "validation_error",
            "message": message,
            "errors": errors
        }

    @staticmethod
    def conflict(message: str) -> dict:
        """Create a conflict response (the caller may retry)."""
        return {
            "error": "conflict",
            "message": message
        }

    @staticmethod
    def internal_error(reference: Optional[str] = None) -> dict:
        """
        Create an opaque server error response.

        Args:
            reference: Error tracking event id, if one was captured
        """
        response = {
            "error": "internal_error",
            "message": "Internal server error"
        }
        if reference:
            response["reference"] = reference
        return response

    @staticmethod
    def forbidden(message: str) -> dict:
        return {
            "error": "forbidden",
            "message": message
        }


def raise_validation_error(errors: List[Dict[str, Any]], message: str = "Validation error") -> NoReturn:
    """
    Raise HTTPException with structured field errors.

    Raises:
        HTTPException with 400 status and structured error body
    """
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=ErrorResponse.validation_error(errors, message)
    )


def raise_conflict(message: str) -> NoReturn:
    """
    Raise HTTPException for a write conflict.

    Raises:
        HTTPException with 409 status and structured error body
    """
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=ErrorResponse.conflict(message)
    )


def raise_internal_error(reference: Optional[str] = None) -> NoReturn:
    """
    Raise HTTPException that hides the underlying failure.

    Raises:
        HTTPException with 500 status and structured error body
    """
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=ErrorResponse.internal_error(reference)
    )


def raise_forbidden(message: str) -> NoReturn:
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=ErrorResponse.forbidden(message)
    )
