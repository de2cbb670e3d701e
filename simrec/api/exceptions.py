"""Custom exceptions for the SimRec API.

Defines specific exception types for better error handling and reporting.
"""

from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse


class SimRecAPIException(Exception):
    """Base exception for SimRec API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class ModelUnavailableError(SimRecAPIException):
    """Raised when no trained model can be served."""

    def __init__(self, model_dir: str, details: Optional[Dict[str, Any]] = None):
        message = f"Model not found at '{model_dir}'. Please train a model first."
        super().__init__(
            message=message,
            status_code=503,
            details=details or {"model_dir": model_dir},
        )


class InvalidQueryError(SimRecAPIException):
    """Raised when a query cannot be answered as posed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=400, details=details)


async def simrec_exception_handler(request: Request, exc: SimRecAPIException) -> JSONResponse:
    """Render a SimRecAPIException as a JSON error body."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "details": exc.details},
    )
