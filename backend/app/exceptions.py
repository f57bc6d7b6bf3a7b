"""
Jotter Backend — Custom Exception Hierarchy
===========================================

What:  Application-specific exceptions, each mapped to one HTTP status.
How:   Every exception carries a user-facing `message` and a `context` dict.
       The handlers in main.py log the context and return the message.

Exception Hierarchy:
    JotterError (base)
    ├── ValidationError        → 400 Bad Request
    ├── NotFoundError          → 404 Not Found
    ├── StorageError           → 500 Internal Server Error (generic message)
    └── ConfigurationError     → startup abort (never reaches a client)
"""

from typing import Any, Dict, Optional


class JotterError(Exception):
    """
    Base exception for all Jotter application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(JotterError):
    """
    Raised when client input fails validation.

    When:    Empty text, text that normalizes to an empty key, blank id,
             malformed request body.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(JotterError):
    """
    Raised when a requested resource does not exist.

    When:    DELETE /api/entries/{id} with an unknown id.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class StorageError(JotterError):
    """
    Raised when the entry store fails unexpectedly.

    What:    File I/O error, lost database connection, unexpected driver error.
    HTTP:    500 Internal Server Error

    The client always receives a generic message; the original exception
    type and details are only logged.
    """

    def __init__(
        self,
        message: str = "A storage error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ConfigurationError(JotterError):
    """Required configuration is missing or the store cannot be reached at startup."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
