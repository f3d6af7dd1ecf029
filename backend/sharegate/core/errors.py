"""
Error Handling Module

Defines the outcomes a share-link request can end in. Every error carries the
HTTP status it maps to and a message that is safe to show to the client.
Only InternalError hides its cause: the detail is logged server-side under a
generated error id and the client gets a generic, retry-safe message.
"""

import secrets
import time
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(Enum):
    """Error category enumeration, rendered as the `reason` of an error body."""

    INVALID_INPUT = "invalid_input"
    RATE_LIMITED = "rate_limited"
    INVALID_LINK = "invalid_link"
    LINK_EXPIRED = "expired"
    LINK_EXHAUSTED = "exhausted"
    INVALID_PASSWORD = "invalid_password"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL_ERROR = "internal_error"


ERROR_MESSAGES: Dict[ErrorCategory, str] = {
    ErrorCategory.INVALID_INPUT: "Token is required",
    ErrorCategory.RATE_LIMITED: "Too many download attempts. Please try again later.",
    ErrorCategory.INVALID_LINK: "Invalid or expired link",
    ErrorCategory.LINK_EXPIRED: "This link has expired",
    ErrorCategory.LINK_EXHAUSTED: "This link has reached its download limit",
    ErrorCategory.INVALID_PASSWORD: "Incorrect password for this link",
    ErrorCategory.NOT_FOUND: "Not found",
    ErrorCategory.CONFLICT: "Conflict",
    ErrorCategory.INTERNAL_ERROR: "An unexpected error occurred. Please try again.",
}


def generate_error_id() -> str:
    """Error id shared between the server log line and the client response."""
    return f"ERR_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


class ShareError(Exception):
    """
    Base exception for share-link outcomes.

    Subclasses fix the category and status code; the message defaults to the
    category's user-facing text.
    """

    category: ErrorCategory = ErrorCategory.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: Optional[str] = None, original_error: Exception = None):
        self.message = message or ERROR_MESSAGES[self.category]
        self.original_error = original_error
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "reason": self.category.value}


class InvalidInput(ShareError):
    category = ErrorCategory.INVALID_INPUT
    status_code = 400


class RateLimited(ShareError):
    """Raised when either attempt window is full. Never says which one."""

    category = ErrorCategory.RATE_LIMITED
    status_code = 403

    def __init__(self, original_error: Exception = None):
        super().__init__(original_error=original_error)


class InvalidLink(ShareError):
    category = ErrorCategory.INVALID_LINK
    status_code = 404


class LinkExpired(ShareError):
    category = ErrorCategory.LINK_EXPIRED
    status_code = 403


class LinkExhausted(ShareError):
    category = ErrorCategory.LINK_EXHAUSTED
    status_code = 403


class InvalidPassword(ShareError):
    category = ErrorCategory.INVALID_PASSWORD
    status_code = 403


class NotFoundError(ShareError):
    category = ErrorCategory.NOT_FOUND
    status_code = 404


class ConflictError(ShareError):
    category = ErrorCategory.CONFLICT
    status_code = 409


class InternalError(ShareError):
    """
    Store or object-storage failure.

    The message given here is for the server log only; `to_dict` always
    returns the generic text plus the error id.
    """

    category = ErrorCategory.INTERNAL_ERROR
    status_code = 500

    def __init__(self, message: Optional[str] = None, original_error: Exception = None):
        super().__init__(message, original_error)
        self.error_id = generate_error_id()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": ERROR_MESSAGES[ErrorCategory.INTERNAL_ERROR],
            "reason": self.category.value,
            "errorId": self.error_id,
        }
