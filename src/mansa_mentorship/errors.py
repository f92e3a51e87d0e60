"""
Domain-specific exceptions for the Mansa mentorship client.

Every failure a caller can see is one of these. They carry a user-facing
message, a machine-readable code and a details dict, and the auth errors
also carry the page the caller should redirect to.
"""

from typing import Any, Dict, Optional

# Validation error codes
INVALID_TIME_RANGE = "INVALID_TIME_RANGE"
PAST_DATE = "PAST_DATE"
MISSING_FIELD = "MISSING_FIELD"
BIO_TOO_SHORT = "BIO_TOO_SHORT"
NO_EXPERTISE = "NO_EXPERTISE"
INVALID_TRANSITION = "INVALID_TRANSITION"


class MentorshipException(Exception):
    """Base exception for all mentorship client errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationException(MentorshipException):
    """Raised when client-side validation fails. Nothing was sent."""

    @property
    def errors(self) -> Dict[str, str]:
        """Per-field (or per-slot) messages, if this error aggregates several."""
        return dict(self.details.get("errors", {}))


class InvalidTransitionException(ValidationException):
    """Raised when a booking action is not allowed for its status or actor."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, code=INVALID_TRANSITION, details=details)


class UnauthorizedException(MentorshipException):
    """Raised when the session is missing or expired."""

    def __init__(
        self,
        message: str = "Your session has expired. Please log in again.",
        *,
        redirect_to: str = "/login",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="UNAUTHORIZED", details=details)
        self.redirect_to = redirect_to


class ForbiddenException(MentorshipException):
    """Raised when the session lacks the role for an action."""

    def __init__(
        self,
        message: str = "You do not have permission to perform this action.",
        *,
        redirect_to: str = "/community/mentorship",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="FORBIDDEN", details=details)
        self.redirect_to = redirect_to


class NotFoundException(MentorshipException):
    """Raised when a requested resource is not found."""


class ConflictException(MentorshipException):
    """Raised when a write was based on a stale version of the record."""

    def __init__(
        self,
        message: str = "This record was modified elsewhere. Please refresh and try again.",
        *,
        current_version: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="CONFLICT", details=details)
        self.current_version = current_version


class BackendException(MentorshipException):
    """Raised for any other non-2xx response or transport failure."""

    def __init__(
        self,
        message: str = "Request failed",
        *,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="BACKEND_ERROR", details=details)
        self.status_code = status_code


class OperationInProgressException(MentorshipException):
    """Raised when an action is submitted while the same action is in flight."""

    def __init__(self, operation: str) -> None:
        super().__init__(
            f"{operation} is already in progress",
            code="OPERATION_IN_PROGRESS",
            details={"operation": operation},
        )


class ScopeClosedException(MentorshipException):
    """Raised when work is started on a service that has been closed."""

    def __init__(self) -> None:
        super().__init__("This view has been closed", code="SCOPE_CLOSED")
