from typing import Any, Dict, Optional


class TutorHubException(Exception):
    """Base exception for TutorHub application"""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": "error",
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(TutorHubException):
    """Exception raised for malformed or out-of-range input"""
    status_code = 400
    code = "validation_error"


class InvalidPreconditionError(ValidationError):
    """Exception raised when an entity is not in the state an operation requires"""
    code = "invalid_precondition"


class NotFoundError(TutorHubException):
    """Exception raised when a booking, tutor or user does not exist"""
    status_code = 404
    code = "not_found"


class AuthenticationError(TutorHubException):
    """Exception raised for authentication errors"""
    status_code = 401
    code = "authentication_error"


class ForbiddenError(TutorHubException):
    """Exception raised for role or ownership violations"""
    status_code = 403
    code = "forbidden"


class InvalidTransitionError(TutorHubException):
    """Exception raised for terminal-state or unsupported status changes"""
    status_code = 409
    code = "invalid_transition"


class CancellationPolicyError(InvalidTransitionError):
    """Exception raised when a minimum-notice window has already passed"""
    code = "notice_period_violation"


class SchedulingConflictError(TutorHubException):
    """Exception raised when a time window overlaps an active booking"""
    status_code = 409
    code = "scheduling_conflict"


class DuplicateRatingError(TutorHubException):
    """Exception raised when a booking has already been rated"""
    status_code = 409
    code = "duplicate_rating"


class TransientStoreError(TutorHubException):
    """Exception raised for database failures that are safe to retry"""
    status_code = 503
    code = "transient_store_error"


class NotificationError(TutorHubException):
    """Exception raised for notification errors"""
    pass
