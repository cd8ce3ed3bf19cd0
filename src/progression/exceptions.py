"""
Standardized exception hierarchy for the progression engine
Provides rich context, consistent logging, and user-friendly error messages
"""

from datetime import datetime, timezone
from typing import Optional, Dict, Any
from uuid import uuid4
import logging

logger = logging.getLogger(__name__)


class ProgressionError(Exception):
    """
    Base exception for all progression engine errors

    Provides:
    - Automatic timestamping
    - Request ID for tracing
    - User-friendly messages
    - Structured context
    - Automatic logging
    - HTTP status for the API layer

    Example:
        raise ProgressionError(
            message="Failed to save avatar",
            user_id="user-1",
            operation="award_xp",
            context={"amount": 50}
        )
    """

    status_code: int = 500
    log_level: int = logging.ERROR

    def __init__(
        self,
        message: str,
        user_id: Optional[str] = None,
        request_id: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        user_message: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.user_id = user_id
        self.request_id = request_id or str(uuid4())
        self.operation = operation
        self.context = context or {}
        self.cause = cause
        self.user_message = user_message or "An error occurred. Please try again."
        self.timestamp = datetime.now(timezone.utc)

        # Auto-log on creation
        self._log_error()

    def _log_error(self) -> None:
        """Log error with full context"""
        log_data = {
            "error_type": self.__class__.__name__,
            "error_message": self.message,  # Avoid conflict with logging's 'message' field
            "request_id": self.request_id,
            "user_id": self.user_id,
            "operation": self.operation,
            "error_context": self.context,
            "timestamp": self.timestamp.isoformat()
        }

        if self.cause:
            log_data["cause"] = str(self.cause)
            logger.log(
                self.log_level,
                f"{self.__class__.__name__}: {self.message}",
                extra=log_data,
                exc_info=self.cause,
            )
        else:
            logger.log(self.log_level, f"{self.__class__.__name__}: {self.message}", extra=log_data)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for API responses"""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "user_message": self.user_message,
            "request_id": self.request_id,
            "timestamp": self.timestamp.isoformat()
        }


# ==========================================
# Validation Errors (Caller Input)
# ==========================================

class ValidationError(ProgressionError):
    """
    Raised when caller input fails validation

    Example:
        raise ValidationError(
            message="Amount must be positive",
            field="amount",
            value=-5,
            user_id="user-1"
        )
    """

    status_code = 400
    log_level = logging.WARNING

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs
    ):
        self.field = field
        self.value = value
        kwargs.setdefault("user_message", f"Invalid {field}: {message}" if field else message)
        super().__init__(
            message=message,
            context={"field": field, "value": value},
            **kwargs
        )


class InvalidAmount(ValidationError):
    """XP amount is not a positive integer"""

    def __init__(self, value: Any, **kwargs):
        super().__init__(
            message=f"XP amount must be a positive integer, got {value!r}",
            field="amount",
            value=value,
            **kwargs
        )


class UnknownSkill(ValidationError):
    """Skill id is outside the fixed skill enumeration"""

    def __init__(self, value: Any, **kwargs):
        super().__init__(
            message=f"Unknown skill {value!r}",
            field="skill",
            value=value,
            **kwargs
        )


class InvalidCategory(ValidationError):
    """Achievement category is outside the fixed enumeration"""

    def __init__(self, value: Any, **kwargs):
        super().__init__(
            message=f"Unknown achievement category {value!r}",
            field="category",
            value=value,
            **kwargs
        )


# ==========================================
# Campus Presence Errors
# ==========================================

class PresenceError(ProgressionError):
    """Base class for campus presence failures"""

    log_level = logging.INFO

    def __init__(self, message: str, location_id: Optional[str] = None, **kwargs):
        self.location_id = location_id
        context = kwargs.pop("context", None) or {}
        context.setdefault("location_id", location_id)
        super().__init__(message=message, context=context, **kwargs)


class LocationNotFound(PresenceError):
    """Requested campus location does not exist"""

    status_code = 404

    def __init__(self, location_id: str, **kwargs):
        super().__init__(
            message=f"Campus location {location_id!r} not found",
            location_id=location_id,
            user_message="That campus location does not exist.",
            **kwargs
        )


class ActivityNotFound(PresenceError):
    """Location has no activity with the requested id"""

    status_code = 404

    def __init__(self, location_id: str, activity_id: str, **kwargs):
        self.activity_id = activity_id
        super().__init__(
            message=f"Activity {activity_id!r} not found in {location_id!r}",
            location_id=location_id,
            user_message="That activity is not available here.",
            context={"activity_id": activity_id},
            **kwargs
        )


class CapacityExceeded(PresenceError):
    """Location is already at capacity"""

    status_code = 409

    def __init__(self, location_id: str, capacity: int, **kwargs):
        self.capacity = capacity
        super().__init__(
            message=f"Campus location {location_id!r} is at full capacity ({capacity})",
            location_id=location_id,
            user_message="This location is at full capacity. Please try again later.",
            context={"capacity": capacity},
            **kwargs
        )


class AccessDenied(PresenceError):
    """User does not meet the location's access requirements"""

    status_code = 403

    def __init__(self, location_id: str, reason: str, **kwargs):
        self.reason = reason
        super().__init__(
            message=f"Access denied to {location_id!r}: {reason}",
            location_id=location_id,
            user_message=f"You can't enter this location yet: {reason}.",
            context={"reason": reason},
            **kwargs
        )


class NotAnOccupant(PresenceError):
    """Operation requires the user to be present in the location"""

    status_code = 409

    def __init__(self, location_id: str, **kwargs):
        super().__init__(
            message=f"User is not present in {location_id!r}",
            location_id=location_id,
            user_message="Join this location first.",
            **kwargs
        )


# ==========================================
# Storage Errors
# ==========================================

class StorageError(ProgressionError):
    """
    Transient storage failure (timeout, lost connection, query error).

    Retryable: the avatar is left unchanged.
    """

    status_code = 503

    def __init__(self, message: str = "Progress storage unavailable", **kwargs):
        kwargs.setdefault(
            "user_message",
            "We couldn't save your progress right now. Please try again in a moment."
        )
        super().__init__(message=message, **kwargs)


class ConflictRetryExhausted(StorageError):
    """Optimistic concurrency retries ran out; the caller should retry the whole operation"""

    def __init__(self, attempts: int, **kwargs):
        self.attempts = attempts
        super().__init__(
            message=f"Avatar update conflicted {attempts} times",
            context={"attempts": attempts},
            **kwargs
        )


# ==========================================
# Helper Functions
# ==========================================

def wrap_storage_exception(
    error: Exception,
    operation: str,
    user_id: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None
) -> ProgressionError:
    """
    Wrap backend exceptions (psycopg, redis, timeouts) into our exception hierarchy

    Example:
        try:
            await cur.execute(query)
        except psycopg.Error as e:
            raise wrap_storage_exception(e, operation="save_avatar", user_id="user-1")
    """
    if isinstance(error, ProgressionError):
        return error

    if isinstance(error, TimeoutError):
        return StorageError(
            message=f"{operation} timed out",
            user_id=user_id,
            operation=operation,
            context=context,
            cause=error
        )

    return StorageError(
        message=f"{operation} failed: {error}",
        user_id=user_id,
        operation=operation,
        context=context,
        cause=error
    )


class WriteConflict(Exception):
    """
    A concurrent writer changed the avatar between read and write.

    Internal signal for the compare-and-swap loop; callers see
    ConflictRetryExhausted once retries run out.
    """

    def __init__(self, user_id: str, expected_version: int):
        super().__init__(f"Avatar {user_id} changed (expected version {expected_version})")
        self.user_id = user_id
        self.expected_version = expected_version
