"""
Domain errors for habit-service

Every error knows its public kind and HTTP status so the API layer can
render it without inspecting the type.
"""
from typing import Any, Dict, Optional


class HabitTrackerError(Exception):
    """Base class for all habit-service errors"""

    kind = "InternalError"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class ValidationError(HabitTrackerError):
    """Malformed or missing input"""
    kind = "InvalidRequest"
    status_code = 400


class AuthError(HabitTrackerError):
    """Missing or invalid identity"""
    kind = "Unauthorized"
    status_code = 401


class NotFoundError(HabitTrackerError):
    """Referenced record does not exist for this user"""
    kind = "NotFound"
    status_code = 404


class InvalidStateError(HabitTrackerError):
    """Business rule violation"""
    kind = "InvalidState"
    status_code = 400


class DuplicateError(InvalidStateError):
    """Habit already completed on this calendar day"""
    kind = "Duplicate"

    def __init__(self, message: str, completed_at: Optional[str] = None):
        super().__init__(message)
        self.completed_at = completed_at

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["completedAt"] = self.completed_at
        return body


class StorageError(HabitTrackerError):
    """Underlying key-value store failed (timeout, throttling, connectivity)"""

    def __init__(self, message: str, table: Optional[str] = None, operation: Optional[str] = None):
        super().__init__(message)
        self.table = table
        self.operation = operation


class ConditionFailedError(StorageError):
    """A conditional write was rejected by the store"""


class ConfigurationError(HabitTrackerError):
    """Required environment wiring is missing"""
