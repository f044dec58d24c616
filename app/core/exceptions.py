from typing import Any, Dict

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    code = "SERVICE_ERROR"
    retryable = False

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def to_detail(self) -> Dict[str, Any]:
        """Body for HTTPException.detail: stable code plus human-readable message."""
        detail: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.retryable:
            detail["retryable"] = True
        return detail


class NotFound(ServiceError):
    """Referenced timetable entity is absent (or belongs to another school)."""

    code = "NOT_FOUND"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class UpstreamNotFound(ServiceError):
    """A collaborator lookup (class-subject catalog, enrollment, teacher) did not resolve."""

    code = "UPSTREAM_NOT_FOUND"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class DuplicateCell(ServiceError):
    code = "DUPLICATE_CELL"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class CellOccupied(ServiceError):
    code = "CELL_OCCUPIED"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class TeacherConflict(ServiceError):
    """Teacher would be in two classes at the same day/slot."""

    code = "TEACHER_CONFLICT"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class ClassMismatch(ServiceError):
    code = "CLASS_MISMATCH"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class InsufficientSlots(ServiceError):
    code = "INSUFFICIENT_SLOTS"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class ReferentialConflict(ServiceError):
    """Delete or edit blocked by dependent rows."""

    code = "REFERENTIAL_CONFLICT"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class InvalidOperation(ServiceError):
    """Business-rule violation (e.g. deleting the last active timetable)."""

    code = "INVALID_OPERATION"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class TransactionConflict(ServiceError):
    """Lost a race with a concurrent write (lock timeout, deadlock, late constraint violation).

    Nothing was written; the caller may retry with backoff.
    """

    code = "TRANSACTION_CONFLICT"
    retryable = True

    def __init__(self, message: str = "Concurrent modification detected; please retry") -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)
