"""
Domain exceptions for the booking core.

Services raise these; the API layer turns them into HTTP responses through
``to_http_exception`` or the handlers registered in ``main``.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainError(Exception):
    """Base exception for all booking-core errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.message)


class ValidationError(DomainError):
    """A request that can never succeed as submitted."""

    status_code = status.HTTP_400_BAD_REQUEST


class PastStartDate(ValidationError):
    pass


class InvalidRange(ValidationError):
    pass


class DurationTooShort(ValidationError):
    pass


class VehicleUnavailable(ValidationError):
    pass


class SchedulingConflict(ValidationError):
    status_code = status.HTTP_409_CONFLICT


class InvalidAddressing(ValidationError):
    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransition(DomainError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot change booking status from '{current}' to '{requested}'",
            details={"current": current, "requested": requested},
        )


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} not found", details={"entity": entity, "id": entity_id})


class PersistenceError(DomainError):
    """The store rejected a write; nothing from the operation was committed."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class ConcurrentModification(PersistenceError):
    status_code = status.HTTP_409_CONFLICT
