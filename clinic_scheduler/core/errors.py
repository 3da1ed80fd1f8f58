"""Scheduling error taxonomy.

Every error carries the HTTP status the routes answer with and a stable
``detail`` message. None of them are retried.
"""

from fastapi import HTTPException, status


class SchedulingError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_http(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.detail)


class ValidationError(SchedulingError, ValueError):
    """Required fields are missing or malformed.

    Also a ``ValueError`` so pydantic validators can raise it directly.
    """
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(SchedulingError):
    """The slot is already booked or blocked by the provider."""
    status_code = status.HTTP_409_CONFLICT


class TemporalError(SchedulingError):
    """The requested time is in the past or a lead-time guard failed."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(SchedulingError):
    status_code = status.HTTP_403_FORBIDDEN


SLOT_ALREADY_BOOKED = 'This time slot is already booked.'
SLOT_BLOCKED = 'This time slot has been blocked by the provider.'
DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def database_unavailable() -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE)
