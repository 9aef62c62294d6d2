# app/core/errors.py
class SchedulingError(Exception):
    """
    Base class for every business failure raised by the scheduling core.

    Each subclass carries a stable `code` used by the HTTP layer when
    rendering the error.
    """

    code = "scheduling_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(SchedulingError):
    """Room, booking or waitlist entry does not exist."""

    code = "not_found"


class ForbiddenError(SchedulingError):
    """Actor is neither the owner nor an admin."""

    code = "forbidden"


class ConflictError(SchedulingError):
    """Interval overlaps a confirmed booking, or a duplicate waitlist entry."""

    code = "conflict"


class AlreadyCancelledError(ConflictError):
    code = "already_cancelled"


class InvalidError(SchedulingError):
    """Request violates a business rule."""

    code = "invalid"
