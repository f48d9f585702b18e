from __future__ import annotations

from fastapi import HTTPException, status


class ScheduleError(RuntimeError):
    """Base class for expected scheduling failures.

    Args:
        reason: Machine-readable refusal code (e.g. ``"slot_full"``).
        message: Human-readable explanation shown to the user.
    """

    http_status: int = status.HTTP_400_BAD_REQUEST
    public: bool = True

    def __init__(self, reason: str, message: str | None = None) -> None:
        super().__init__(message or reason)
        self.reason = reason
        self.message = message or reason


class ScheduleValidationError(ScheduleError):
    """A rule refused the operation before anything was mutated.

    Raised for full slots, reached quotas, adjacency violations, swap
    conflicts and staffing-floor violations.
    """

    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(
        self, reason: str, message: str | None = None, *, conflicts: list[str] | None = None
    ) -> None:
        super().__init__(reason, message)
        self.conflicts = list(conflicts or [])


class StaleTransferError(ScheduleError):
    """A transfer intent no longer matches the grid (source cell moved on)."""

    http_status = status.HTTP_409_CONFLICT

    def __init__(self, reason: str = "no_longer_available", message: str | None = None) -> None:
        super().__init__(reason, message or "This shift is no longer available.")


class SchedulePersistenceError(ScheduleError):
    """The store could not be read or written; nothing was committed."""

    http_status = status.HTTP_503_SERVICE_UNAVAILABLE
    public = False


class ScheduleAuthorizationError(ScheduleError):
    """The actor's role does not permit the operation."""

    http_status = status.HTTP_403_FORBIDDEN
    public = False


def to_http_exception(exc: ScheduleError) -> HTTPException:
    """Map a scheduling error onto the HTTP response the routers return.

    Validation and staleness errors carry their specific reason and message;
    persistence and authorization errors are reported generically.
    """
    if exc.public:
        detail: dict[str, object] | str = {"reason": exc.reason, "message": exc.message}
        if getattr(exc, "conflicts", None):
            detail["conflicts"] = exc.conflicts
    elif isinstance(exc, ScheduleAuthorizationError):
        detail = "Not allowed."
    else:
        detail = "The operation could not be completed. Please try again later."
    return HTTPException(status_code=exc.http_status, detail=detail)
