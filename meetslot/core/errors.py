"""Error taxonomy shared by the read and write paths.

Validation and conflict errors are caller mistakes or lost races and are never retried.
Dependency errors mean an authoritative store failed; the whole operation is aborted.
"""


class SchedulingError(Exception):
    """Base class for every error the scheduling core raises on purpose."""

    def __init__(self, message: str, *, param: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.param = param


class ValidationError(SchedulingError):
    """Bad input: malformed interval, invalid duration, date outside the horizon."""


class InvalidTransitionError(ValidationError):
    """A booking request was asked to leave a terminal state."""


class NotFoundError(SchedulingError):
    pass


class ConflictError(SchedulingError):
    """The requested interval overlaps a confirmed booking."""


class SlotTakenError(ConflictError):
    """Another customer confirmed an overlapping booking first."""


class DependencyError(SchedulingError):
    """A required source (booking store, request store, settings) failed."""

    def __init__(self, source: str, reason: BaseException | str) -> None:
        super().__init__(f"{source} unavailable: {reason}")
        self.source = source
        self.reason = reason
