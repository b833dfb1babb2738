class DomainError(Exception):
    """Base class for errors that are safe to report to the caller."""


class SlotTakenError(DomainError):
    pass


class NotPendingError(DomainError):
    pass


class ResourceClosedError(DomainError):
    pass


class InvalidIntervalError(DomainError, ValueError):
    pass


class ScheduleError(InvalidIntervalError):
    pass


class ResourceNotFoundError(DomainError):
    pass


class ReservationNotFoundError(DomainError):
    pass


class SelectionLimitError(DomainError):
    pass


class BookingModeError(DomainError):
    """Slot reservation against a whole-day resource, or the other way round."""


class VersionConflictError(DomainError):
    pass
