"""
Exceptions raised by the booking engine.

Domain errors are expected outcomes returned to the immediate caller and must
not be retried as-is. StorageTransportError is the only retryable failure.
"""
from typing import Any, Iterable, Optional


class BookingEngineError(Exception):
    """Base exception for the booking engine"""

    retryable = False

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context


class DomainError(BookingEngineError):
    """Base class for typed, non-retryable booking outcomes"""
    pass


class ConfigError(DomainError):
    """Raised when a schedule configuration is rejected"""

    def __init__(self, message: str, problems: Optional[Iterable[str]] = None, **context: Any):
        super().__init__(message, **context)
        self.problems = list(problems or [])


class ConfigConflictError(ConfigError):
    """Raised when the schedule was replaced by another writer in the meantime"""
    pass


class ReservationError(DomainError):
    """Base class for hold and promotion failures"""
    pass


class LifecycleError(DomainError):
    """Base class for appointment state machine failures"""
    pass


class SlotUnavailableError(ReservationError, LifecycleError):
    """Raised when a slot is held, booked, or not offered by the schedule.

    Callers should re-fetch availability instead of retrying the same slot.
    """
    pass


class NotOwnerError(ReservationError):
    """Raised when a session acts on a hold it did not create"""
    pass


class HoldNotFoundError(ReservationError):
    """Raised when a hold was already released, promoted, or swept"""
    pass


class HoldExpiredError(ReservationError):
    """Raised when a hold's TTL has elapsed; slot selection must restart"""
    pass


class InvalidTransitionError(LifecycleError):
    """Raised when an appointment is not in a state that allows the operation"""
    pass


class AppointmentNotFoundError(LifecycleError):
    """Raised when no appointment exists with the given id"""
    pass


class StorageTransportError(BookingEngineError):
    """Raised when the backing store cannot be reached or fails unexpectedly"""

    retryable = True
