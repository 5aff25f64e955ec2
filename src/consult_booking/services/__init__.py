"""Services module for the booking engine"""

from .availability_service import AvailabilityService, compute_slots
from .event_service import EventService
from .lifecycle_service import AppointmentLifecycle
from .reservation_service import ReservationManager
from .schedule_service import ScheduleService

__all__ = [
    "AvailabilityService",
    "compute_slots",
    "EventService",
    "AppointmentLifecycle",
    "ReservationManager",
    "ScheduleService",
]
