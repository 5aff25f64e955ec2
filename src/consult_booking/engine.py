"""Wiring of the booking engine components around one store, clock and event service"""
import logging
from datetime import timedelta
from typing import Optional

from livekit import rtc

from consult_booking.database.store import Store
from consult_booking.database.supabase_store import SupabaseStore
from consult_booking.services.availability_service import AvailabilityService
from consult_booking.services.event_service import EventService
from consult_booking.services.lifecycle_service import AppointmentLifecycle
from consult_booking.services.reservation_service import ReservationManager
from consult_booking.services.schedule_service import ScheduleService
from consult_booking.utils.date_time_utils import Clock, get_practice_now

logger = logging.getLogger(__name__)


class BookingEngine:
    """
    Stateless facade; every instance sharing a store sees the same bookings.

    Attributes:
        schedule: Schedule Configuration
        availability: Availability Calculator
        reservations: Reservation Manager
        lifecycle: Appointment Lifecycle
        events: Lifecycle event emission
    """

    def __init__(
        self,
        store: Optional[Store] = None,
        clock: Clock = get_practice_now,
        events: Optional[EventService] = None,
        room: Optional[rtc.Room] = None,
        hold_ttl: Optional[timedelta] = None,
    ):
        self.store = store or SupabaseStore()
        self.clock = clock
        self.events = events or EventService(room=room)
        self.schedule = ScheduleService(self.store, clock)
        self.availability = AvailabilityService(self.store, self.schedule, clock)
        self.reservations = ReservationManager(
            self.store, self.schedule, self.events, clock, hold_ttl=hold_ttl
        )
        self.lifecycle = AppointmentLifecycle(self.store, self.events, clock)
        logger.info(f"Booking engine ready ({type(self.store).__name__})")
