"""Availability Calculator: bookable slots for a date from schedule and claims"""
import logging
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Union

from consult_booking.database.models import WEEKDAYS, Appointment, Hold, ScheduleConfiguration, Slot
from consult_booking.database.store import Store
from consult_booking.services.schedule_service import ScheduleService, open_minutes
from consult_booking.utils import intervals
from consult_booking.utils.date_time_utils import (
    Clock,
    from_minutes,
    get_practice_now,
    parse_date,
    to_minutes,
    to_practice_time,
)

logger = logging.getLogger(__name__)


def schedule_windows(slot_date: date, schedule: ScheduleConfiguration) -> List[Slot]:
    """Every slot the schedule offers on a date, ignoring holds, bookings and the clock"""
    if schedule.is_blocked(slot_date):
        return []

    hours = schedule.hours_for(slot_date)
    if not hours.enabled:
        return []

    # Blocked ranges are merged inside subtract, so overlaps are removed once
    open_intervals = intervals.subtract(
        open_minutes(schedule, WEEKDAYS[slot_date.weekday()]),
        [(to_minutes(r.start), to_minutes(r.end)) for r in schedule.blocked_ranges_on(slot_date)],
    )
    return [
        Slot(slot_date=slot_date, start_time=from_minutes(start), end_time=from_minutes(end))
        for start, end in intervals.tile(open_intervals, schedule.slot_duration_minutes)
    ]


def compute_slots(
    slot_date: date,
    schedule: ScheduleConfiguration,
    holds: Iterable[Hold],
    appointments: Iterable[Appointment],
    now: datetime,
    session_id: Optional[str] = None,
) -> List[Slot]:
    """
    Ordered bookable slots for one date. Pure: no I/O, no mutation.

    Args:
        slot_date: Calendar date in the practice timezone
        schedule: Schedule snapshot
        holds: Holds on that date (expired ones are ignored here)
        appointments: Appointments on that date (only ``scheduled`` ones block)
        now: Current time
        session_id: Caller's session; its own active hold stays visible

    Returns:
        Slots in chronological order
    """
    local_now = to_practice_time(now)
    if slot_date < local_now.date():
        return []

    taken = {a.key for a in appointments if a.is_scheduled}
    taken.update(
        h.key for h in holds if h.is_active(now) and (session_id is None or h.session_id != session_id)
    )

    slots = []
    for slot in schedule_windows(slot_date, schedule):
        if slot.key in taken:
            continue
        if slot_date == local_now.date() and slot.start_time <= local_now.time():
            continue
        slots.append(slot)
    return slots


class AvailabilityService:
    """
    Read-side of the engine.

    Methods:
    - get_slots(): Slots for one date using a fresh schedule snapshot
    - next_available_slots(): Nearest bookable slots across the coming days
    """

    def __init__(self, store: Store, schedule_service: ScheduleService, clock: Clock = get_practice_now):
        self._store = store
        self._schedule_service = schedule_service
        self._clock = clock

    async def get_slots(
        self, slot_date: Union[str, date], session_id: Optional[str] = None
    ) -> List[Slot]:
        """
        Slots for one date using a fresh schedule snapshot.

        With ``session_id`` the caller's own active hold stays listed as its
        current selection. Reserving that slot again raises SlotUnavailableError;
        the caller should promote or release the hold it already has.
        """
        slot_date = parse_date(slot_date)
        schedule = await self._schedule_service.get()
        now = self._clock()
        holds = await self._store.list_holds(slot_date, now)
        appointments = await self._store.list_appointments(slot_date=slot_date)

        slots = compute_slots(slot_date, schedule, holds, appointments, now, session_id)
        logger.info(f"{len(slots)} slots available on {slot_date} (schedule v{schedule.version})")
        return slots

    async def next_available_slots(
        self, limit: int = 3, days_ahead: int = 14, session_id: Optional[str] = None
    ) -> List[Slot]:
        """
        Nearest bookable slots starting today.

        Args:
            limit: Maximum number of slots to return
            days_ahead: How many days (including today) to scan

        Returns:
            Up to ``limit`` slots in chronological order
        """
        today = to_practice_time(self._clock()).date()
        found: List[Slot] = []
        for offset in range(days_ahead):
            found.extend(await self.get_slots(today + timedelta(days=offset), session_id))
            if len(found) >= limit:
                break
        return found[:limit]
