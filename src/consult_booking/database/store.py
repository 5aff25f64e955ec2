"""Storage interface for the booking engine and an in-process implementation"""
import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from consult_booking.database.models import (
    Appointment,
    AppointmentStatus,
    Hold,
    ScheduleConfiguration,
    SlotKey,
)
from consult_booking.utils.exceptions import (
    ConfigConflictError,
    InvalidTransitionError,
    AppointmentNotFoundError,
    SlotUnavailableError,
)

logger = logging.getLogger(__name__)


class Store(ABC):
    """
    Persistence contract used by every engine service.

    Every write that touches the exclusivity domain ``(date, start_time)`` must
    be a single atomic check-and-write: of several concurrent callers claiming
    the same key, exactly one succeeds and the rest get SlotUnavailableError.
    Holds whose ``expires_at`` is not after ``now`` count as absent.
    """

    # Schedule configuration

    @abstractmethod
    async def get_schedule(self) -> Optional[ScheduleConfiguration]:
        """Current schedule snapshot, or None if none was ever saved"""

    @abstractmethod
    async def save_schedule(
        self, schedule: ScheduleConfiguration, expected_version: int, now: datetime
    ) -> ScheduleConfiguration:
        """Replace the schedule if its stored version still equals ``expected_version``.

        Raises ConfigConflictError otherwise. Returns the stored snapshot with
        ``version = expected_version + 1``.
        """

    # Holds

    @abstractmethod
    async def list_holds(self, slot_date: date, now: datetime) -> List[Hold]:
        """Active holds on a date"""

    @abstractmethod
    async def get_hold(self, hold_id: UUID) -> Optional[Hold]:
        """A hold by id, including one that has expired but not yet been swept"""

    @abstractmethod
    async def insert_hold(self, hold: Hold, now: datetime) -> Hold:
        """Atomically claim the hold's key (raises SlotUnavailableError)"""

    @abstractmethod
    async def delete_hold(self, hold_id: UUID, session_id: str, now: datetime) -> Optional[Hold]:
        """Remove an active hold owned by ``session_id``; None if nothing matched"""

    @abstractmethod
    async def delete_expired_holds(self, now: datetime) -> int:
        """Purge expired holds and return how many were removed"""

    @abstractmethod
    async def promote_hold(
        self, hold_id: UUID, session_id: str, appointment: Appointment, now: datetime
    ) -> Optional[Appointment]:
        """Atomically replace an active owned hold with a scheduled appointment.

        Returns None when the hold no longer exists, is not owned by the
        session, or has expired.
        """

    # Appointments

    @abstractmethod
    async def get_appointment(self, appointment_id: UUID) -> Optional[Appointment]:
        pass

    @abstractmethod
    async def list_appointments(
        self,
        slot_date: Optional[date] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        """Appointments filtered by exact date or inclusive range, ordered by slot"""

    @abstractmethod
    async def insert_appointment(self, appointment: Appointment, now: datetime) -> Appointment:
        """Atomically claim the appointment's key and persist it (raises SlotUnavailableError)"""

    @abstractmethod
    async def update_appointment(
        self, appointment: Appointment, expected_status: AppointmentStatus
    ) -> Appointment:
        """Compare-and-set write keyed on the current status.

        Raises InvalidTransitionError if the stored status changed. Leaving
        ``scheduled`` frees the appointment's key.
        """

    @abstractmethod
    async def move_appointment(self, appointment: Appointment, now: datetime) -> Appointment:
        """Atomically move a scheduled appointment to its new key.

        ``appointment`` carries the new date/times; the stored record's
        current key is released. Raises SlotUnavailableError if the new key is
        taken and InvalidTransitionError if the appointment is no longer
        scheduled.
        """


class InMemoryStore(Store):
    """
    Single-process store guarded by one asyncio.Lock per slot key.

    Suitable for tests and single-instance deployments. ``latency`` inserts an
    await between check and write to exercise lock contention.
    """

    def __init__(self, latency: float = 0.0):
        self._latency = latency
        self._schedule: Optional[ScheduleConfiguration] = None
        self._schedule_lock = asyncio.Lock()
        self._holds: Dict[UUID, Hold] = {}
        self._appointments: Dict[UUID, Appointment] = {}
        self._key_locks: Dict[SlotKey, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._lock_users: Dict[SlotKey, int] = defaultdict(int)

    async def _pause(self):
        if self._latency:
            await asyncio.sleep(self._latency)

    @asynccontextmanager
    async def _locked(self, *keys: SlotKey):
        # Sorted acquisition keeps two-key moves deadlock free
        ordered = sorted(set(keys))
        for key in ordered:
            self._lock_users[key] += 1
        acquired = []
        try:
            for key in ordered:
                await self._key_locks[key].acquire()
                acquired.append(key)
            yield
        finally:
            for key in reversed(acquired):
                self._key_locks[key].release()
            for key in ordered:
                self._lock_users[key] -= 1
                if not self._lock_users[key]:
                    # No holder or waiter left for this key
                    del self._lock_users[key]
                    self._key_locks.pop(key, None)

    @asynccontextmanager
    async def _locked_appointment(self, appointment_id: UUID, *extra_keys: SlotKey):
        # Re-check the key after acquiring: a concurrent move may have changed it
        while True:
            stored = self._appointments.get(appointment_id)
            if stored is None:
                raise AppointmentNotFoundError(
                    f"Appointment {appointment_id} not found", appointment_id=appointment_id
                )
            async with self._locked(stored.key, *extra_keys):
                current = self._appointments[appointment_id]
                if current.key == stored.key:
                    yield current
                    return

    def _occupant(self, key: SlotKey, now: datetime) -> Optional[str]:
        for hold in self._holds.values():
            if hold.key == key and hold.is_active(now):
                return f"hold {hold.id}"
        for appointment in self._appointments.values():
            if appointment.key == key and appointment.is_scheduled:
                return f"appointment {appointment.id}"
        return None

    def _drop_expired_on(self, key: SlotKey, now: datetime):
        for hold_id in [h.id for h in self._holds.values() if h.key == key and not h.is_active(now)]:
            del self._holds[hold_id]

    async def get_schedule(self) -> Optional[ScheduleConfiguration]:
        return self._schedule

    async def save_schedule(
        self, schedule: ScheduleConfiguration, expected_version: int, now: datetime
    ) -> ScheduleConfiguration:
        async with self._schedule_lock:
            current_version = self._schedule.version if self._schedule else 0
            if current_version != expected_version:
                raise ConfigConflictError(
                    "Schedule was modified by another writer",
                    expected_version=expected_version,
                    current_version=current_version,
                )
            await self._pause()
            self._schedule = schedule.model_copy(
                update={"version": expected_version + 1, "updated_at": now}
            )
            return self._schedule

    async def list_holds(self, slot_date: date, now: datetime) -> List[Hold]:
        return sorted(
            (h for h in self._holds.values() if h.slot_date == slot_date and h.is_active(now)),
            key=lambda h: h.start_time,
        )

    async def get_hold(self, hold_id: UUID) -> Optional[Hold]:
        return self._holds.get(hold_id)

    async def insert_hold(self, hold: Hold, now: datetime) -> Hold:
        async with self._locked(hold.key):
            occupant = self._occupant(hold.key, now)
            if occupant:
                raise SlotUnavailableError(
                    f"Slot {hold.slot_date} {hold.start_time:%H:%M} is taken by {occupant}",
                    slot_date=hold.slot_date,
                    start_time=hold.start_time,
                )
            await self._pause()
            self._drop_expired_on(hold.key, now)
            self._holds[hold.id] = hold
            return hold

    async def delete_hold(self, hold_id: UUID, session_id: str, now: datetime) -> Optional[Hold]:
        hold = self._holds.get(hold_id)
        if hold is None:
            return None
        async with self._locked(hold.key):
            hold = self._holds.get(hold_id)
            if hold is None or hold.session_id != session_id or not hold.is_active(now):
                return None
            return self._holds.pop(hold_id)

    async def delete_expired_holds(self, now: datetime) -> int:
        expired = [h for h in self._holds.values() if not h.is_active(now)]
        removed = 0
        for hold in expired:
            async with self._locked(hold.key):
                current = self._holds.get(hold.id)
                if current is not None and not current.is_active(now):
                    del self._holds[hold.id]
                    removed += 1
        return removed

    async def promote_hold(
        self, hold_id: UUID, session_id: str, appointment: Appointment, now: datetime
    ) -> Optional[Appointment]:
        hold = self._holds.get(hold_id)
        if hold is None:
            return None
        async with self._locked(hold.key):
            hold = self._holds.get(hold_id)
            if hold is None or hold.session_id != session_id or not hold.is_active(now):
                return None
            await self._pause()
            del self._holds[hold_id]
            self._appointments[appointment.id] = appointment
            return appointment

    async def get_appointment(self, appointment_id: UUID) -> Optional[Appointment]:
        return self._appointments.get(appointment_id)

    async def list_appointments(
        self,
        slot_date: Optional[date] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        results = []
        for appointment in self._appointments.values():
            if slot_date is not None and appointment.appointment_date != slot_date:
                continue
            if start_date is not None and appointment.appointment_date < start_date:
                continue
            if end_date is not None and appointment.appointment_date > end_date:
                continue
            if status is not None and appointment.status != status:
                continue
            results.append(appointment)
        return sorted(results, key=lambda a: (a.appointment_date, a.start_time, a.created_at))

    async def insert_appointment(self, appointment: Appointment, now: datetime) -> Appointment:
        async with self._locked(appointment.key):
            occupant = self._occupant(appointment.key, now)
            if occupant:
                raise SlotUnavailableError(
                    f"Slot {appointment.appointment_date} {appointment.start_time:%H:%M} "
                    f"is taken by {occupant}",
                    slot_date=appointment.appointment_date,
                    start_time=appointment.start_time,
                )
            await self._pause()
            self._drop_expired_on(appointment.key, now)
            self._appointments[appointment.id] = appointment
            return appointment

    async def update_appointment(
        self, appointment: Appointment, expected_status: AppointmentStatus
    ) -> Appointment:
        async with self._locked_appointment(appointment.id) as stored:
            if stored.status != expected_status:
                raise InvalidTransitionError(
                    f"Appointment {appointment.id} is {stored.status.value}, "
                    f"expected {expected_status.value}",
                    appointment_id=appointment.id,
                )
            self._appointments[appointment.id] = appointment
            return appointment

    async def move_appointment(self, appointment: Appointment, now: datetime) -> Appointment:
        async with self._locked_appointment(appointment.id, appointment.key) as stored:
            if not stored.is_scheduled:
                raise InvalidTransitionError(
                    f"Appointment {appointment.id} is {stored.status.value}",
                    appointment_id=appointment.id,
                )
            occupant = self._occupant(appointment.key, now)
            if occupant:
                raise SlotUnavailableError(
                    f"Slot {appointment.appointment_date} {appointment.start_time:%H:%M} "
                    f"is taken by {occupant}",
                    slot_date=appointment.appointment_date,
                    start_time=appointment.start_time,
                )
            await self._pause()
            self._drop_expired_on(appointment.key, now)
            self._appointments[appointment.id] = appointment
            return appointment
