"""Reservation Manager: session-owned holds on slots and their promotion to appointments"""
import asyncio
import logging
from datetime import date, time, timedelta
from typing import Optional, Union
from uuid import UUID

from consult_booking.config import config
from consult_booking.database.models import (
    Appointment,
    AppointmentDetails,
    EventType,
    Hold,
    LifecycleEvent,
    Slot,
)
from consult_booking.database.store import Store
from consult_booking.services.availability_service import compute_slots
from consult_booking.services.consultation_policy import build_appointment
from consult_booking.services.event_service import EventService
from consult_booking.services.schedule_service import ScheduleService
from consult_booking.utils.date_time_utils import Clock, get_practice_now, parse_date, parse_time
from consult_booking.utils.exceptions import (
    HoldExpiredError,
    HoldNotFoundError,
    NotOwnerError,
    SlotUnavailableError,
)

logger = logging.getLogger(__name__)


class ReservationManager:
    """
    Concurrency-sensitive core of the engine.

    Methods:
    - reserve(): Atomically claim an offered slot for a session
    - release(): Drop a session's own active hold
    - sweep_expired(): Purge holds past their TTL
    - promote(): Turn an active hold into a scheduled appointment

    Expiry is a read-time predicate: an expired hold is absent for every
    operation whether or not it has been swept. Holds are never extended.
    """

    def __init__(
        self,
        store: Store,
        schedule_service: ScheduleService,
        events: EventService,
        clock: Clock = get_practice_now,
        hold_ttl: Optional[timedelta] = None,
    ):
        self._store = store
        self._schedule_service = schedule_service
        self._events = events
        self._clock = clock
        self._ttl = hold_ttl or timedelta(minutes=config.hold_ttl_minutes)

    async def reserve(
        self,
        slot_date: Union[str, date],
        start_time: Union[str, time],
        end_time: Union[str, time],
        session_id: str,
    ) -> Hold:
        """
        Place a hold on one slot.

        Args:
            slot_date: Slot date (YYYY-MM-DD or date)
            start_time: Slot start (HH:MM or time)
            end_time: Slot end (HH:MM or time)
            session_id: Opaque caller identity owning the hold

        Returns:
            The stored hold, expiring one TTL from now

        Raises:
            SlotUnavailableError: the slot is held (by any session, the caller
                included), booked, in the past, or not offered by the schedule.
                Callers should re-fetch availability.
        """
        if not session_id:
            raise ValueError("session_id is required")
        requested = Slot(
            slot_date=parse_date(slot_date),
            start_time=parse_time(start_time),
            end_time=parse_time(end_time),
        )

        now = self._clock()
        schedule = await self._schedule_service.get()
        if requested not in compute_slots(requested.slot_date, schedule, [], [], now):
            logger.info(f"Rejected hold on {requested.slot_date} {requested.start_time}: not an open slot")
            raise SlotUnavailableError(
                f"{requested.slot_date} {requested.start_time:%H:%M}-{requested.end_time:%H:%M} "
                f"is not an open slot",
                slot_date=requested.slot_date,
                start_time=requested.start_time,
            )

        hold = Hold(
            slot_date=requested.slot_date,
            start_time=requested.start_time,
            end_time=requested.end_time,
            session_id=session_id,
            created_at=now,
            expires_at=now + self._ttl,
        )
        try:
            stored = await self._store.insert_hold(hold, now)
        except SlotUnavailableError:
            logger.info(
                f"Slot {requested.slot_date} {requested.start_time} already claimed, "
                f"session {session_id} must pick another"
            )
            raise

        logger.info(
            f"✅ Hold {stored.id} on {stored.slot_date} {stored.start_time} for session "
            f"{session_id} until {stored.expires_at.isoformat()}"
        )
        return stored

    async def _owned_hold(self, hold_id: UUID, session_id: str) -> Hold:
        hold = await self._store.get_hold(hold_id)
        if hold is None:
            raise HoldNotFoundError(f"Hold {hold_id} not found", hold_id=hold_id)
        if hold.session_id != session_id:
            raise NotOwnerError(f"Hold {hold_id} belongs to another session", hold_id=hold_id)
        return hold

    async def release(self, hold_id: Union[str, UUID], session_id: str) -> None:
        """
        Release a hold owned by ``session_id``.

        Raises:
            NotOwnerError: another session owns the hold
            HoldNotFoundError: already released, promoted or expired
                (a benign outcome for callers retrying after success)
        """
        hold_id = UUID(str(hold_id))
        hold = await self._owned_hold(hold_id, session_id)
        now = self._clock()
        if not hold.is_active(now):
            raise HoldNotFoundError(f"Hold {hold_id} has expired", hold_id=hold_id)

        removed = await self._store.delete_hold(hold_id, session_id, now)
        if removed is None:
            raise HoldNotFoundError(f"Hold {hold_id} not found", hold_id=hold_id)
        logger.info(f"Hold {hold_id} released by session {session_id}")

    async def sweep_expired(self) -> int:
        """Remove expired holds; returns how many were purged"""
        removed = await self._store.delete_expired_holds(self._clock())
        if removed:
            logger.info(f"🧹 Swept {removed} expired holds")
        return removed

    async def run_sweeper(self, interval_seconds: float = 60.0) -> None:
        """Sweep periodically until cancelled. Only an optimisation: reads already ignore expired holds"""
        while True:
            await asyncio.sleep(interval_seconds)
            await self.sweep_expired()

    async def promote(
        self,
        hold_id: Union[str, UUID],
        session_id: str,
        details: Union[AppointmentDetails, dict],
    ) -> Appointment:
        """
        Confirm a hold after the external payment/confirmation step.

        Args:
            hold_id: Hold returned by reserve()
            session_id: Session that owns the hold
            details: Customer details for the appointment

        Returns:
            The scheduled appointment

        Raises:
            HoldExpiredError: TTL elapsed; restart slot selection
            NotOwnerError: another session owns the hold
            HoldNotFoundError: hold released, promoted or swept. An expired hold
                is also removed when another session reserves its slot, so
                callers should restart slot selection here as for HoldExpiredError.
        """
        hold_id = UUID(str(hold_id))
        if not isinstance(details, AppointmentDetails):
            details = AppointmentDetails.model_validate(details)

        hold = await self._owned_hold(hold_id, session_id)
        now = self._clock()
        if not hold.is_active(now):
            logger.info(f"Hold {hold_id} expired at {hold.expires_at.isoformat()}, cannot promote")
            raise HoldExpiredError(
                f"Hold {hold_id} expired at {hold.expires_at.isoformat()}", hold_id=hold_id
            )

        appointment = build_appointment(hold.slot, details, now)
        promoted = await self._store.promote_hold(hold_id, session_id, appointment, now)
        if promoted is None:
            # Lost a race with expiry, release or a concurrent promote
            if not hold.is_active(self._clock()):
                raise HoldExpiredError(f"Hold {hold_id} expired", hold_id=hold_id)
            raise HoldNotFoundError(f"Hold {hold_id} not found", hold_id=hold_id)

        logger.info(
            f"✅ Hold {hold_id} promoted to appointment {promoted.id} on "
            f"{promoted.appointment_date} {promoted.start_time}"
        )
        await self._events.emit(
            LifecycleEvent(event_type=EventType.CREATED, appointment=promoted, occurred_at=now)
        )
        return promoted
