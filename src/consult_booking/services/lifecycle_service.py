"""Appointment Lifecycle: state machine for confirmed appointments"""
import logging
from collections import Counter
from datetime import date, time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from consult_booking.database.models import (
    Appointment,
    AppointmentDetails,
    AppointmentStatus,
    EventType,
    LifecycleEvent,
    PaymentStatus,
    Slot,
)
from consult_booking.database.store import Store
from consult_booking.services.consultation_policy import build_appointment
from consult_booking.services.event_service import EventService
from consult_booking.utils.date_time_utils import Clock, get_practice_now, parse_date, parse_time
from consult_booking.utils.exceptions import (
    AppointmentNotFoundError,
    InvalidTransitionError,
    SlotUnavailableError,
)

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: Dict[AppointmentStatus, List[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: [
        AppointmentStatus.SCHEDULED,  # reschedule
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    ],
    AppointmentStatus.COMPLETED: [],
    AppointmentStatus.CANCELLED: [],
    AppointmentStatus.NO_SHOW: [],
}

STATUS_EVENTS = {
    AppointmentStatus.CANCELLED: EventType.CANCELLED,
    AppointmentStatus.COMPLETED: EventType.COMPLETED,
    AppointmentStatus.NO_SHOW: EventType.NO_SHOW,
}


def can_transition(current: AppointmentStatus, intended: AppointmentStatus) -> bool:
    return intended in VALID_TRANSITIONS.get(current, [])


class AppointmentLifecycle:
    """
    Admin-side operations on appointments.

    Methods:
    - cancel() / mark_completed() / mark_no_show(): terminal transitions
    - reschedule(): move a scheduled appointment to a free slot
    - create_manual(): book without a hold, still slot-exclusive
    - update_payment_status(): record the outcome of the payment step
    - list_appointments() / booking_statistics(): read-only queries

    Every operation is all-or-nothing: a rejected check leaves state untouched
    and raises a typed error. Each committed transition emits one event.
    """

    def __init__(self, store: Store, events: EventService, clock: Clock = get_practice_now):
        self._store = store
        self._events = events
        self._clock = clock

    async def _load(self, appointment_id: Union[str, UUID]) -> Appointment:
        appointment_id = UUID(str(appointment_id))
        appointment = await self._store.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(
                f"Appointment {appointment_id} not found", appointment_id=appointment_id
            )
        return appointment

    @staticmethod
    def _ensure_transition(appointment: Appointment, intended: AppointmentStatus):
        if not can_transition(appointment.status, intended):
            raise InvalidTransitionError(
                f"Cannot move appointment {appointment.id} from "
                f"{appointment.status.value} to {intended.value}",
                appointment_id=appointment.id,
                status=appointment.status,
            )

    async def _finish(self, appointment_id: Union[str, UUID], target: AppointmentStatus) -> Appointment:
        appointment = await self._load(appointment_id)
        self._ensure_transition(appointment, target)

        now = self._clock()
        updated = appointment.model_copy(update={"status": target, "updated_at": now})
        stored = await self._store.update_appointment(updated, expected_status=appointment.status)

        logger.info(f"Appointment {stored.id} {appointment.status.value} -> {target.value}")
        await self._events.emit(
            LifecycleEvent(event_type=STATUS_EVENTS[target], appointment=stored, occurred_at=now)
        )
        return stored

    async def cancel(self, appointment_id: Union[str, UUID]) -> Appointment:
        """Cancel a scheduled appointment and free its slot"""
        return await self._finish(appointment_id, AppointmentStatus.CANCELLED)

    async def mark_completed(self, appointment_id: Union[str, UUID]) -> Appointment:
        return await self._finish(appointment_id, AppointmentStatus.COMPLETED)

    async def mark_no_show(self, appointment_id: Union[str, UUID]) -> Appointment:
        return await self._finish(appointment_id, AppointmentStatus.NO_SHOW)

    async def reschedule(
        self,
        appointment_id: Union[str, UUID],
        new_date: Union[str, date],
        new_start: Union[str, time],
        new_end: Union[str, time],
    ) -> Appointment:
        """
        Move a scheduled appointment to another slot.

        Args:
            appointment_id: Appointment to move
            new_date: Target date
            new_start: Target start time
            new_end: Target end time

        Returns:
            The appointment with its new slot and ``previous_slot`` recorded;
            id, customer and consultation type are unchanged

        Raises:
            InvalidTransitionError: appointment is not scheduled
            SlotUnavailableError: target slot is held or booked (including the
                appointment's own current slot)
        """
        target = Slot(
            slot_date=parse_date(new_date),
            start_time=parse_time(new_start),
            end_time=parse_time(new_end),
        )
        appointment = await self._load(appointment_id)
        self._ensure_transition(appointment, AppointmentStatus.SCHEDULED)

        if target.key == appointment.key:
            raise SlotUnavailableError(
                f"Appointment {appointment.id} already occupies {target.slot_date} {target.start_time:%H:%M}",
                appointment_id=appointment.id,
            )

        now = self._clock()
        previous = appointment.slot
        moved = appointment.model_copy(
            update={
                "appointment_date": target.slot_date,
                "start_time": target.start_time,
                "end_time": target.end_time,
                "previous_slot": previous,
                "updated_at": now,
            }
        )
        stored = await self._store.move_appointment(moved, now)

        logger.info(
            f"✅ Appointment {stored.id} moved from {previous.slot_date} {previous.start_time} "
            f"to {stored.appointment_date} {stored.start_time}"
        )
        await self._events.emit(
            LifecycleEvent(
                event_type=EventType.RESCHEDULED,
                appointment=stored,
                previous_slot=previous,
                occurred_at=now,
            )
        )
        return stored

    async def create_manual(
        self,
        slot_date: Union[str, date],
        start_time: Union[str, time],
        end_time: Union[str, time],
        details: Union[AppointmentDetails, dict],
    ) -> Appointment:
        """
        Administrative booking that skips the hold step.

        Raises:
            SlotUnavailableError: the slot is held or booked
        """
        if not isinstance(details, AppointmentDetails):
            details = AppointmentDetails.model_validate(details)
        slot = Slot(
            slot_date=parse_date(slot_date),
            start_time=parse_time(start_time),
            end_time=parse_time(end_time),
        )

        now = self._clock()
        appointment = await self._store.insert_appointment(build_appointment(slot, details, now), now)

        logger.info(
            f"✅ Manual appointment {appointment.id} created on {slot.slot_date} {slot.start_time}"
        )
        await self._events.emit(
            LifecycleEvent(event_type=EventType.CREATED, appointment=appointment, occurred_at=now)
        )
        return appointment

    async def update_payment_status(
        self, appointment_id: Union[str, UUID], payment_status: Union[str, PaymentStatus]
    ) -> Appointment:
        """Record payment outcome; not a lifecycle transition, so no event"""
        payment_status = PaymentStatus(payment_status)
        appointment = await self._load(appointment_id)
        if appointment.status == AppointmentStatus.CANCELLED:
            raise InvalidTransitionError(
                f"Appointment {appointment.id} is cancelled", appointment_id=appointment.id
            )
        if appointment.payment_status == payment_status:
            return appointment

        updated = appointment.model_copy(
            update={"payment_status": payment_status, "updated_at": self._clock()}
        )
        stored = await self._store.update_appointment(updated, expected_status=appointment.status)
        logger.info(f"Appointment {stored.id} payment status -> {payment_status.value}")
        return stored

    async def get(self, appointment_id: Union[str, UUID]) -> Appointment:
        return await self._load(appointment_id)

    async def list_appointments(
        self,
        slot_date: Optional[Union[str, date]] = None,
        status: Optional[Union[str, AppointmentStatus]] = None,
    ) -> List[Appointment]:
        return await self._store.list_appointments(
            slot_date=parse_date(slot_date) if slot_date else None,
            status=AppointmentStatus(status) if status else None,
        )

    async def booking_statistics(
        self, start_date: Union[str, date], end_date: Union[str, date]
    ) -> Dict[str, Any]:
        """
        Counts per status and revenue for appointments dated within a range.

        Revenue sums paid appointments; expected revenue adds pending ones.
        Cancelled appointments contribute to neither.
        """
        appointments = await self._store.list_appointments(
            start_date=parse_date(start_date), end_date=parse_date(end_date)
        )
        counts = Counter(a.status for a in appointments)
        live = [a for a in appointments if a.status != AppointmentStatus.CANCELLED]

        return {
            "total_bookings": len(appointments),
            **{f"{status.value}_bookings": counts.get(status, 0) for status in AppointmentStatus},
            "revenue": sum(
                (a.price for a in live if a.payment_status == PaymentStatus.PAID), Decimal("0")
            ),
            "expected_revenue": sum(
                (a.price for a in live if a.payment_status != PaymentStatus.WAIVED), Decimal("0")
            ),
        }
