"""Store implementation on Supabase (PostgREST + the functions in sql/001_booking_engine.sql)"""

import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from consult_booking.config import config
from consult_booking.database.models import (
    Appointment,
    AppointmentStatus,
    Hold,
    ScheduleConfiguration,
)
from consult_booking.database.store import Store
from consult_booking.utils.exceptions import (
    AppointmentNotFoundError,
    BookingEngineError,
    ConfigConflictError,
    InvalidTransitionError,
    SlotUnavailableError,
    StorageTransportError,
)

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
NOT_FOUND = "BK404"
INVALID_TRANSITION = "BK409"


class SupabaseStore(Store):
    """
    Persist schedule, holds and appointments in Supabase.

    Single-row reads and writes go through PostgREST; every multi-row write
    is a Postgres function so it commits as one transaction. Slot exclusivity
    is enforced by the UNIQUE (slot_date, start_time) constraint on
    slot_claims, so concurrent engine instances never double-book.
    """

    def __init__(self, client: Optional[Client] = None):
        self._client = client

    @property
    def client(self) -> Client:
        """Supabase client, created from configuration on first use"""
        if self._client is None:
            if not config.supabase_url or not config.supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set to use SupabaseStore")
            self._client = create_client(config.supabase_url, config.supabase_key)
            logger.info("Supabase client initialized")
        return self._client

    def _execute(
        self,
        query: Any,
        operation: str,
        on_conflict: Optional[Callable[[APIError], BookingEngineError]] = None,
    ):
        """Run a PostgREST query, translating failures into engine errors"""
        try:
            return query.execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION and on_conflict is not None:
                raise on_conflict(e) from e
            if e.code == NOT_FOUND:
                raise AppointmentNotFoundError(e.message or "Appointment not found") from e
            if e.code == INVALID_TRANSITION:
                raise InvalidTransitionError(e.message or "Invalid transition") from e
            logger.error(f"Supabase error during {operation}: {e.message} (code={e.code})")
            raise StorageTransportError(
                f"Storage error during {operation}: {e.message}", code=e.code
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Supabase unreachable during {operation}: {e}")
            raise StorageTransportError(f"Storage unreachable during {operation}: {e}") from e

    @staticmethod
    def _slot_conflict(slot_date: date, start_time) -> Callable[[APIError], BookingEngineError]:
        def build(error: APIError) -> BookingEngineError:
            logger.warning(f"Slot {slot_date} {start_time} already claimed ({error.code})")
            return SlotUnavailableError(
                f"Slot {slot_date} {start_time:%H:%M} is already held or booked",
                slot_date=slot_date,
                start_time=start_time,
            )

        return build

    @staticmethod
    def _appointment(row: Optional[Dict[str, Any]]) -> Optional[Appointment]:
        return Appointment.model_validate(row) if row else None

    # Schedule configuration

    async def get_schedule(self) -> Optional[ScheduleConfiguration]:
        result = self._execute(
            self.client.table("schedule_configuration").select("*").eq("id", 1),
            "get_schedule",
        )
        if not result.data:
            return None
        row = result.data[0]
        return ScheduleConfiguration.model_validate(
            {**row["document"], "version": row["version"], "updated_at": row.get("updated_at")}
        )

    async def save_schedule(
        self, schedule: ScheduleConfiguration, expected_version: int, now: datetime
    ) -> ScheduleConfiguration:
        row = {
            "version": expected_version + 1,
            "document": schedule.document(),
            "updated_at": now.isoformat(),
        }

        def conflict(error: APIError) -> BookingEngineError:
            return ConfigConflictError("Schedule was created by another writer")

        if expected_version == 0:
            query = self.client.table("schedule_configuration").insert({"id": 1, **row})
        else:
            query = (
                self.client.table("schedule_configuration")
                .update(row)
                .eq("id", 1)
                .eq("version", expected_version)
            )

        result = self._execute(query, "save_schedule", on_conflict=conflict)
        if not result.data:
            raise ConfigConflictError(
                "Schedule was modified by another writer", expected_version=expected_version
            )
        return schedule.model_copy(update={"version": expected_version + 1, "updated_at": now})

    # Holds

    async def list_holds(self, slot_date: date, now: datetime) -> List[Hold]:
        result = self._execute(
            self.client.table("slot_claims")
            .select("*")
            .eq("kind", "hold")
            .eq("slot_date", slot_date.isoformat())
            .gt("expires_at", now.isoformat())
            .order("start_time"),
            "list_holds",
        )
        return [Hold.model_validate(row) for row in result.data or []]

    async def get_hold(self, hold_id: UUID) -> Optional[Hold]:
        result = self._execute(
            self.client.table("slot_claims").select("*").eq("id", str(hold_id)).eq("kind", "hold"),
            "get_hold",
        )
        return Hold.model_validate(result.data[0]) if result.data else None

    async def insert_hold(self, hold: Hold, now: datetime) -> Hold:
        result = self._execute(
            self.client.rpc(
                "claim_hold", {"p_hold": hold.model_dump(mode="json"), "p_now": now.isoformat()}
            ),
            "insert_hold",
            on_conflict=self._slot_conflict(hold.slot_date, hold.start_time),
        )
        return Hold.model_validate(result.data) if result.data else hold

    async def delete_hold(self, hold_id: UUID, session_id: str, now: datetime) -> Optional[Hold]:
        result = self._execute(
            self.client.table("slot_claims")
            .delete()
            .eq("id", str(hold_id))
            .eq("kind", "hold")
            .eq("session_id", session_id)
            .gt("expires_at", now.isoformat()),
            "delete_hold",
        )
        return Hold.model_validate(result.data[0]) if result.data else None

    async def delete_expired_holds(self, now: datetime) -> int:
        result = self._execute(
            self.client.table("slot_claims")
            .delete()
            .eq("kind", "hold")
            .lte("expires_at", now.isoformat()),
            "delete_expired_holds",
        )
        return len(result.data or [])

    async def promote_hold(
        self, hold_id: UUID, session_id: str, appointment: Appointment, now: datetime
    ) -> Optional[Appointment]:
        result = self._execute(
            self.client.rpc(
                "promote_hold",
                {
                    "p_hold_id": str(hold_id),
                    "p_session_id": session_id,
                    "p_appointment": appointment.model_dump(mode="json"),
                    "p_now": now.isoformat(),
                },
            ),
            "promote_hold",
            on_conflict=self._slot_conflict(appointment.appointment_date, appointment.start_time),
        )
        return self._appointment(result.data)

    # Appointments

    async def get_appointment(self, appointment_id: UUID) -> Optional[Appointment]:
        result = self._execute(
            self.client.table("appointments").select("*").eq("id", str(appointment_id)),
            "get_appointment",
        )
        return self._appointment(result.data[0]) if result.data else None

    async def list_appointments(
        self,
        slot_date: Optional[date] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[AppointmentStatus] = None,
    ) -> List[Appointment]:
        query = self.client.table("appointments").select("*")
        if slot_date is not None:
            query = query.eq("appointment_date", slot_date.isoformat())
        if start_date is not None:
            query = query.gte("appointment_date", start_date.isoformat())
        if end_date is not None:
            query = query.lte("appointment_date", end_date.isoformat())
        if status is not None:
            query = query.eq("status", status.value)
        result = self._execute(
            query.order("appointment_date").order("start_time"), "list_appointments"
        )
        return [Appointment.model_validate(row) for row in result.data or []]

    async def insert_appointment(self, appointment: Appointment, now: datetime) -> Appointment:
        result = self._execute(
            self.client.rpc(
                "book_slot",
                {"p_appointment": appointment.model_dump(mode="json"), "p_now": now.isoformat()},
            ),
            "insert_appointment",
            on_conflict=self._slot_conflict(appointment.appointment_date, appointment.start_time),
        )
        return self._appointment(result.data) or appointment

    async def update_appointment(
        self, appointment: Appointment, expected_status: AppointmentStatus
    ) -> Appointment:
        result = self._execute(
            self.client.rpc(
                "transition_appointment",
                {
                    "p_appointment": appointment.model_dump(mode="json"),
                    "p_expected_status": expected_status.value,
                },
            ),
            "update_appointment",
        )
        return self._appointment(result.data) or appointment

    async def move_appointment(self, appointment: Appointment, now: datetime) -> Appointment:
        result = self._execute(
            self.client.rpc(
                "move_appointment",
                {"p_appointment": appointment.model_dump(mode="json"), "p_now": now.isoformat()},
            ),
            "move_appointment",
            on_conflict=self._slot_conflict(appointment.appointment_date, appointment.start_time),
        )
        return self._appointment(result.data) or appointment
