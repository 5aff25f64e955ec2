"""Database module: domain models and storage adapters"""
from .models import (
    Appointment,
    AppointmentDetails,
    AppointmentStatus,
    ConsultationType,
    EventType,
    Hold,
    LifecycleEvent,
    PaymentStatus,
    ScheduleConfiguration,
    Slot,
)
from .store import Store, InMemoryStore
from .supabase_store import SupabaseStore

__all__ = [
    "Appointment",
    "AppointmentDetails",
    "AppointmentStatus",
    "ConsultationType",
    "EventType",
    "Hold",
    "LifecycleEvent",
    "PaymentStatus",
    "ScheduleConfiguration",
    "Slot",
    "Store",
    "InMemoryStore",
    "SupabaseStore",
]
