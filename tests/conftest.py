"""Shared fixtures for booking engine tests"""
from datetime import date, datetime, timedelta
from typing import List

import pytest

from consult_booking.database.models import (
    AppointmentDetails,
    ConsultationType,
    LifecycleEvent,
)
from consult_booking.database.store import InMemoryStore
from consult_booking.engine import BookingEngine
from consult_booking.services.event_service import EventService
from consult_booking.utils.date_time_utils import PRACTICE_TZ


class FrozenClock:
    """Injectable clock that only moves when told to"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# Wednesday morning in the practice timezone
START = PRACTICE_TZ.localize(datetime(2026, 10, 14, 8, 0))


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(START)


@pytest.fixture
def next_monday(clock) -> date:
    today = clock().date()
    return today + timedelta(days=(7 - today.weekday()) % 7 or 7)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def engine(store, clock) -> BookingEngine:
    return BookingEngine(
        store=store, clock=clock, events=EventService(max_attempts=1, retry_delay=0)
    )


@pytest.fixture
def emitted(engine) -> List[LifecycleEvent]:
    """Every lifecycle event the engine emits during a test"""
    events: List[LifecycleEvent] = []
    engine.events.subscribe(events.append)
    return events


@pytest.fixture
def details() -> AppointmentDetails:
    return AppointmentDetails(
        customer_name="Thandi Mokoena",
        customer_email="thandi@example.com",
        customer_phone="+27821234567",
        consultation_type=ConsultationType.VIRTUAL,
    )
