"""Unit tests for lifecycle event emission"""
import json
from datetime import time
from unittest.mock import AsyncMock, Mock

import pytest
from livekit import rtc

from consult_booking.database.models import EventType, LifecycleEvent, Slot
from consult_booking.engine import BookingEngine
from consult_booking.services.consultation_policy import build_appointment
from consult_booking.services.event_service import EVENT_TOPIC, EventService


@pytest.fixture
def mock_room():
    """Create a mock LiveKit room"""
    room = Mock(spec=rtc.Room)
    room.local_participant = Mock()
    room.local_participant.publish_data = AsyncMock()
    return room


@pytest.fixture
def event(clock, next_monday, details):
    slot = Slot(slot_date=next_monday, start_time=time(9, 0), end_time=time(9, 30))
    return LifecycleEvent(
        event_type=EventType.CREATED,
        appointment=build_appointment(slot, details, clock()),
        occurred_at=clock(),
    )


class TestLifecycleEvent:
    """Tests for the event payload"""

    def test_idempotency_key(self, event, clock):
        """Test the key combines appointment, event type and timestamp"""
        assert event.idempotency_key == (
            f"{event.appointment.id}:created:{clock().isoformat()}"
        )

    def test_payload(self, event):
        """Test the payload is JSON-ready and carries a display label"""
        payload = event.to_payload()

        assert payload["type"] == "appointment_lifecycle"
        assert payload["event_type"] == "created"
        assert payload["appointment"]["start_time"] == "09:00:00"
        assert payload["appointment"]["price"] == "1500"
        assert payload["display"] == {"slot": "Monday, October 19 at 9 AM"}
        json.dumps(payload)

    def test_payload_with_previous_slot(self, event, next_monday):
        """Test reschedule payloads also describe the old slot"""
        moved = event.model_copy(
            update={
                "event_type": EventType.RESCHEDULED,
                "previous_slot": Slot(
                    slot_date=next_monday, start_time=time(14, 30), end_time=time(15, 0)
                ),
            }
        )

        assert moved.to_payload()["display"]["previous_slot"] == "Monday, October 19 at 2:30 PM"


class TestEventService:
    """Tests for EventService delivery"""

    @pytest.mark.asyncio
    async def test_publish_to_room(self, mock_room, event):
        """Test events are published as reliable data on the appointments topic"""
        service = EventService(room=mock_room, max_attempts=1, retry_delay=0)

        assert await service.emit(event) is True

        mock_room.local_participant.publish_data.assert_awaited_once()
        args, kwargs = mock_room.local_participant.publish_data.call_args
        assert json.loads(args[0].decode("utf-8"))["idempotency_key"] == event.idempotency_key
        assert kwargs == {"reliable": True, "topic": EVENT_TOPIC}

    @pytest.mark.asyncio
    async def test_retry_then_succeed(self, mock_room, event):
        """Test a transient publish failure is retried"""
        mock_room.local_participant.publish_data = AsyncMock(
            side_effect=[ConnectionError("room unavailable"), None]
        )
        service = EventService(room=mock_room, max_attempts=3, retry_delay=0)

        assert await service.emit(event) is True
        assert mock_room.local_participant.publish_data.await_count == 2

    @pytest.mark.asyncio
    async def test_give_up_without_raising(self, mock_room, event):
        """Test delivery failures are reported, not raised"""
        mock_room.local_participant.publish_data = AsyncMock(
            side_effect=ConnectionError("room unavailable")
        )
        service = EventService(room=mock_room, max_attempts=3, retry_delay=0)

        assert await service.emit(event) is False
        assert mock_room.local_participant.publish_data.await_count == 3

    @pytest.mark.asyncio
    async def test_subscribers(self, event):
        """Test sync and async subscribers both receive events until removed"""
        received = []
        async_callback = AsyncMock()
        service = EventService(max_attempts=1, retry_delay=0)
        unsubscribe = service.subscribe(received.append)
        service.subscribe(async_callback)

        await service.emit(event)
        unsubscribe()
        await service.emit(event)

        assert received == [event]
        assert async_callback.await_count == 2

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_block_others(self, event):
        """Test one broken subscriber does not stop delivery to the rest"""
        received = []
        service = EventService(max_attempts=2, retry_delay=0)
        service.subscribe(Mock(side_effect=RuntimeError("boom")))
        service.subscribe(received.append)

        assert await service.emit(event) is False
        assert received == [event]

    @pytest.mark.asyncio
    async def test_attach_room(self, mock_room, event):
        """Test a room attached later receives events"""
        service = EventService(max_attempts=1, retry_delay=0)
        service.attach_room(mock_room)

        await service.emit(event)

        mock_room.local_participant.publish_data.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_delivery_keeps_transition(self, store, clock, mock_room, next_monday, details):
        """Test a committed transition stands when the room is unreachable"""
        mock_room.local_participant.publish_data = AsyncMock(side_effect=ConnectionError("down"))
        engine = BookingEngine(
            store=store, clock=clock, events=EventService(room=mock_room, max_attempts=2, retry_delay=0)
        )
        appointment = await engine.lifecycle.create_manual(next_monday, "09:00", "09:30", details)

        cancelled = await engine.lifecycle.cancel(appointment.id)

        assert cancelled.status.value == "cancelled"
        assert (await engine.lifecycle.get(appointment.id)).status.value == "cancelled"
