"""Service for emitting appointment lifecycle events to the notification dispatcher."""
import asyncio
import inspect
import json
import logging
from typing import Any, Awaitable, Callable, List, Optional, Union
from livekit import rtc

from consult_booking.config import config
from consult_booking.database.models import LifecycleEvent

logger = logging.getLogger(__name__)

EVENT_TOPIC = "appointments"

Subscriber = Callable[[LifecycleEvent], Union[None, Awaitable[None]]]


class EventService:
    """
    Deliver lifecycle events to in-process subscribers and, when a LiveKit room
    is attached, as reliable data messages on the ``appointments`` topic.

    Methods:
    - subscribe(): Register a callback (sync or async) for every event
    - attach_room(): Publish events to a LiveKit room as JSON
    - emit(): Deliver one event, retrying each target before giving up

    Emission happens after the state change has committed, so a delivery that
    still fails after retries is logged rather than raised. Every payload
    carries an idempotency key so the dispatcher can drop duplicates.
    """

    def __init__(
        self,
        room: Optional[rtc.Room] = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self._room = room
        self._subscribers: List[Subscriber] = []
        self._max_attempts = max(1, max_attempts or config.event_publish_retries)
        self._retry_delay = (
            config.event_retry_delay_seconds if retry_delay is None else retry_delay
        )

    def attach_room(self, room: Optional[rtc.Room]):
        """Store the LiveKit room instance used for publishing"""
        self._room = room

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a subscriber; returns a function that removes it"""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    async def emit(self, event: LifecycleEvent) -> bool:
        """
        Deliver an event to every target.

        Args:
            event: Lifecycle event for one committed transition

        Returns:
            True if every target accepted the event
        """
        logger.info(
            f"📣 {event.event_type.value} event for appointment {event.appointment.id} "
            f"({event.idempotency_key})"
        )
        delivered = True
        for subscriber in list(self._subscribers):
            delivered &= await self._deliver(
                lambda: subscriber(event), f"subscriber {getattr(subscriber, '__name__', subscriber)}"
            )

        if self._room:
            data = json.dumps(event.to_payload()).encode("utf-8")
            delivered &= await self._deliver(
                lambda: self._room.local_participant.publish_data(
                    data, reliable=True, topic=EVENT_TOPIC
                ),
                "livekit room",
            )
        return delivered

    async def _deliver(self, send: Callable[[], Any], target: str) -> bool:
        for attempt in range(1, self._max_attempts + 1):
            try:
                result = send()
                if inspect.isawaitable(result):
                    await result
                return True
            except Exception as e:
                logger.warning(
                    f"Event delivery to {target} failed (attempt {attempt}/{self._max_attempts}): {e}"
                )
                if attempt < self._max_attempts:
                    await asyncio.sleep(self._retry_delay * attempt)

        logger.error(f"Giving up delivering event to {target} after {self._max_attempts} attempts")
        return False
