"""Service for reading, validating and replacing the practice schedule."""

import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from consult_booking.database.models import (
    SUPPORTED_SLOT_DURATIONS,
    WEEKDAYS,
    BlockedDate,
    ScheduleConfiguration,
)
from consult_booking.database.store import Store
from consult_booking.utils import intervals
from consult_booking.utils.date_time_utils import Clock, get_practice_now, to_minutes, to_practice_time
from consult_booking.utils.exceptions import ConfigConflictError, ConfigError
from consult_booking.utils.holidays import public_holidays

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {
    "weekly_hours",
    "slot_duration_minutes",
    "break_windows",
    "blocked_dates",
    "blocked_time_ranges",
}


def open_minutes(schedule: ScheduleConfiguration, weekday: str) -> List[intervals.Interval]:
    """Open intervals of a weekday after breaks, before any date-specific blocks"""
    hours = schedule.weekly_hours.get(weekday)
    if hours is None or not hours.enabled or hours.start >= hours.end:
        return []
    return intervals.subtract(
        [(to_minutes(hours.start), to_minutes(hours.end))],
        [(to_minutes(b.start), to_minutes(b.end)) for b in schedule.break_windows],
    )


class ScheduleService:
    """
    Schedule Configuration component.

    Methods:
    - validate(): Reject malformed schedules, return non-fatal warnings
    - get(): Current snapshot (default document created on first use)
    - update(): Merge, validate and atomically replace the snapshot
    - block_public_holidays(): Add a year's public holidays as blocked dates
    """

    def __init__(self, store: Store, clock: Clock = get_practice_now):
        self._store = store
        self._clock = clock

    def validate(self, schedule: ScheduleConfiguration) -> List[str]:
        """
        Validate a schedule.

        Raises:
            ConfigError: listing every hard problem (start >= end, unsupported duration)

        Returns:
            Warnings: past blocked dates/ranges, enabled days yielding no slots
        """
        problems: List[str] = []
        warnings: List[str] = []
        today = to_practice_time(self._clock()).date()

        if schedule.slot_duration_minutes not in SUPPORTED_SLOT_DURATIONS:
            problems.append(
                f"slot_duration_minutes must be one of {SUPPORTED_SLOT_DURATIONS}, "
                f"got {schedule.slot_duration_minutes}"
            )

        for day in WEEKDAYS:
            hours = schedule.weekly_hours.get(day)
            if hours and hours.start >= hours.end:
                problems.append(f"{day}: start {hours.start:%H:%M} is not before end {hours.end:%H:%M}")

        for window in schedule.break_windows:
            if window.start >= window.end:
                problems.append(
                    f"break '{window.label}': start {window.start:%H:%M} is not before end {window.end:%H:%M}"
                )

        for blocked in schedule.blocked_time_ranges:
            if blocked.start >= blocked.end:
                problems.append(
                    f"blocked range on {blocked.blocked_date}: start {blocked.start:%H:%M} "
                    f"is not before end {blocked.end:%H:%M}"
                )
            elif blocked.blocked_date < today:
                warnings.append(f"blocked range on {blocked.blocked_date} is in the past")

        for blocked in schedule.blocked_dates:
            if blocked.blocked_date < today:
                warnings.append(f"blocked date {blocked.blocked_date} is in the past")

        if problems:
            raise ConfigError("Invalid schedule configuration", problems=problems)

        for day in WEEKDAYS:
            hours = schedule.weekly_hours.get(day)
            if not hours or not hours.enabled:
                continue
            if not intervals.tile(open_minutes(schedule, day), schedule.slot_duration_minutes):
                warnings.append(
                    f"{day} is enabled but yields no {schedule.slot_duration_minutes}-minute slots"
                )

        for warning in warnings:
            logger.warning(f"Schedule warning: {warning}")
        return warnings

    async def get(self) -> ScheduleConfiguration:
        """Current schedule snapshot, persisting the defaults on first use"""
        schedule = await self._store.get_schedule()
        if schedule is not None:
            return schedule

        try:
            schedule = await self._store.save_schedule(
                ScheduleConfiguration(), expected_version=0, now=self._clock()
            )
            logger.info("Default schedule configuration created")
            return schedule
        except ConfigConflictError:
            # Another caller created the defaults first
            return await self._store.get_schedule()

    async def update(self, partial: Mapping[str, Any]) -> ScheduleConfiguration:
        """
        Replace the schedule with the current snapshot merged with ``partial``.

        Args:
            partial: Top-level fields to replace (weekly_hours, slot_duration_minutes,
                     break_windows, blocked_dates, blocked_time_ranges)

        Returns:
            The newly persisted snapshot, with ``warnings`` from validation attached

        Raises:
            ConfigError: unknown field, invalid values, or a concurrent update
        """
        unknown = set(partial) - UPDATABLE_FIELDS
        if unknown:
            raise ConfigError(
                "Unknown schedule fields", problems=[f"unknown field '{name}'" for name in sorted(unknown)]
            )

        current = await self.get()
        merged: Dict[str, Any] = current.model_dump()
        merged.update(partial)
        if "weekly_hours" in partial:
            # Weekdays not mentioned keep their current hours
            merged["weekly_hours"] = {**current.model_dump()["weekly_hours"], **dict(partial["weekly_hours"])}

        try:
            candidate = ScheduleConfiguration.model_validate(merged)
        except ValidationError as e:
            raise ConfigError(
                "Invalid schedule configuration",
                problems=[f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()],
            ) from e

        warnings = self.validate(candidate)
        saved = await self._store.save_schedule(
            candidate, expected_version=current.version, now=self._clock()
        )
        logger.info(f"✅ Schedule configuration updated to version {saved.version}")
        return saved.model_copy(update={"warnings": warnings})

    async def block_public_holidays(self, year: Optional[int] = None) -> ScheduleConfiguration:
        """Add public holidays for ``year`` (default: current year) as blocked dates"""
        year = year or to_practice_time(self._clock()).date().year
        current = await self.get()
        already_blocked = {blocked.blocked_date for blocked in current.blocked_dates}

        additions = [
            BlockedDate(blocked_date=day, reason=f"Public Holiday: {name}")
            for day, name in public_holidays(year)
            if day not in already_blocked
        ]
        if not additions:
            return current

        blocked_dates = sorted(current.blocked_dates + additions, key=lambda b: b.blocked_date)
        logger.info(f"Blocking {len(additions)} public holidays for {year}")
        return await self.update({"blocked_dates": blocked_dates})
