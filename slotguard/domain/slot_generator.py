"""
Core business logic for expanding weekly availability into bookable slots.

Pure domain logic: the caller supplies availability rows and existing events,
nothing here performs I/O.
"""

from __future__ import annotations

import logging
from typing import Any, Iterator, List, Optional, Sequence, Set

from pendulum import Date, DateTime

from .exceptions import ScheduleFormatError
from .models import (
    Availability,
    CalendarEvent,
    CalendarEventStatus,
    DayOfWeek,
    TimeRange,
    parse_clock_time,
)
from .timezone_resolver import TimezoneResolver

logger = logging.getLogger(__name__)

DEFAULT_SLOT_DURATION_MINUTES = 30


class AvailabilitySlotGenerator:
    """
    Calculates bookable slot start instants from weekly availability.

    Algorithm:
    1. Resolve the zone each availability row is written in
    2. Walk the row's local dates from one day before the range to one day after
    3. Skip blocked dates, dates outside the row's validity window and disabled weekdays
    4. Convert the day's window to UTC and step through it by the slot duration
    5. Keep slots inside the search range that still have capacity
    6. Deduplicate across rows and sort ascending
    """

    def __init__(self, timezones: Optional[TimezoneResolver] = None):
        self.timezones = timezones or TimezoneResolver()

    def generate(
        self,
        availabilities: Sequence[Availability],
        existing_events: Sequence[CalendarEvent],
        range_start: Any,
        range_end: Any,
        duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES,
        default_timezone: str = "UTC",
    ) -> List[DateTime]:
        """
        Generate available slots for the half-open range ``[range_start, range_end)``.

        Args:
            availabilities: Active availability rows to expand
            existing_events: Booked events used for capacity checks
            range_start: Start of the search range (instant)
            range_end: End of the search range (instant, exclusive)
            duration_minutes: Length of one booking and the slot step
            default_timezone: Zone for rows whose schedule names none

        Returns:
            Sorted, deduplicated UTC slot start instants
        """
        if duration_minutes <= 0:
            raise ValueError(f"Slot duration must be positive, got {duration_minutes}")

        start = self.timezones.coerce_instant(range_start)
        end = self.timezones.coerce_instant(range_end)
        if end <= start:
            return []

        search = TimeRange(start=start, end=end)
        booked = [
            event for event in existing_events
            if event.status == CalendarEventStatus.SCHEDULED
        ]

        slots: Set[DateTime] = set()
        for availability in availabilities:
            slots.update(
                self._slots_for_availability(
                    availability, booked, search, duration_minutes, default_timezone
                )
            )

        return sorted(slots)

    def _slots_for_availability(
        self,
        availability: Availability,
        booked: List[CalendarEvent],
        search: TimeRange,
        duration_minutes: int,
        default_timezone: str,
    ) -> Iterator[DateTime]:
        zone = availability.schedule_timezone(default_timezone)

        # Pad by a day on each side so local dates straddling the UTC range are seen
        day = self.timezones.local_date(search.start.subtract(days=1), zone)
        last = self.timezones.local_date(search.end.add(days=1), zone)

        while day <= last:
            window = self._window_for_day(availability, day, zone)
            if window is not None:
                yield from self._slots_in_window(
                    window, search, booked, duration_minutes, availability.capacity
                )
            day = day.add(days=1)

    def _window_for_day(
        self,
        availability: Availability,
        day: Date,
        zone: str,
    ) -> TimeRange | None:
        """
        Get the UTC availability window for one local date.
        Returns None if the row offers nothing that day.
        """
        if availability.is_blocked(day.to_date_string()):
            return None
        if not availability.covers_date(day):
            return None

        weekday = DayOfWeek.from_isoweekday(day.isoweekday())
        day_schedule = availability.weekly_schedule.get(weekday)
        if day_schedule is None or not day_schedule.enabled:
            return None

        day_zone = day_schedule.timezone or zone
        try:
            start_hour, start_minute = parse_clock_time(day_schedule.start_time)
            end_hour, end_minute = parse_clock_time(day_schedule.end_time)
        except ScheduleFormatError as e:
            logger.warning(
                "Skipping %s %s of availability %s: %s",
                weekday.value, day.to_date_string(), availability.id, e,
            )
            return None

        start = self.timezones.date_to_utc(day, start_hour, start_minute, day_zone)
        end = self.timezones.date_to_utc(day, end_hour, end_minute, day_zone)
        if start >= end:
            return None

        return TimeRange(start=start, end=end)

    def _slots_in_window(
        self,
        window: TimeRange,
        search: TimeRange,
        booked: List[CalendarEvent],
        duration_minutes: int,
        capacity: int,
    ) -> Iterator[DateTime]:
        slot = window.start
        while slot < window.end:
            candidate = TimeRange(start=slot, end=slot.add(minutes=duration_minutes))

            if search.start <= slot < search.end:
                conflicts = sum(1 for event in booked if event.overlaps(candidate))
                if conflicts < capacity:
                    yield slot

            slot = candidate.end
