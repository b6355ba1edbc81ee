"""
Tests for slot generation.
"""

import pendulum
import pytest

from slotguard.domain.models import (
    Availability,
    CalendarEvent,
    CalendarEventStatus,
    DayOfWeek,
    DaySchedule,
)
from slotguard.domain.slot_generator import AvailabilitySlotGenerator

MONDAY = pendulum.datetime(2024, 11, 25, tz="UTC")
TUESDAY = pendulum.datetime(2024, 11, 26, tz="UTC")


def _availability(schedule, **kwargs):
    return Availability(
        id=kwargs.pop("id", "a1"),
        tenant_id="acme",
        event_type_id="demo",
        weekly_schedule=schedule,
        **kwargs
    )


def _event(start, end, status=CalendarEventStatus.SCHEDULED):
    return CalendarEvent(
        id=f"e-{start}",
        tenant_id="acme",
        start_time=pendulum.parse(start),
        end_time=pendulum.parse(end),
        status=status,
        event_type_id="demo",
    )


def _utc(text):
    return pendulum.parse(text, tz="UTC")


MORNING = {DayOfWeek.MONDAY: DaySchedule(enabled=True, start_time="09:00", end_time="11:00")}


class TestAvailabilitySlotGenerator:
    """Tests for AvailabilitySlotGenerator."""

    def test_basic_slots(self):
        """A two-hour window yields four half-hour slots."""
        generator = AvailabilitySlotGenerator()

        slots = generator.generate([_availability(MORNING)], [], MONDAY, TUESDAY)

        assert slots == [
            _utc("2024-11-25T09:00"),
            _utc("2024-11-25T09:30"),
            _utc("2024-11-25T10:00"),
            _utc("2024-11-25T10:30"),
        ]

    def test_slots_are_utc(self):
        slots = AvailabilitySlotGenerator().generate([_availability(MORNING)], [], MONDAY, TUESDAY)

        assert all(slot.timezone_name == "UTC" for slot in slots)

    def test_range_is_half_open(self):
        slots = AvailabilitySlotGenerator().generate(
            [_availability(MORNING)], [], _utc("2024-11-25T09:30"), _utc("2024-11-25T10:30")
        )

        assert slots == [_utc("2024-11-25T09:30"), _utc("2024-11-25T10:00")]

    def test_custom_duration(self):
        slots = AvailabilitySlotGenerator().generate(
            [_availability(MORNING)], [], MONDAY, TUESDAY, duration_minutes=60
        )

        assert slots == [_utc("2024-11-25T09:00"), _utc("2024-11-25T10:00")]

    def test_last_slot_starts_before_window_end(self):
        """A slot starting inside the window is offered even if it runs past the end."""
        schedule = {DayOfWeek.MONDAY: DaySchedule(enabled=True, start_time="09:00", end_time="10:15")}

        slots = AvailabilitySlotGenerator().generate([_availability(schedule)], [], MONDAY, TUESDAY)

        assert slots[-1] == _utc("2024-11-25T10:00")
        assert len(slots) == 3

    def test_booked_slot_removed_at_capacity_one(self):
        events = [_event("2024-11-25T09:00:00Z", "2024-11-25T09:30:00Z")]

        slots = AvailabilitySlotGenerator().generate([_availability(MORNING)], events, MONDAY, TUESDAY)

        assert _utc("2024-11-25T09:00") not in slots
        assert _utc("2024-11-25T09:30") in slots

    def test_booked_slot_kept_below_capacity(self):
        events = [_event("2024-11-25T09:00:00Z", "2024-11-25T09:30:00Z")]
        availability = _availability(MORNING, max_events_per_slot=2)

        slots = AvailabilitySlotGenerator().generate([availability], events, MONDAY, TUESDAY)

        assert _utc("2024-11-25T09:00") in slots

    def test_partial_overlap_blocks_both_slots(self):
        events = [_event("2024-11-25T09:15:00Z", "2024-11-25T09:45:00Z")]

        slots = AvailabilitySlotGenerator().generate([_availability(MORNING)], events, MONDAY, TUESDAY)

        assert slots == [_utc("2024-11-25T10:00"), _utc("2024-11-25T10:30")]

    def test_only_scheduled_events_count(self):
        events = [
            _event("2024-11-25T09:00:00Z", "2024-11-25T09:30:00Z", CalendarEventStatus.CANCELLED),
            _event("2024-11-25T09:30:00Z", "2024-11-25T10:00:00Z", CalendarEventStatus.COMPLETED),
        ]

        slots = AvailabilitySlotGenerator().generate([_availability(MORNING)], events, MONDAY, TUESDAY)

        assert len(slots) == 4

    def test_overlapping_rows_are_deduplicated(self):
        rows = [_availability(MORNING, id="a1"), _availability(MORNING, id="a2")]

        slots = AvailabilitySlotGenerator().generate(rows, [], MONDAY, TUESDAY)

        assert len(slots) == 4
        assert slots == sorted(slots)

    def test_blocked_date_skipped(self):
        availability = _availability(MORNING, blocked_dates=["2024-11-25"])

        assert AvailabilitySlotGenerator().generate([availability], [], MONDAY, TUESDAY) == []

    def test_validity_window_is_inclusive(self):
        schedule = {
            DayOfWeek.MONDAY: DaySchedule(enabled=True, start_time="09:00", end_time="10:00"),
            DayOfWeek.TUESDAY: DaySchedule(enabled=True, start_time="09:00", end_time="10:00"),
        }
        availability = _availability(
            schedule,
            start_date=pendulum.date(2024, 11, 25),
            end_date=pendulum.date(2024, 11, 25),
        )

        slots = AvailabilitySlotGenerator().generate(
            [availability], [], MONDAY, TUESDAY.add(days=1)
        )

        assert slots == [_utc("2024-11-25T09:00"), _utc("2024-11-25T09:30")]

    def test_disabled_and_missing_days_produce_nothing(self):
        schedule = {DayOfWeek.MONDAY: DaySchedule(enabled=False, start_time="09:00", end_time="17:00")}

        assert AvailabilitySlotGenerator().generate([_availability(schedule)], [], MONDAY, TUESDAY) == []
        assert AvailabilitySlotGenerator().generate([_availability({})], [], MONDAY, TUESDAY) == []

    def test_default_timezone_applies_to_unzoned_rows(self):
        slots = AvailabilitySlotGenerator().generate(
            [_availability(MORNING)], [], MONDAY, TUESDAY, default_timezone="America/New_York"
        )

        assert slots[0] == _utc("2024-11-25T14:00")

    def test_day_timezone_overrides_default(self):
        schedule = {
            DayOfWeek.MONDAY: DaySchedule(
                enabled=True, start_time="09:00", end_time="10:00", timezone="Europe/Berlin"
            ),
        }

        slots = AvailabilitySlotGenerator().generate(
            [_availability(schedule)], [], MONDAY, TUESDAY, default_timezone="America/New_York"
        )

        assert slots == [_utc("2024-11-25T08:00"), _utc("2024-11-25T08:30")]

    def test_local_day_before_utc_range_start(self):
        """Tuesday morning in Tokyo is still Monday in UTC."""
        schedule = {
            DayOfWeek.TUESDAY: DaySchedule(
                enabled=True, start_time="08:00", end_time="09:00", timezone="Asia/Tokyo"
            ),
        }

        slots = AvailabilitySlotGenerator().generate([_availability(schedule)], [], MONDAY, TUESDAY)

        assert slots == [_utc("2024-11-25T23:00"), _utc("2024-11-25T23:30")]

    def test_every_local_day_seen_across_dst_change(self):
        """Each local date of a daily schedule is visited exactly once."""
        schedule = {
            day: DaySchedule(enabled=True, start_time="00:00", end_time="00:30", timezone="Atlantic/Azores")
            for day in DayOfWeek
        }
        start = _utc("2024-03-28T00:00")
        end = _utc("2024-04-03T00:00")

        slots = AvailabilitySlotGenerator().generate([_availability(schedule)], [], start, end)

        local_days = [slot.in_timezone("Atlantic/Azores").to_date_string() for slot in slots]
        assert local_days == sorted(set(local_days))
        assert "2024-03-31" in local_days

    def test_malformed_schedule_time_skips_day(self):
        schedule = {
            DayOfWeek.MONDAY: DaySchedule(enabled=True, start_time="9am", end_time="11:00"),
            DayOfWeek.TUESDAY: DaySchedule(enabled=True, start_time="09:00", end_time="09:30"),
        }

        slots = AvailabilitySlotGenerator().generate(
            [_availability(schedule)], [], MONDAY, TUESDAY.add(days=1)
        )

        assert slots == [_utc("2024-11-26T09:00")]

    def test_empty_range_returns_nothing(self):
        generator = AvailabilitySlotGenerator()

        assert generator.generate([_availability(MORNING)], [], TUESDAY, MONDAY) == []
        assert generator.generate([_availability(MORNING)], [], MONDAY, MONDAY) == []

    def test_non_positive_duration_raises(self):
        with pytest.raises(ValueError, match="duration"):
            AvailabilitySlotGenerator().generate(
                [_availability(MORNING)], [], MONDAY, TUESDAY, duration_minutes=0
            )
