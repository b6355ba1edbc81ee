"""
Application service for finding bookable slots.

The service loads availability rows, booked events and timezone hints through
repository protocols and delegates the expansion itself to the domain-level
``AvailabilitySlotGenerator``. Keeping persistence behind protocols lets the
in-memory fixture repository stand in for a database in tests and the CLI.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol

from pendulum import DateTime

from ..domain.models import Availability, CalendarEvent, EventType
from ..domain.slot_generator import DEFAULT_SLOT_DURATION_MINUTES, AvailabilitySlotGenerator
from ..domain.timezone_resolver import first_available

logger = logging.getLogger(__name__)


class AvailabilityRepository(Protocol):
    def find_active(
        self,
        tenant_id: str,
        event_type_id: str,
        assigned_to_user_id: Optional[str] = None,
    ) -> List[Availability]:
        """
        Active rows for the event type. With an assignee, only rows for that
        user or for all users (``assigned_to_user_id`` is None).
        """


class CalendarEventRepository(Protocol):
    def find_scheduled(
        self,
        tenant_id: str,
        event_type_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[CalendarEvent]:
        """SCHEDULED events of the event type starting within ``[start, end]``."""


class EventTypeRepository(Protocol):
    def find_event_type(self, tenant_id: str, event_type_id: str) -> Optional[EventType]:
        """Return the event type, or None if it does not exist."""


class TimezoneDirectory(Protocol):
    """Stored timezone preferences of users and tenants."""

    def user_timezone(self, user_id: str) -> Optional[str]:
        """Return the user's zone name, if set."""

    def tenant_timezone(self, tenant_id: str) -> Optional[str]:
        """Return the tenant's zone name, if set."""


class AvailabilityService:
    """Orchestrates repository reads and slot generation for one booking query."""

    def __init__(
        self,
        availabilities: AvailabilityRepository,
        events: CalendarEventRepository,
        event_types: EventTypeRepository,
        directory: TimezoneDirectory,
        generator: Optional[AvailabilitySlotGenerator] = None,
        fallback_timezone: str = "UTC",
        default_duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES,
    ) -> None:
        self._availabilities = availabilities
        self._events = events
        self._event_types = event_types
        self._directory = directory
        self._generator = generator or AvailabilitySlotGenerator()
        self._fallback_timezone = fallback_timezone
        self._default_duration_minutes = default_duration_minutes

    def generate_slots(
        self,
        tenant_id: str,
        event_type_id: str,
        range_start: Any,
        range_end: Any,
        assigned_to_user_id: Optional[str] = None,
        request_timezone: Optional[str] = None,
    ) -> List[DateTime]:
        """
        Retrieve availability and bookings, then compute open slot instants.
        """
        timezones = self._generator.timezones
        start = timezones.coerce_instant(range_start)
        end = timezones.coerce_instant(range_end)

        availabilities = self._availabilities.find_active(
            tenant_id, event_type_id, assigned_to_user_id or None
        )
        if not availabilities:
            return []

        schedule_timezone = self.resolve_schedule_timezone(
            tenant_id, assigned_to_user_id, request_timezone
        )
        existing_events = self._events.find_scheduled(tenant_id, event_type_id, start, end)

        slots = self._generator.generate(
            availabilities=availabilities,
            existing_events=existing_events,
            range_start=start,
            range_end=end,
            duration_minutes=self._duration_for(tenant_id, event_type_id),
            default_timezone=schedule_timezone,
        )
        logger.debug(
            "Generated %d slots for tenant %s event type %s in %s",
            len(slots), tenant_id, event_type_id, schedule_timezone,
        )
        return slots

    def resolve_schedule_timezone(
        self,
        tenant_id: str,
        assigned_to_user_id: Optional[str] = None,
        request_timezone: Optional[str] = None,
    ) -> str:
        """Assigned user's zone, then the tenant's, then the request's, then the fallback."""
        return first_available(
            [
                lambda: self._directory.user_timezone(assigned_to_user_id) if assigned_to_user_id else None,
                lambda: self._directory.tenant_timezone(tenant_id),
                request_timezone,
            ],
            default=self._fallback_timezone,
        )

    def _duration_for(self, tenant_id: str, event_type_id: str) -> int:
        event_type = self._event_types.find_event_type(tenant_id, event_type_id)
        if event_type is None or not event_type.duration_minutes:
            return self._default_duration_minutes
        return event_type.duration_minutes
