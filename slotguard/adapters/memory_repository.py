"""
In-memory repository for tenants, availability, bookings and execution rules.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import yaml
from pendulum import DateTime

from ..domain.exceptions import RepositoryError
from ..domain.models import (
    Availability,
    CalendarEvent,
    CalendarEventStatus,
    EventType,
    ExecutionRules,
)


class InMemoryRepository:
    """
    Repository that keeps every collaborator's data in process memory.

    It satisfies all repository protocols used by the services, so the CLI can
    run the engine against a YAML fixture file and tests can build scenarios
    without a database.

    Fixture format (top-level keys, all optional)::

        tenants:        [{id, timezone}]
        users:          [{id, timezone}]
        eventTypes:     [{id, tenantId, durationMinutes}]
        availabilities: [{id, tenantId, eventTypeId, weeklySchedule, ...}]
        calendarEvents: [{id, tenantId, eventTypeId, startTime, endTime, status}]
        executionRules: [{tenantId, afterHoursAction, ...}]
    """

    def __init__(
        self,
        tenants: Optional[Mapping[str, Optional[str]]] = None,
        users: Optional[Mapping[str, Optional[str]]] = None,
        event_types: Iterable[EventType] = (),
        availabilities: Iterable[Availability] = (),
        events: Iterable[CalendarEvent] = (),
        rules: Iterable[ExecutionRules] = (),
    ):
        self.tenant_timezones: Dict[str, Optional[str]] = dict(tenants or {})
        self.user_timezones: Dict[str, Optional[str]] = dict(users or {})
        self.event_types: Dict[str, EventType] = {et.id: et for et in event_types}
        self.availabilities: List[Availability] = list(availabilities)
        self.events: List[CalendarEvent] = list(events)
        self.rules: Dict[str, ExecutionRules] = {r.tenant_id: r for r in rules}

    @classmethod
    def from_yaml(cls, path: Path) -> "InMemoryRepository":
        """
        Load a fixture file.

        Raises:
            RepositoryError: If the file is missing, unreadable or malformed
        """
        if not path.exists():
            raise RepositoryError(f"Data file not found: {path}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise RepositoryError(f"Could not read data file {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise RepositoryError("Data file must contain a mapping at the root level.")

        try:
            return cls.from_dict(data)
        except (KeyError, TypeError, ValueError) as exc:
            raise RepositoryError(f"Invalid record in {path}: {exc}") from exc

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "InMemoryRepository":
        return cls(
            tenants={str(t["id"]): t.get("timezone") for t in data.get("tenants") or []},
            users={str(u["id"]): u.get("timezone") for u in data.get("users") or []},
            event_types=[EventType.from_dict(et) for et in data.get("eventTypes") or []],
            availabilities=[Availability.from_dict(a) for a in data.get("availabilities") or []],
            events=[CalendarEvent.from_dict(e) for e in data.get("calendarEvents") or []],
            rules=[ExecutionRules.from_dict(r) for r in data.get("executionRules") or []],
        )

    # Execution rules

    def find_by_tenant(self, tenant_id: str) -> Optional[ExecutionRules]:
        return self.rules.get(tenant_id)

    def save(self, rules: ExecutionRules) -> ExecutionRules:
        self.rules[rules.tenant_id] = rules
        return rules

    # Availability and bookings

    def find_active(
        self,
        tenant_id: str,
        event_type_id: str,
        assigned_to_user_id: Optional[str] = None,
    ) -> List[Availability]:
        return [
            a for a in self.availabilities
            if a.tenant_id == tenant_id
            and a.event_type_id == event_type_id
            and a.is_active
            and (
                assigned_to_user_id is None
                or a.assigned_to_user_id in (assigned_to_user_id, None)
            )
        ]

    def find_scheduled(
        self,
        tenant_id: str,
        event_type_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[CalendarEvent]:
        return [
            e for e in self.events
            if e.tenant_id == tenant_id
            and e.event_type_id == event_type_id
            and e.status == CalendarEventStatus.SCHEDULED
            and start <= e.start_time <= end
        ]

    def find_event_type(self, tenant_id: str, event_type_id: str) -> Optional[EventType]:
        event_type = self.event_types.get(event_type_id)
        if event_type is None or event_type.tenant_id != tenant_id:
            return None
        return event_type

    # Timezone directory

    def user_timezone(self, user_id: str) -> Optional[str]:
        return self.user_timezones.get(user_id)

    def tenant_timezone(self, tenant_id: str) -> Optional[str]:
        return self.tenant_timezones.get(tenant_id)
