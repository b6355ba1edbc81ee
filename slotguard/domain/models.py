"""
Domain models for execution rules, availability and calendar data.

Persisted records use camelCase keys (``afterHoursAction``, ``weeklySchedule``);
the ``from_dict``/``to_dict`` helpers translate between that shape and the
dataclasses used throughout the engine.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

import pendulum
from pendulum import Date, DateTime

from .exceptions import ScheduleFormatError

logger = logging.getLogger(__name__)


class DayOfWeek(str, Enum):
    """Weekday names as stored in business hours and weekly schedules."""

    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @classmethod
    def from_isoweekday(cls, number: int) -> "DayOfWeek":
        """Map ``date.isoweekday()`` (1=Monday, 7=Sunday) to a weekday."""
        return _ISO_WEEKDAYS[number - 1]

    @classmethod
    def parse(cls, value: Any) -> Optional["DayOfWeek"]:
        """Parse a weekday name case-insensitively, returning None if unknown."""
        if isinstance(value, DayOfWeek):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None


_ISO_WEEKDAYS = list(DayOfWeek)

WEEKDAYS: FrozenSet[DayOfWeek] = frozenset(_ISO_WEEKDAYS[:5])


class AfterHoursAction(str, Enum):
    RESCHEDULE_NEXT_AVAILABLE = "RESCHEDULE_NEXT_AVAILABLE"
    RESCHEDULE_NEXT_BUSINESS_DAY = "RESCHEDULE_NEXT_BUSINESS_DAY"
    RESCHEDULE_SPECIFIC_TIME = "RESCHEDULE_SPECIFIC_TIME"
    SKIP_NODE = "SKIP_NODE"
    PAUSE_JOURNEY = "PAUSE_JOURNEY"
    DEFAULT_EVENT = "DEFAULT_EVENT"


class TcpaViolationAction(str, Enum):
    RESCHEDULE_NEXT_AVAILABLE = "RESCHEDULE_NEXT_AVAILABLE"
    RESCHEDULE_NEXT_BUSINESS_DAY = "RESCHEDULE_NEXT_BUSINESS_DAY"
    SKIP_NODE = "SKIP_NODE"
    PAUSE_JOURNEY = "PAUSE_JOURNEY"
    DEFAULT_EVENT = "DEFAULT_EVENT"
    BLOCK = "BLOCK"


class ResubmissionAction(str, Enum):
    SKIP_DUPLICATE = "SKIP_DUPLICATE"
    RESCHEDULE_DELAY = "RESCHEDULE_DELAY"
    PAUSE_JOURNEY = "PAUSE_JOURNEY"
    DEFAULT_EVENT = "DEFAULT_EVENT"
    CONTINUE = "CONTINUE"


class CalendarEventStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


_CLOCK_TIME = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_clock_time(value: Optional[str]) -> Tuple[int, int]:
    """
    Parse an ``HH:mm`` wall-clock string.

    Raises:
        ScheduleFormatError: If the value is empty, malformed or out of range
    """
    match = _CLOCK_TIME.match((value or "").strip())
    if not match:
        raise ScheduleFormatError(f"Expected HH:mm, got {value!r}")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ScheduleFormatError(f"Clock time out of range: {value!r}")
    return hour, minute


def _parse_date(value: Any) -> Optional[Date]:
    if value is None or value == "":
        return None
    if isinstance(value, Date):
        return value
    if hasattr(value, "year") and hasattr(value, "month") and hasattr(value, "day"):
        return pendulum.date(value.year, value.month, value.day)
    return pendulum.from_format(str(value)[:10], "YYYY-MM-DD").date()


def _parse_instant(value: Any) -> DateTime:
    if isinstance(value, DateTime):
        return value.in_timezone("UTC")
    if hasattr(value, "tzinfo"):
        return pendulum.instance(value, tz="UTC").in_timezone("UTC")
    return pendulum.parse(str(value), tz="UTC").in_timezone("UTC")


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start


@dataclass(frozen=True)
class BusinessHours:
    """
    Allowed calling window: ``[start_hour, end_hour)`` local time on the
    listed weekdays. An empty ``days_of_week`` allows every day, unless the
    persisted list only held names that are not weekdays
    (``unknown_days``); then no day is allowed.
    """
    start_hour: int = 8
    end_hour: int = 21
    days_of_week: FrozenSet[DayOfWeek] = WEEKDAYS
    timezone: Optional[str] = None
    unknown_days: Tuple[str, ...] = ()

    def __post_init__(self):
        for name in ("start_hour", "end_hour"):
            value = getattr(self, name)
            if not 0 <= value <= 23:
                raise ValueError(f"{name} must be between 0 and 23, got {value}")

    def is_business_day(self, day: DayOfWeek) -> bool:
        """Check if a weekday is allowed."""
        if not self.days_of_week and not self.unknown_days:
            return True
        return day in self.days_of_week

    def is_within_hours(self, hour: int) -> bool:
        return self.start_hour <= hour < self.end_hour

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BusinessHours":
        days, unknown = _parse_days(data.get("daysOfWeek") or [])
        return cls(
            start_hour=int(data.get("startHour", 8)),
            end_hour=int(data.get("endHour", 21)),
            days_of_week=days,
            timezone=data.get("timezone") or None,
            unknown_days=unknown,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "startHour": self.start_hour,
            "endHour": self.end_hour,
            "daysOfWeek": [day.value for day in DayOfWeek if day in self.days_of_week]
            + list(self.unknown_days),
        }
        if self.timezone:
            data["timezone"] = self.timezone
        return data


def _parse_days(values: Iterable[Any]) -> Tuple[FrozenSet[DayOfWeek], Tuple[str, ...]]:
    days = set()
    unknown = []
    for value in values:
        day = DayOfWeek.parse(value)
        if day is None:
            logger.warning("Unknown weekday name %r in business hours never matches a day", value)
            unknown.append(str(value))
            continue
        days.add(day)
    return frozenset(days), tuple(unknown)


# Persisted (camelCase) column name -> dataclass attribute
_RULE_COLUMNS: Dict[str, str] = {
    "tenantId": "tenant_id",
    "afterHoursAction": "after_hours_action",
    "afterHoursBusinessHours": "after_hours_business_hours",
    "afterHoursRescheduleTime": "after_hours_reschedule_time",
    "afterHoursDefaultEventTypeId": "after_hours_default_event_type_id",
    "tcpaViolationAction": "tcpa_violation_action",
    "tcpaRescheduleTime": "tcpa_reschedule_time",
    "tcpaDefaultEventTypeId": "tcpa_default_event_type_id",
    "tcpaRescheduleDelayHours": "tcpa_reschedule_delay_hours",
    "resubmissionAction": "resubmission_action",
    "resubmissionDetectionWindowHours": "resubmission_detection_window_hours",
    "resubmissionDefaultEventTypeId": "resubmission_default_event_type_id",
    "resubmissionRescheduleDelayHours": "resubmission_reschedule_delay_hours",
    "enableAfterHoursHandling": "enable_after_hours_handling",
    "enableTcpaViolationHandling": "enable_tcpa_violation_handling",
    "enableResubmissionHandling": "enable_resubmission_handling",
}

_LEGACY_RULE_COLUMNS = {"enableTcpaviolationHandling": "enable_tcpa_violation_handling"}

_ENUM_FIELDS = {
    "after_hours_action": AfterHoursAction,
    "tcpa_violation_action": TcpaViolationAction,
    "resubmission_action": ResubmissionAction,
}


@dataclass(frozen=True)
class ExecutionRules:
    """Per-tenant after-hours, TCPA and lead-resubmission handling rules."""
    tenant_id: str
    after_hours_action: AfterHoursAction = AfterHoursAction.RESCHEDULE_NEXT_BUSINESS_DAY
    after_hours_business_hours: Optional[BusinessHours] = None
    after_hours_reschedule_time: Optional[str] = None
    after_hours_default_event_type_id: Optional[str] = None
    tcpa_violation_action: TcpaViolationAction = TcpaViolationAction.BLOCK
    tcpa_reschedule_time: Optional[str] = None
    tcpa_default_event_type_id: Optional[str] = None
    tcpa_reschedule_delay_hours: Optional[int] = None
    resubmission_action: ResubmissionAction = ResubmissionAction.SKIP_DUPLICATE
    resubmission_detection_window_hours: int = 24
    resubmission_default_event_type_id: Optional[str] = None
    resubmission_reschedule_delay_hours: Optional[int] = None
    enable_after_hours_handling: bool = True
    enable_tcpa_violation_handling: bool = True
    enable_resubmission_handling: bool = True

    @classmethod
    def defaults(
        cls,
        tenant_id: str,
        business_hours: Optional[BusinessHours] = None,
        detection_window_hours: int = 24,
        reschedule_delay_hours: Optional[int] = None,
    ) -> "ExecutionRules":
        """Conservative defaults provisioned for a tenant on first read."""
        return cls(
            tenant_id=tenant_id,
            after_hours_business_hours=business_hours or BusinessHours(),
            resubmission_detection_window_hours=detection_window_hours,
            resubmission_reschedule_delay_hours=reschedule_delay_hours,
        )

    def merge(self, updates: Mapping[str, Any]) -> "ExecutionRules":
        """
        Return a copy with ``updates`` applied.

        Keys may be persisted camelCase names or attribute names.

        Raises:
            ValueError: If a key is unknown or an enum value is invalid
        """
        changes = {}
        for key, value in updates.items():
            name = _RULE_COLUMNS.get(key) or _LEGACY_RULE_COLUMNS.get(key, key)
            if name not in _RULE_COLUMNS.values() or name == "tenant_id":
                raise ValueError(f"Unknown execution rule field: {key}")
            changes[name] = _coerce_rule_value(name, value)
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExecutionRules":
        tenant_id = data.get("tenantId") or data.get("tenant_id")
        if not tenant_id:
            raise ValueError("Execution rules require a tenantId")
        rest = {k: v for k, v in data.items() if k not in ("tenantId", "tenant_id", "id")}
        return cls(tenant_id=str(tenant_id)).merge(rest)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for column, name in _RULE_COLUMNS.items():
            value = getattr(self, name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, BusinessHours):
                value = value.to_dict()
            data[column] = value
        return data


def _coerce_rule_value(name: str, value: Any) -> Any:
    if name in _ENUM_FIELDS and value is not None:
        return _ENUM_FIELDS[name](value)
    if name == "after_hours_business_hours" and isinstance(value, Mapping):
        return BusinessHours.from_dict(value)
    return value


@dataclass(frozen=True)
class DaySchedule:
    """One weekday entry of an availability's weekly schedule."""
    enabled: bool
    start_time: str
    end_time: str
    timezone: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DaySchedule":
        return cls(
            enabled=bool(data.get("enabled", False)),
            start_time=str(data.get("startTime", "")),
            end_time=str(data.get("endTime", "")),
            timezone=data.get("timezone") or None,
        )


@dataclass
class Availability:
    """Weekly-recurring booking availability for an event type."""
    id: str
    tenant_id: str
    event_type_id: str
    weekly_schedule: Dict[DayOfWeek, DaySchedule]
    assigned_to_user_id: Optional[str] = None
    start_date: Optional[Date] = None
    end_date: Optional[Date] = None
    blocked_dates: List[str] = field(default_factory=list)
    max_events_per_slot: Optional[int] = None
    is_active: bool = True

    @property
    def capacity(self) -> int:
        return self.max_events_per_slot or 1

    def schedule_timezone(self, default: str) -> str:
        """First explicit timezone among enabled days, else ``default``."""
        for day_schedule in self.weekly_schedule.values():
            if day_schedule.enabled and day_schedule.timezone:
                return day_schedule.timezone
        return default

    def is_blocked(self, date_string: str) -> bool:
        return date_string in self.blocked_dates

    def covers_date(self, day: Date) -> bool:
        """Check the record's own inclusive validity window."""
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        return True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Availability":
        schedule: Dict[DayOfWeek, DaySchedule] = {}
        for key, value in (data.get("weeklySchedule") or {}).items():
            day = DayOfWeek.parse(key)
            if day is None:
                logger.warning("Ignoring unknown weekday %r in weekly schedule", key)
                continue
            schedule[day] = DaySchedule.from_dict(value or {})

        return cls(
            id=str(data["id"]),
            tenant_id=str(data["tenantId"]),
            event_type_id=str(data["eventTypeId"]),
            weekly_schedule=schedule,
            assigned_to_user_id=data.get("assignedToUserId"),
            start_date=_parse_date(data.get("startDate")),
            end_date=_parse_date(data.get("endDate")),
            blocked_dates=[str(d) for d in data.get("blockedDates") or []],
            max_events_per_slot=data.get("maxEventsPerSlot"),
            is_active=bool(data.get("isActive", True)),
        )


@dataclass(frozen=True)
class EventType:
    id: str
    tenant_id: str
    duration_minutes: int = 30

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EventType":
        return cls(
            id=str(data["id"]),
            tenant_id=str(data["tenantId"]),
            duration_minutes=int(data.get("durationMinutes") or 30),
        )


@dataclass(frozen=True)
class CalendarEvent:
    """A booked calendar event, read only for capacity checks."""
    id: str
    tenant_id: str
    start_time: DateTime
    end_time: DateTime
    status: CalendarEventStatus = CalendarEventStatus.SCHEDULED
    event_type_id: Optional[str] = None
    assigned_to_user_id: Optional[str] = None

    def overlaps(self, time_range: TimeRange) -> bool:
        return self.start_time < time_range.end and self.end_time > time_range.start

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CalendarEvent":
        return cls(
            id=str(data["id"]),
            tenant_id=str(data["tenantId"]),
            start_time=_parse_instant(data["startTime"]),
            end_time=_parse_instant(data["endTime"]),
            status=CalendarEventStatus(data.get("status", CalendarEventStatus.SCHEDULED.value)),
            event_type_id=data.get("eventTypeId"),
            assigned_to_user_id=data.get("assignedToUserId"),
        )
