"""
Domain layer - Pure business logic without external dependencies.
"""

from .after_hours import AfterHoursResolver
from .compliance_actions import (
    ComplianceActionResolver,
    ComplianceContext,
    ComplianceOutcome,
    OutcomeKind,
)
from .models import (
    AfterHoursAction,
    Availability,
    BusinessHours,
    CalendarEvent,
    CalendarEventStatus,
    DayOfWeek,
    DaySchedule,
    EventType,
    ExecutionRules,
    ResubmissionAction,
    TcpaViolationAction,
    TimeRange,
)
from .slot_generator import AvailabilitySlotGenerator
from .timezone_resolver import TimezoneResolver

__all__ = [
    "AfterHoursAction",
    "AfterHoursResolver",
    "Availability",
    "AvailabilitySlotGenerator",
    "BusinessHours",
    "CalendarEvent",
    "CalendarEventStatus",
    "ComplianceActionResolver",
    "ComplianceContext",
    "ComplianceOutcome",
    "DayOfWeek",
    "DaySchedule",
    "EventType",
    "ExecutionRules",
    "OutcomeKind",
    "ResubmissionAction",
    "TcpaViolationAction",
    "TimeRange",
    "TimezoneResolver",
]
