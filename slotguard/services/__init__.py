"""
Service layer helpers that orchestrate repositories and domain logic.
"""

from .availability_service import (
    AvailabilityRepository,
    AvailabilityService,
    CalendarEventRepository,
    EventTypeRepository,
    TimezoneDirectory,
)
from .cache import TTLCache
from .rules_store import ExecutionRulesRepository, RulesStore

__all__ = [
    "AvailabilityRepository",
    "AvailabilityService",
    "CalendarEventRepository",
    "EventTypeRepository",
    "ExecutionRulesRepository",
    "RulesStore",
    "TTLCache",
    "TimezoneDirectory",
]
