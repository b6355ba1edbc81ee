"""
Business-hours evaluation and after-hours rescheduling.

Reschedule targets are computed from the current wall-clock time in the
effective zone, not from the candidate instant that triggered the check.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pendulum import Date, DateTime

from .exceptions import ScheduleFormatError
from .models import AfterHoursAction, BusinessHours, DayOfWeek, ExecutionRules, parse_clock_time
from .timezone_resolver import TimezoneResolver, first_available

logger = logging.getLogger(__name__)

DEFAULT_BUSINESS_TIMEZONE = "America/New_York"

RESCHEDULE_ACTIONS = frozenset({
    AfterHoursAction.RESCHEDULE_NEXT_AVAILABLE,
    AfterHoursAction.RESCHEDULE_NEXT_BUSINESS_DAY,
    AfterHoursAction.RESCHEDULE_SPECIFIC_TIME,
})


class AfterHoursResolver:
    """Decides whether an instant is outside business hours and when to retry."""

    def __init__(
        self,
        timezones: Optional[TimezoneResolver] = None,
        fallback_timezone: str = DEFAULT_BUSINESS_TIMEZONE,
        default_business_hours: Optional[BusinessHours] = None,
    ):
        self.timezones = timezones or TimezoneResolver()
        self.fallback_timezone = fallback_timezone
        self.default_business_hours = default_business_hours or BusinessHours()

    def effective_timezone(
        self,
        business_hours: Optional[BusinessHours],
        tenant_timezone: Optional[str] = None,
    ) -> str:
        """Explicit tenant zone, then the business-hours zone, then the fallback."""
        return first_available(
            [tenant_timezone, business_hours.timezone if business_hours else None],
            default=self.fallback_timezone,
        )

    def is_after_hours(
        self,
        instant: Any,
        rules: ExecutionRules,
        tenant_timezone: Optional[str] = None,
    ) -> bool:
        business_hours = rules.after_hours_business_hours
        if not rules.enable_after_hours_handling or business_hours is None:
            return False

        zone = self.effective_timezone(business_hours, tenant_timezone)
        local = self.timezones.wall_clock(instant, zone)

        if not business_hours.is_within_hours(local.hour):
            return True
        return not business_hours.is_business_day(local.weekday)

    def next_available_instant(
        self,
        instant: Any,
        rules: ExecutionRules,
        tenant_timezone: Optional[str] = None,
        action: Optional[AfterHoursAction] = None,
    ) -> DateTime:
        """
        Compute the next compliant instant for a reschedule action.

        ``action`` overrides ``rules.after_hours_action``. Actions that do not
        reschedule return ``instant`` unchanged; callers are expected to branch
        on those before asking for a time.
        """
        action = action or rules.after_hours_action
        business_hours = rules.after_hours_business_hours or self.default_business_hours
        zone = self.effective_timezone(business_hours, tenant_timezone)

        now = self.timezones.now()
        current = self.timezones.wall_clock(now, zone)
        today = self.timezones.local_date(now, zone)

        if action == AfterHoursAction.RESCHEDULE_NEXT_AVAILABLE:
            if (
                current.hour < business_hours.end_hour
                and business_hours.is_business_day(current.weekday)
                and current.hour < business_hours.start_hour
            ):
                return self.timezones.date_to_utc(today, business_hours.start_hour, 0, zone)
            target = self._next_business_day(today.add(days=1), business_hours)
            return self.timezones.date_to_utc(target, business_hours.start_hour, 0, zone)

        if action == AfterHoursAction.RESCHEDULE_NEXT_BUSINESS_DAY:
            target = self._next_business_day(today.add(days=1), business_hours)
            return self.timezones.date_to_utc(target, business_hours.start_hour, 0, zone)

        if action == AfterHoursAction.RESCHEDULE_SPECIFIC_TIME:
            try:
                hour, minute = parse_clock_time(rules.after_hours_reschedule_time)
            except ScheduleFormatError as e:
                logger.warning(
                    "Tenant %s has no usable reschedule time (%s); keeping original instant",
                    rules.tenant_id, e,
                )
                return self.timezones.coerce_instant(instant)

            start = today.add(days=1) if current.hour >= hour else today
            target = self._next_business_day(start, business_hours)
            return self.timezones.date_to_utc(target, hour, minute, zone)

        return self.timezones.coerce_instant(instant)

    @staticmethod
    def _next_business_day(start: Date, business_hours: BusinessHours) -> Date:
        """First allowed date on or after ``start``."""
        day = start
        for _ in range(7):
            if business_hours.is_business_day(DayOfWeek.from_isoweekday(day.isoweekday())):
                return day
            day = day.add(days=1)
        return start
