"""
Maps detected after-hours, TCPA and lead-resubmission violations to outcomes.

Detection happens elsewhere; this module only turns a tenant's configured
action into something a journey or campaign scheduler can act on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pendulum import DateTime

from .after_hours import RESCHEDULE_ACTIONS, AfterHoursResolver
from .models import AfterHoursAction, ExecutionRules, ResubmissionAction, TcpaViolationAction

logger = logging.getLogger(__name__)

DEFAULT_RESUBMISSION_DELAY_HOURS = 24


class OutcomeKind(str, Enum):
    BLOCK = "block"
    SKIP = "skip"
    PAUSE = "pause"
    USE_DEFAULT_EVENT = "useDefaultEvent"
    RESCHEDULE = "reschedule"
    CONTINUE = "continue"


@dataclass(frozen=True)
class ComplianceOutcome:
    """
    What a caller should do with a send or booking.

    ``at`` is set only for RESCHEDULE, ``event_type_id`` only for
    USE_DEFAULT_EVENT.
    """
    kind: OutcomeKind
    at: Optional[DateTime] = None
    event_type_id: Optional[str] = None
    reason: str = ""

    @property
    def should_execute(self) -> bool:
        return self.kind == OutcomeKind.CONTINUE

    @classmethod
    def proceed(cls, reason: str = "") -> "ComplianceOutcome":
        return cls(OutcomeKind.CONTINUE, reason=reason)

    @classmethod
    def block(cls, reason: str) -> "ComplianceOutcome":
        return cls(OutcomeKind.BLOCK, reason=reason)

    @classmethod
    def skip(cls, reason: str) -> "ComplianceOutcome":
        return cls(OutcomeKind.SKIP, reason=reason)

    @classmethod
    def pause(cls, reason: str) -> "ComplianceOutcome":
        return cls(OutcomeKind.PAUSE, reason=reason)

    @classmethod
    def reschedule(cls, at: DateTime, reason: str) -> "ComplianceOutcome":
        return cls(OutcomeKind.RESCHEDULE, at=at, reason=reason)

    @classmethod
    def default_event(cls, event_type_id: Optional[str], reason: str) -> "ComplianceOutcome":
        if not event_type_id:
            logger.warning("No default event type configured; skipping instead (%s)", reason)
            return cls.skip(f"{reason} - no default event type configured")
        return cls(OutcomeKind.USE_DEFAULT_EVENT, event_type_id=event_type_id, reason=reason)


@dataclass(frozen=True)
class ComplianceContext:
    candidate: DateTime
    previous_submission_at: Optional[DateTime] = None
    tenant_timezone: Optional[str] = None


_TCPA_RESCHEDULES = {
    TcpaViolationAction.RESCHEDULE_NEXT_AVAILABLE: AfterHoursAction.RESCHEDULE_NEXT_AVAILABLE,
    TcpaViolationAction.RESCHEDULE_NEXT_BUSINESS_DAY: AfterHoursAction.RESCHEDULE_NEXT_BUSINESS_DAY,
}


class ComplianceActionResolver:
    """Resolves a tenant's configured action for a violation into an outcome."""

    def __init__(self, after_hours: Optional[AfterHoursResolver] = None):
        self.after_hours = after_hours or AfterHoursResolver()

    def resolve_after_hours(self, rules: ExecutionRules, context: ComplianceContext) -> ComplianceOutcome:
        """
        Outcome for a send that may fall outside business hours.

        The send is handled as after-hours when either the current time or the
        candidate instant is outside the window.
        """
        now = self.after_hours.timezones.now()
        if not (
            self.after_hours.is_after_hours(now, rules, context.tenant_timezone)
            or self.after_hours.is_after_hours(context.candidate, rules, context.tenant_timezone)
        ):
            return ComplianceOutcome.proceed()

        zone = self.after_hours.effective_timezone(
            rules.after_hours_business_hours, context.tenant_timezone
        )
        reason = f"Outside business hours ({zone})"
        action = rules.after_hours_action

        if action in RESCHEDULE_ACTIONS:
            at = self.after_hours.next_available_instant(
                context.candidate, rules, context.tenant_timezone
            )
            return ComplianceOutcome.reschedule(at, reason)
        if action == AfterHoursAction.SKIP_NODE:
            return ComplianceOutcome.skip(f"{reason} - skipping node")
        if action == AfterHoursAction.PAUSE_JOURNEY:
            return ComplianceOutcome.pause(f"{reason} - pausing journey")
        if action == AfterHoursAction.DEFAULT_EVENT:
            return ComplianceOutcome.default_event(
                rules.after_hours_default_event_type_id,
                f"{reason} - routing to default event",
            )

        logger.warning("Unhandled after-hours action %s for tenant %s", action, rules.tenant_id)
        return ComplianceOutcome.proceed()

    def resolve_tcpa_violation(self, rules: ExecutionRules, context: ComplianceContext) -> ComplianceOutcome:
        """
        Outcome for a send that would violate TCPA calling windows.

        A violation is never sent through: with handling disabled the send is
        blocked outright.
        """
        reason = "TCPA calling window violation"
        if not rules.enable_tcpa_violation_handling:
            return ComplianceOutcome.block(f"{reason} - handling disabled")

        action = rules.tcpa_violation_action

        if action in _TCPA_RESCHEDULES:
            at = self.after_hours.next_available_instant(
                context.candidate,
                rules,
                context.tenant_timezone,
                action=_TCPA_RESCHEDULES[action],
            )
            return ComplianceOutcome.reschedule(at, f"{reason} - rescheduling")
        if action == TcpaViolationAction.SKIP_NODE:
            return ComplianceOutcome.skip(f"{reason} - skipping node")
        if action == TcpaViolationAction.PAUSE_JOURNEY:
            return ComplianceOutcome.pause(f"{reason} - pausing journey")
        if action == TcpaViolationAction.DEFAULT_EVENT:
            return ComplianceOutcome.default_event(
                rules.tcpa_default_event_type_id,
                f"{reason} - routing to default event",
            )
        return ComplianceOutcome.block(reason)

    def resolve_resubmission(self, rules: ExecutionRules, context: ComplianceContext) -> ComplianceOutcome:
        reason = "Duplicate lead resubmission"
        if context.previous_submission_at is not None:
            reason = f"{reason} (previous submission {context.previous_submission_at.isoformat()})"

        if not rules.enable_resubmission_handling:
            return ComplianceOutcome.proceed(f"{reason} - handling disabled")

        action = rules.resubmission_action

        if action == ResubmissionAction.SKIP_DUPLICATE:
            return ComplianceOutcome.skip(reason)
        if action == ResubmissionAction.RESCHEDULE_DELAY:
            delay = rules.resubmission_reschedule_delay_hours or DEFAULT_RESUBMISSION_DELAY_HOURS
            at = self.after_hours.timezones.now().add(hours=delay)
            return ComplianceOutcome.reschedule(at, f"{reason} - rescheduling in {delay}h")
        if action == ResubmissionAction.PAUSE_JOURNEY:
            return ComplianceOutcome.pause(f"{reason} - pausing journey")
        if action == ResubmissionAction.DEFAULT_EVENT:
            return ComplianceOutcome.default_event(
                rules.resubmission_default_event_type_id,
                f"{reason} - routing to default event",
            )
        return ComplianceOutcome.proceed(reason)
