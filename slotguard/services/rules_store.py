"""
Per-tenant execution rules with default provisioning and a short read cache.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol

from ..domain.models import BusinessHours, ExecutionRules
from .cache import TTLCache

logger = logging.getLogger(__name__)

DEFAULT_CACHE_TTL_SECONDS = 5 * 60


class ExecutionRulesRepository(Protocol):
    """Persistence for the ``execution_rules`` table (one row per tenant)."""

    def find_by_tenant(self, tenant_id: str) -> Optional[ExecutionRules]:
        """Return the tenant's row, or None if it has never been created."""

    def save(self, rules: ExecutionRules) -> ExecutionRules:
        """Insert or replace the tenant's row and return what was stored."""


class RulesStore:
    """
    Reads and updates tenant execution rules.

    Reads are served from a TTL cache; ``update`` invalidates the tenant's
    entry before returning so the next ``get`` sees the stored row.
    """

    def __init__(
        self,
        repository: ExecutionRulesRepository,
        cache: Optional[TTLCache[str, ExecutionRules]] = None,
        default_business_hours: Optional[BusinessHours] = None,
        default_detection_window_hours: int = 24,
        default_reschedule_delay_hours: Optional[int] = None,
    ) -> None:
        self._repository = repository
        self._cache = cache if cache is not None else TTLCache(DEFAULT_CACHE_TTL_SECONDS)
        self._default_business_hours = default_business_hours or BusinessHours()
        self._default_detection_window_hours = default_detection_window_hours
        self._default_reschedule_delay_hours = default_reschedule_delay_hours

    def get(self, tenant_id: str) -> ExecutionRules:
        cached = self._cache.get(tenant_id)
        if cached is not None:
            return cached

        try:
            rules = self._repository.find_by_tenant(tenant_id)
            if rules is None:
                logger.info("Provisioning default execution rules for tenant %s", tenant_id)
                rules = self._repository.save(self._defaults(tenant_id))
        except Exception:
            logger.exception("Error getting execution rules for tenant %s", tenant_id)
            raise

        self._cache.set(tenant_id, rules)
        return rules

    def update(self, tenant_id: str, updates: Mapping[str, Any]) -> ExecutionRules:
        """
        Merge ``updates`` into the tenant's rules, creating the row if needed.

        Raises:
            ValueError: If ``updates`` names an unknown field or invalid value
        """
        current = self._repository.find_by_tenant(tenant_id)
        if current is None:
            current = self._defaults(tenant_id)

        saved = self._repository.save(current.merge(updates))
        self.clear_cache(tenant_id)
        return saved

    def _defaults(self, tenant_id: str) -> ExecutionRules:
        return ExecutionRules.defaults(
            tenant_id,
            business_hours=self._default_business_hours,
            detection_window_hours=self._default_detection_window_hours,
            reschedule_delay_hours=self._default_reschedule_delay_hours,
        )

    def clear_cache(self, tenant_id: Optional[str] = None) -> None:
        """Drop one tenant's cached rules, or every tenant's when none is given."""
        if tenant_id:
            self._cache.delete(tenant_id)
        else:
            self._cache.clear()
