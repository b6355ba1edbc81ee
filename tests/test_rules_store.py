"""
Tests for the TTL cache and the tenant rules store.
"""

import pytest

from slotguard.adapters.memory_repository import InMemoryRepository
from slotguard.domain.models import AfterHoursAction, BusinessHours, ExecutionRules
from slotguard.services.cache import TTLCache
from slotguard.services.rules_store import RulesStore


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class CountingRepository(InMemoryRepository):
    """In-memory repository that counts reads and writes."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.reads = 0
        self.writes = 0

    def find_by_tenant(self, tenant_id):
        self.reads += 1
        return super().find_by_tenant(tenant_id)

    def save(self, rules):
        self.writes += 1
        return super().save(rules)


class FailingRepository:
    def find_by_tenant(self, tenant_id):
        raise ConnectionError("database unavailable")

    def save(self, rules):
        raise AssertionError("should not be called")


class TestTTLCache:
    """Tests for TTLCache."""

    def test_get_before_expiry(self):
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=60, clock=clock)
        cache.set("acme", "value")

        clock.advance(59)

        assert cache.get("acme") == "value"

    def test_entry_expires_at_ttl(self):
        clock = FakeClock()
        cache = TTLCache(ttl_seconds=60, clock=clock)
        cache.set("acme", "value")

        clock.advance(60)

        assert cache.get("acme") is None
        assert len(cache) == 0

    def test_delete_and_clear(self):
        cache = TTLCache(ttl_seconds=60)
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a")
        assert not cache.delete("a")
        cache.clear()
        assert len(cache) == 0

    def test_ttl_must_be_positive(self):
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=0)


class TestRulesStore:
    """Tests for RulesStore."""

    def test_missing_rules_are_provisioned_and_persisted(self):
        repository = CountingRepository()
        store = RulesStore(repository)

        rules = store.get("acme")

        assert rules == ExecutionRules.defaults("acme")
        assert repository.find_by_tenant("acme") == rules
        assert repository.writes == 1

    def test_provisioned_defaults_follow_store_settings(self):
        repository = CountingRepository()
        business_hours = BusinessHours(start_hour=9, end_hour=17)
        store = RulesStore(
            repository,
            default_business_hours=business_hours,
            default_detection_window_hours=48,
            default_reschedule_delay_hours=6,
        )

        rules = store.get("acme")

        assert rules.after_hours_business_hours == business_hours
        assert rules.resubmission_detection_window_hours == 48
        assert rules.resubmission_reschedule_delay_hours == 6

    def test_existing_rules_are_returned(self):
        stored = ExecutionRules(tenant_id="acme", after_hours_action=AfterHoursAction.SKIP_NODE)
        store = RulesStore(CountingRepository(rules=[stored]))

        assert store.get("acme") == stored

    def test_second_read_is_served_from_cache(self):
        repository = CountingRepository()
        store = RulesStore(repository)

        store.get("acme")
        store.get("acme")

        assert repository.reads == 1

    def test_cache_expiry_reloads(self):
        clock = FakeClock()
        repository = CountingRepository()
        store = RulesStore(repository, cache=TTLCache(ttl_seconds=300, clock=clock))

        store.get("acme")
        clock.advance(301)
        store.get("acme")

        assert repository.reads == 2

    def test_update_is_visible_on_next_read(self):
        repository = CountingRepository()
        store = RulesStore(repository)
        store.get("acme")

        saved = store.update("acme", {"afterHoursAction": "PAUSE_JOURNEY"})

        assert saved.after_hours_action == AfterHoursAction.PAUSE_JOURNEY
        assert store.get("acme").after_hours_action == AfterHoursAction.PAUSE_JOURNEY

    def test_update_creates_missing_row(self):
        repository = CountingRepository()
        store = RulesStore(repository)

        store.update("acme", {"tcpaViolationAction": "SKIP_NODE"})

        assert repository.find_by_tenant("acme") is not None

    def test_update_before_first_read_starts_from_defaults(self):
        """A row created by update carries the same defaults a read provisions."""
        repository = CountingRepository()
        business_hours = BusinessHours(start_hour=9, end_hour=17)
        store = RulesStore(
            repository,
            default_business_hours=business_hours,
            default_detection_window_hours=48,
        )

        saved = store.update("acme", {"tcpaViolationAction": "SKIP_NODE"})

        assert saved.after_hours_business_hours == business_hours
        assert saved.resubmission_detection_window_hours == 48
        assert store.get("acme") == saved

    def test_update_rejects_unknown_fields(self):
        store = RulesStore(CountingRepository())

        with pytest.raises(ValueError):
            store.update("acme", {"sendAnyway": True})

    def test_clear_cache_for_one_tenant(self):
        repository = CountingRepository()
        store = RulesStore(repository)
        store.get("acme")
        store.get("globex")

        store.clear_cache("acme")
        store.get("acme")
        store.get("globex")

        assert repository.reads == 3

    def test_clear_cache_for_all_tenants(self):
        repository = CountingRepository()
        store = RulesStore(repository)
        store.get("acme")
        store.get("globex")

        store.clear_cache()
        store.get("acme")
        store.get("globex")

        assert repository.reads == 4

    def test_repository_errors_propagate(self):
        store = RulesStore(FailingRepository())

        with pytest.raises(ConnectionError):
            store.get("acme")
