"""
ChargeKernel facade over real commits.

These tests use committing sessions, so they must not also request the
rollback-only ``session`` fixture.
"""

from uuid import uuid4

import pytest
from sqlalchemy import select

from charge_kernel.bootstrap import ChargeKernel
from charge_kernel.db.engine import session_scope
from charge_kernel.domain.dtos import PluginOutcome
from charge_kernel.exceptions import (
    InvalidTriggerPayloadError,
    LedgerEntryNotFoundError,
    PluginConfigNotFoundError,
)
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.services.account_service import AccountService
from charge_kernel.services.config_resolver import PluginConfigService
from tests.conftest import ALL_COMPONENTS, EMPLOYER_ID, STATUS_ACTIVE, WORKER_ID, count_rows

HOURS_EVENT = {
    "worker_id": WORKER_ID,
    "employer_id": EMPLOYER_ID,
    "year": 2025,
    "month": 3,
    "day": 5,
    "hours": "10",
    "employment_status_id": STATUS_ACTIVE,
}


@pytest.fixture
def configured(committing_session_factory, registry, test_actor_id):
    """Commit an account and a global hour-fixed config; return the config id."""
    with session_scope(committing_session_factory) as s:
        account = AccountService(s, test_actor_id).create("Dues")
        config = PluginConfigService(s, test_actor_id, registry).create(
            "hour-fixed",
            {
                "account_id": str(account.id),
                "rate_history": [{"effective_date": "2025-01-01", "rate": "5"}],
            },
        )
        return config.id


def _entry_ids(factory):
    with session_scope(factory) as s:
        return list(s.execute(select(LedgerEntry.id)).scalars())


class TestHandleEvent:

    def test_commits_entries(self, committed_kernel, committing_session_factory, configured):
        summary = committed_kernel.handle_event("hours_saved", HOURS_EVENT)

        assert summary.persisted_count == 1
        with session_scope(committing_session_factory) as s:
            assert count_rows(s, LedgerEntry) == 1

    def test_replayed_event_is_a_noop(self, committed_kernel, committing_session_factory, configured):
        committed_kernel.handle_event("hours_saved", HOURS_EVENT)

        summary = committed_kernel.handle_event("hours_saved", HOURS_EVENT)

        assert summary.total_mutations == 0
        assert len(_entry_ids(committing_session_factory)) == 1

    def test_bad_payload(self, committed_kernel):
        with pytest.raises(InvalidTriggerPayloadError):
            committed_kernel.handle_event("hours_saved", {"worker_id": WORKER_ID})


class TestVerifyEntry:

    def test_valid(self, committed_kernel, committing_session_factory, configured):
        committed_kernel.handle_event("hours_saved", HOURS_EVENT)
        (entry_id,) = _entry_ids(committing_session_factory)

        result = committed_kernel.verify_entry(entry_id)

        assert result.is_valid
        assert committed_kernel.run_integrity_check() == []

    def test_unknown_entry(self, committed_kernel):
        with pytest.raises(LedgerEntryNotFoundError):
            committed_kernel.verify_entry(uuid4())

    def test_config_deleted(self, committed_kernel, committing_session_factory, registry, test_actor_id, configured):
        committed_kernel.handle_event("hours_saved", HOURS_EVENT)
        (entry_id,) = _entry_ids(committing_session_factory)
        with session_scope(committing_session_factory) as s:
            PluginConfigService(s, test_actor_id, registry).delete(configured)

        with pytest.raises(PluginConfigNotFoundError):
            committed_kernel.verify_entry(entry_id)


class TestCreate:

    def test_builds_private_in_memory_kernel(self, test_actor_id):
        kernel = ChargeKernel.create(
            "sqlite://",
            test_actor_id,
            enabled_components=ALL_COMPONENTS,
            create_schema=True,
        )

        assert kernel.registry.has_plugin("steward-attendance")

        summary = kernel.handle_event("hours_saved", HOURS_EVENT)

        assert [p.outcome for p in summary.plugins] == [PluginOutcome.SKIPPED] * 2

    def test_gated_plugins_absent_by_default(self, test_actor_id):
        kernel = ChargeKernel.create("sqlite://", test_actor_id)
        assert not kernel.registry.has_plugin("benefit-monthly")
        assert kernel.registry.has_plugin("hour-fixed")
