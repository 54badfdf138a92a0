"""
Plugin-level fixtures.

Plugins are exercised against transient PluginConfig rows and a DictLedger,
so these tests never open a database session.
"""

from uuid import uuid4

import pytest

from charge_kernel.domain.dtos import MutationAction
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.models.plugin_config import ConfigScope, PluginConfig

ACCOUNT_ID = "3b7e4c1a-9d2f-4e8b-a6c5-1f0e2d3c4b5a"


@pytest.fixture
def make_config():
    def _make(plugin_id, settings, employer_id=None):
        return PluginConfig(
            id=uuid4(),
            plugin_id=plugin_id,
            enabled=True,
            scope=ConfigScope.EMPLOYER.value if employer_id else ConfigScope.GLOBAL.value,
            employer_id=employer_id,
            settings=settings,
        )

    return _make


@pytest.fixture
def apply_to(dict_ledger):
    """Apply a plugin result's mutations to the DictLedger, like the writer would."""

    def _apply(result):
        for mutation in result.mutations:
            slot = (mutation.plugin_id, mutation.idempotency_key)
            if mutation.action == MutationAction.DELETE:
                del dict_ledger.entries[slot]
                continue
            expected = mutation.expected
            entry = dict_ledger.entries.get(slot)
            if entry is None:
                entry = LedgerEntry(
                    id=uuid4(),
                    plugin_id=mutation.plugin_id,
                    plugin_config_id=mutation.config_id,
                    idempotency_key=mutation.idempotency_key,
                    ea_id=uuid4(),
                )
                dict_ledger.entries[slot] = entry
            entry.amount = expected.amount
            entry.description = expected.description
            entry.reference_type = expected.reference_type
            entry.reference_id = expected.reference_id
            entry.transaction_date = expected.transaction_date
            entry.data = dict(expected.data)
        return dict_ledger

    return _apply
