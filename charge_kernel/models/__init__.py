"""ORM models for the charge kernel."""

from charge_kernel.models.account import LedgerAccount
from charge_kernel.models.entity_account import LedgerEntityAccount
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.models.plugin_config import ConfigScope, PluginConfig

__all__ = [
    "LedgerAccount",
    "LedgerEntityAccount",
    "LedgerEntry",
    "ConfigScope",
    "PluginConfig",
]
