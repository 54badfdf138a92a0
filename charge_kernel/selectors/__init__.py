"""Read-only query selectors."""

from charge_kernel.selectors.base import BaseSelector
from charge_kernel.selectors.config_selector import PluginConfigSelector
from charge_kernel.selectors.ledger_selector import LedgerSelector

__all__ = ["BaseSelector", "LedgerSelector", "PluginConfigSelector"]
