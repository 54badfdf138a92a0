"""Services for the charge kernel (write side and audits)."""

from charge_kernel.services.account_service import AccountService
from charge_kernel.services.config_resolver import (
    ConfigResolver,
    PluginConfigService,
    SeedReport,
)
from charge_kernel.services.ea_resolver import EntityAccountResolver
from charge_kernel.services.execution_engine import ChargeExecutionService
from charge_kernel.services.ledger_writer import LedgerWriter
from charge_kernel.services.verification_service import VerificationService

__all__ = [
    "AccountService",
    "ChargeExecutionService",
    "ConfigResolver",
    "EntityAccountResolver",
    "LedgerWriter",
    "PluginConfigService",
    "SeedReport",
    "VerificationService",
]
