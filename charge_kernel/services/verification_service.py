"""
VerificationService -- read-only audit of plugin-produced ledger entries.

Responsibility:
    Re-derives the expected state of persisted entries through the owning
    plugin's ``verify_entry`` and reports drift: single-entry verification
    and a ledger integrity report over a filtered range of entries.

Architecture position:
    Kernel > Services.  Read-only; never flushes.

Invariants enforced:
    - Verification never mutates the ledger.
    - Discrepancies are values (VerificationResult, IntegrityFinding), not
      exceptions.  Errors raised by a plugin during verification become a
      failed result carrying "Verification error: ...".
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from charge_kernel.domain.dtos import FindingKind, IntegrityFinding, VerificationResult
from charge_kernel.logging_config import LogContext, get_logger
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.models.plugin_config import PluginConfig
from charge_kernel.plugins.registry import PluginRegistry
from charge_kernel.selectors.config_selector import PluginConfigSelector
from charge_kernel.selectors.ledger_selector import LedgerSelector

logger = get_logger("services.verification")


class VerificationService:
    """
    Verifies ledger entries against their plugins' current rules.

    Non-goals:
        - Does NOT repair drift.  Re-triggering the source event does that.
    """

    def __init__(self, session: Session, registry: PluginRegistry):
        self._registry = registry
        self._ledger = LedgerSelector(session)
        self._configs = PluginConfigSelector(session)

    def verify(self, entry: LedgerEntry, config: PluginConfig) -> VerificationResult:
        """Verify one entry under ``config``; plugin errors become a failed result."""
        plugin = self._registry.get(entry.plugin_id)
        if plugin is None:
            return self._failed(entry, f"Unknown charge plugin: {entry.plugin_id}")
        with LogContext.bind(plugin_id=entry.plugin_id, entry_id=str(entry.id)):
            try:
                result = plugin.verify_entry(entry, config)
            except Exception as exc:
                logger.error("entry_verification_error", extra={"error": str(exc)}, exc_info=True)
                return self._failed(entry, f"Verification error: {exc}")
            if not result.is_valid:
                logger.info(
                    "entry_verification_discrepancy",
                    extra={"discrepancies": list(result.discrepancies)},
                )
            return result

    def run_integrity_check(
        self,
        plugin_ids: Iterable[str] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[IntegrityFinding]:
        """
        Verify every matching entry and report the ones that are not valid.

        Each entry is matched to the enabled configuration whose id prefixes
        its idempotency key.  Entries whose plugin is not registered, or
        whose configuration is gone or disabled, are findings too.
        """
        entries = self._ledger.entries(plugin_ids, date_from, date_to)
        configs_by_plugin: dict[str, list[PluginConfig]] = {}
        findings: list[IntegrityFinding] = []

        for entry in entries:
            if not self._registry.has_plugin(entry.plugin_id):
                findings.append(
                    self._finding(
                        entry,
                        FindingKind.UNKNOWN_PLUGIN,
                        f"Unknown charge plugin: {entry.plugin_id}",
                    )
                )
                continue

            if entry.plugin_id not in configs_by_plugin:
                configs_by_plugin[entry.plugin_id] = self._configs.list_configs(
                    entry.plugin_id, enabled_only=True
                )
            config = next(
                (
                    c
                    for c in configs_by_plugin[entry.plugin_id]
                    if entry.idempotency_key.startswith(f"{c.id}:")
                ),
                None,
            )
            if config is None:
                findings.append(
                    self._finding(
                        entry,
                        FindingKind.NO_MATCHING_CONFIG,
                        "No matching plugin configuration found for entry",
                    )
                )
                continue

            result = self.verify(entry, config)
            if result.is_valid:
                continue
            kind = FindingKind.DISCREPANCY
            if any(d.startswith("Verification error:") for d in result.discrepancies):
                kind = FindingKind.VERIFICATION_ERROR
            findings.append(
                self._finding(
                    entry,
                    kind,
                    "; ".join(result.discrepancies),
                    expected_amount=result.expected_amount,
                )
            )

        logger.info(
            "integrity_check_completed",
            extra={
                "entries_checked": len(entries),
                "findings": len(findings),
                "plugin_ids": sorted(plugin_ids or ()),
                "date_from": date_from.isoformat() if date_from else None,
                "date_to": date_to.isoformat() if date_to else None,
            },
        )
        return findings

    @staticmethod
    def _failed(entry: LedgerEntry, discrepancy: str) -> VerificationResult:
        return VerificationResult(
            entry_id=entry.id,
            plugin_id=entry.plugin_id,
            idempotency_key=entry.idempotency_key,
            is_valid=False,
            actual_amount=entry.amount,
            actual_description=entry.description,
            discrepancies=(discrepancy,),
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
            transaction_date=entry.transaction_date,
        )

    @staticmethod
    def _finding(
        entry: LedgerEntry,
        kind: FindingKind,
        discrepancy: str,
        expected_amount: Decimal | None = None,
    ) -> IntegrityFinding:
        return IntegrityFinding(
            entry_id=entry.id,
            plugin_id=entry.plugin_id,
            kind=kind,
            discrepancy=discrepancy,
            actual_amount=entry.amount,
            expected_amount=expected_amount,
            transaction_date=entry.transaction_date,
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
        )
