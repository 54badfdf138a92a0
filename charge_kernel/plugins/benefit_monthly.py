"""
Benefit - Monthly plugin.

Charges the employer a monthly rate for each worker carrying the configured
benefit in a month (worker-monthly-benefit, "WMB", records).

    trigger     wmb_saved
    entity      employer (context.employer_id)
    sign        positive: the monthly rate is owed by the employer
    key         {employer_id}:{worker_id}:{year}:{month}
    rate date   first day of the month
    date        last day of the month

Saving a record for another benefit leaves the charge untouched.
Deleting the WMB record (``is_deleted``) removes the charge.  A rate of 0
in effect for the month means "no charge".
"""

import calendar
from datetime import date
from typing import Any

from charge_kernel.domain.dtos import ExpectedEntry, PluginExecutionResult
from charge_kernel.domain.rates import parse_rate_history, resolve_effective_rate
from charge_kernel.domain.settings_schema import (
    ACCOUNT_ID_FIELD,
    SettingsField,
    SettingsFieldType,
    SettingsSchema,
    rate_history_field,
)
from charge_kernel.domain.triggers import TriggerType, WmbSavedContext
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.models.plugin_config import PluginConfig
from charge_kernel.plugins.base import ChargePlugin, LedgerReader, PluginMetadata

PLUGIN_ID = "benefit-monthly"


def _same_benefit(context: WmbSavedContext, settings: dict[str, Any]) -> bool:
    return context.benefit_id.lower() == str(settings["benefit_id"]).lower()


class BenefitMonthlyPlugin(ChargePlugin):
    metadata = PluginMetadata(
        plugin_id=PLUGIN_ID,
        name="Benefit - Monthly",
        description="Charges the employer a monthly rate for each worker "
        "holding the configured benefit in a month.",
        triggers=frozenset({TriggerType.WMB_SAVED}),
        settings_schema=SettingsSchema(
            plugin_id=PLUGIN_ID,
            fields=(
                ACCOUNT_ID_FIELD,
                SettingsField(name="benefit_id", field_type=SettingsFieldType.UUID),
                rate_history_field(),
            ),
        ),
        required_component="charges.benefit_monthly",
    )
    subject = "benefit"

    def reconcile(
        self,
        context: WmbSavedContext,
        config: PluginConfig,
        settings: dict[str, Any],
        ledger: LedgerReader,
    ) -> PluginExecutionResult:
        # Records for other benefits share the month key; leave its charge alone
        if not _same_benefit(context, settings):
            return PluginExecutionResult.ok("Benefit not configured for this plugin")
        return super().reconcile(context, config, settings, ledger)

    def business_key(self, context: WmbSavedContext, settings: dict[str, Any]) -> str:
        return f"{context.employer_id}:{context.worker_id}:{context.year}:{context.month}"

    def compute_expected_entry(
        self,
        context: WmbSavedContext,
        config: PluginConfig,
        settings: dict[str, Any],
    ) -> ExpectedEntry | None:
        if not _same_benefit(context, settings):
            return self.skip("benefit not configured", context)
        if context.is_deleted:
            return self.skip("benefit record deleted", context)

        month_start = date(context.year, context.month, 1)
        last_day = calendar.monthrange(context.year, context.month)[1]
        rate = resolve_effective_rate(parse_rate_history(settings["rate_history"]), month_start)
        if rate is None or rate.rate == 0:
            return self.skip("no applicable rate", context)

        return ExpectedEntry(
            account_id=settings["account_id"],
            entity_type="employer",
            entity_id=context.employer_id,
            amount=rate.rate,
            description=f"Monthly benefit: {calendar.month_name[context.month]} {context.year}",
            transaction_date=date(context.year, context.month, last_day),
            reference_type="wmb",
            reference_id=context.wmb_id,
            data={
                "worker_id": context.worker_id,
                "employer_id": context.employer_id,
                "benefit_id": context.benefit_id,
                "year": context.year,
                "month": context.month,
                "rate": str(rate.rate),
                "effective_date": str(rate.effective_date),
            },
        )

    def context_from_entry(
        self,
        entry: LedgerEntry,
        settings: dict[str, Any],
    ) -> WmbSavedContext | None:
        if not entry.reference_id:
            return None
        data = self.entry_data(entry, "worker_id", "employer_id", "benefit_id", "year", "month")
        if data is None:
            return None
        return WmbSavedContext(
            wmb_id=entry.reference_id,
            worker_id=data["worker_id"],
            employer_id=data["employer_id"],
            benefit_id=data["benefit_id"],
            year=int(data["year"]),
            month=int(data["month"]),
        )
