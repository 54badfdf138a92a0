"""
Hours - Monthly Flat plugin.

Charges the worker one flat monthly rate for every month in which they have
qualifying hours at an employer.  Each hours save for the month re-evaluates
the whole month, so the entry follows the monthly total: it is created with
the first qualifying hours and deleted when the total drops to zero.

    trigger     hours_saved
    entity      worker (context.worker_id)
    sign        positive: the monthly rate is owed by the worker
    key         {worker_id}:{employer_id}:{year}:{month}
    rate date   first day of the month
    requires    HoursSource (monthly totals)

A rate of 0 in effect for the month means "no charge".
"""

import calendar
from datetime import date
from decimal import Decimal
from typing import Any

from charge_kernel.db.types import format_plain
from charge_kernel.domain.dtos import ExpectedEntry
from charge_kernel.domain.rates import parse_rate_history, resolve_effective_rate
from charge_kernel.domain.settings_schema import (
    ACCOUNT_ID_FIELD,
    SettingsSchema,
    rate_history_field,
)
from charge_kernel.domain.sources import HoursSource
from charge_kernel.domain.triggers import HoursSavedContext, TriggerType
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.models.plugin_config import PluginConfig
from charge_kernel.plugins.base import ChargePlugin, PluginMetadata
from charge_kernel.plugins.hour_fixed import EMPLOYMENT_STATUS_IDS_FIELD

PLUGIN_ID = "hours-monthly-flat"


class HoursMonthlyFlatPlugin(ChargePlugin):
    metadata = PluginMetadata(
        plugin_id=PLUGIN_ID,
        name="Hours - Monthly Flat",
        description="Charges the worker a flat monthly rate when there are "
        "qualifying hours in the month.",
        triggers=frozenset({TriggerType.HOURS_SAVED}),
        settings_schema=SettingsSchema(
            plugin_id=PLUGIN_ID,
            fields=(
                ACCOUNT_ID_FIELD,
                EMPLOYMENT_STATUS_IDS_FIELD,
                rate_history_field(),
            ),
        ),
        required_component="charges.hours_monthly",
    )
    subject = "worker month"

    def business_key(self, context: HoursSavedContext, settings: dict[str, Any]) -> str:
        return f"{context.worker_id}:{context.employer_id}:{context.year}:{context.month}"

    def compute_expected_entry(
        self,
        context: HoursSavedContext,
        config: PluginConfig,
        settings: dict[str, Any],
    ) -> ExpectedEntry | None:
        hours_source: HoursSource = self.require_source("hours")
        total_hours = hours_source.monthly_hours_total(
            context.worker_id,
            context.employer_id,
            context.year,
            context.month,
            settings.get("employment_status_ids") or None,
        )
        if total_hours <= 0:
            return self.skip("no qualifying hours in month", context)

        month_start = date(context.year, context.month, 1)
        rate = resolve_effective_rate(parse_rate_history(settings["rate_history"]), month_start)
        if rate is None or rate.rate == 0:
            return self.skip("no applicable rate", context)

        period_key = self.business_key(context, settings)
        return ExpectedEntry(
            account_id=settings["account_id"],
            entity_type="worker",
            entity_id=context.worker_id,
            amount=rate.rate,
            description=(
                f"Monthly hours charge: {calendar.month_name[context.month]} {context.year} "
                f"({format_plain(total_hours)} qualifying hours)"
            ),
            transaction_date=month_start,
            reference_type="hour",
            reference_id=period_key,
            data={
                "worker_id": context.worker_id,
                "employer_id": context.employer_id,
                "year": context.year,
                "month": context.month,
                "total_hours": str(total_hours),
                "rate": str(rate.rate),
                "effective_date": str(rate.effective_date),
            },
        )

    def context_from_entry(
        self,
        entry: LedgerEntry,
        settings: dict[str, Any],
    ) -> HoursSavedContext | None:
        data = self.entry_data(entry, "worker_id", "employer_id", "year", "month")
        if data is None:
            return None
        # Day and hours are irrelevant: the month total comes from the source
        return HoursSavedContext(
            worker_id=data["worker_id"],
            employer_id=data["employer_id"],
            year=int(data["year"]),
            month=int(data["month"]),
            day=1,
            hours=Decimal(0),
            employment_status_id="",
        )
