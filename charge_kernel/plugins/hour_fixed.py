"""
Hour - Fixed Rate plugin.

Charges the employer a fixed hourly rate for every day of hours recorded.

    trigger     hours_saved
    entity      employer (context.employer_id)
    sign        positive: hours x rate is owed by the employer
    key         {worker_id}:{employer_id}:{YYYY-MM-DD}
    rate date   the work day

Settings::

    account_id: <uuid>
    employment_status_ids: [<id>, ...]   # optional filter
    rate_history:
      - {effective_date: 2025-01-01, rate: 5}
"""

from typing import Any

from charge_kernel.db.types import format_plain, to_decimal
from charge_kernel.domain.dtos import ExpectedEntry
from charge_kernel.domain.rates import parse_rate_history, resolve_effective_rate
from charge_kernel.domain.settings_schema import (
    ACCOUNT_ID_FIELD,
    SettingsField,
    SettingsFieldType,
    SettingsSchema,
    rate_history_field,
)
from charge_kernel.domain.triggers import HoursSavedContext, TriggerType
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.models.plugin_config import PluginConfig
from charge_kernel.plugins.base import ChargePlugin, PluginMetadata

PLUGIN_ID = "hour-fixed"

EMPLOYMENT_STATUS_IDS_FIELD = SettingsField(
    name="employment_status_ids",
    field_type=SettingsFieldType.ARRAY,
    item_type=SettingsFieldType.STRING,
    required=False,
    description="Only hours with one of these employment statuses are charged",
)


class HourFixedPlugin(ChargePlugin):
    metadata = PluginMetadata(
        plugin_id=PLUGIN_ID,
        name="Hour - Fixed Rate",
        description="Charges a fixed hourly rate, taken from the rate history, "
        "to the employer whenever hours are saved.",
        triggers=frozenset({TriggerType.HOURS_SAVED}),
        settings_schema=SettingsSchema(
            plugin_id=PLUGIN_ID,
            fields=(
                ACCOUNT_ID_FIELD,
                EMPLOYMENT_STATUS_IDS_FIELD,
                rate_history_field(positive=True),
            ),
        ),
    )
    subject = "hours entry"

    def business_key(self, context: HoursSavedContext, settings: dict[str, Any]) -> str:
        return f"{context.worker_id}:{context.employer_id}:{context.work_date.isoformat()}"

    def compute_expected_entry(
        self,
        context: HoursSavedContext,
        config: PluginConfig,
        settings: dict[str, Any],
    ) -> ExpectedEntry | None:
        status_filter = settings.get("employment_status_ids") or []
        if status_filter and context.employment_status_id not in status_filter:
            return self.skip("employment status not charged", context)

        if context.hours <= 0:
            return self.skip("no hours", context)

        work_date = context.work_date
        rate = resolve_effective_rate(parse_rate_history(settings["rate_history"]), work_date)
        if rate is None:
            return self.skip("no applicable rate", context)

        return ExpectedEntry(
            account_id=settings["account_id"],
            entity_type="employer",
            entity_id=context.employer_id,
            amount=context.hours * rate.rate,
            description=(
                f"Hours charge: {format_plain(context.hours)} hours "
                f"@ ${format_plain(rate.rate)}/hr"
            ),
            transaction_date=work_date,
            reference_type="worker_hours",
            reference_id=context.hours_id or self.business_key(context, settings),
            data={
                "worker_id": context.worker_id,
                "employer_id": context.employer_id,
                "year": context.year,
                "month": context.month,
                "day": context.day,
                "hours": str(context.hours),
                "employment_status_id": context.employment_status_id,
                "home": context.home,
                "hours_id": context.hours_id,
                "rate": str(rate.rate),
                "effective_date": str(rate.effective_date),
            },
        )

    def context_from_entry(
        self,
        entry: LedgerEntry,
        settings: dict[str, Any],
    ) -> HoursSavedContext | None:
        data = self.entry_data(
            entry,
            "worker_id", "employer_id", "year", "month", "day", "hours", "employment_status_id",
        )
        if data is None:
            return None
        return HoursSavedContext(
            worker_id=data["worker_id"],
            employer_id=data["employer_id"],
            year=int(data["year"]),
            month=int(data["month"]),
            day=int(data["day"]),
            hours=to_decimal(data["hours"]),
            employment_status_id=data["employment_status_id"],
            home=bool(data.get("home", False)),
            hours_id=data.get("hours_id"),
        )
