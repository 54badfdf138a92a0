"""
Payment Simple Allocation plugin.

Credits a cleared payment to the entity it was received from.

    trigger     payment_saved
    entity      the payment's (entity_type, entity_id) on the payment account
    sign        negative: the payment amount is credited to the entity
    key         {payment_id}
    date        date_cleared, else today

Only payments on one of the configured accounts with status "cleared" yield
an entry; a payment that later changes status loses its entry.
"""

from typing import Any

from charge_kernel.db.types import to_decimal
from charge_kernel.domain.dtos import ExpectedEntry
from charge_kernel.domain.rates import to_day
from charge_kernel.domain.settings_schema import (
    SettingsField,
    SettingsFieldType,
    SettingsSchema,
)
from charge_kernel.domain.triggers import PaymentSavedContext, TriggerType
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.models.plugin_config import PluginConfig
from charge_kernel.plugins.base import ChargePlugin, PluginMetadata

PLUGIN_ID = "payment-simple-allocation"

CLEARED = "cleared"


class PaymentSimpleAllocationPlugin(ChargePlugin):
    metadata = PluginMetadata(
        plugin_id=PLUGIN_ID,
        name="Payment Simple Allocation",
        description="Creates a credit entry when a payment on a configured "
        "account clears.",
        triggers=frozenset({TriggerType.PAYMENT_SAVED}),
        settings_schema=SettingsSchema(
            plugin_id=PLUGIN_ID,
            fields=(
                SettingsField(
                    name="account_ids",
                    field_type=SettingsFieldType.ARRAY,
                    item_type=SettingsFieldType.UUID,
                    min_items=1,
                    description="Accounts whose payments are allocated",
                ),
            ),
        ),
    )
    subject = "payment"

    def business_key(self, context: PaymentSavedContext, settings: dict[str, Any]) -> str:
        return context.payment_id

    def compute_expected_entry(
        self,
        context: PaymentSavedContext,
        config: PluginConfig,
        settings: dict[str, Any],
    ) -> ExpectedEntry | None:
        account_ids = {str(a).lower() for a in settings["account_ids"]}
        if context.account_id.lower() not in account_ids:
            return self.skip("payment account not configured", context)

        if context.status != CLEARED:
            return self.skip(f"payment status is {context.status}", context)

        description = (
            f"Payment allocation: {context.memo}" if context.memo else "Payment allocation"
        )
        return ExpectedEntry(
            account_id=context.account_id,
            entity_type=context.entity_type,
            entity_id=context.entity_id,
            amount=-to_decimal(context.amount),
            description=description,
            transaction_date=context.date_cleared or self.clock.today(),
            reference_type="payment",
            reference_id=context.payment_id,
            data={
                "payment_id": context.payment_id,
                "original_amount": context.amount,
                "status": context.status,
                "ledger_ea_id": context.ledger_ea_id,
                "account_id": context.account_id,
                "entity_type": context.entity_type,
                "entity_id": context.entity_id,
                "date_cleared": context.date_cleared.isoformat() if context.date_cleared else None,
                "payment_type_id": context.payment_type_id,
                "memo": context.memo,
            },
        )

    def context_from_entry(
        self,
        entry: LedgerEntry,
        settings: dict[str, Any],
    ) -> PaymentSavedContext | None:
        data = self.entry_data(
            entry, "payment_id", "original_amount", "account_id", "entity_type", "entity_id",
        )
        if data is None:
            return None

        payments = self.sources.payments
        if payments is not None:
            current = payments.get_payment(data["payment_id"])
            if current is not None:
                return current
            # Unknown to the payment module: treat as no longer cleared
            status = "missing"
        else:
            status = data.get("status") or CLEARED

        return PaymentSavedContext(
            payment_id=data["payment_id"],
            amount=str(data["original_amount"]),
            status=status,
            ledger_ea_id=data.get("ledger_ea_id") or "",
            account_id=data["account_id"],
            entity_type=data["entity_type"],
            entity_id=data["entity_id"],
            date_cleared=to_day(data.get("date_cleared")),
            payment_type_id=data.get("payment_type_id"),
            memo=data.get("memo"),
        )
