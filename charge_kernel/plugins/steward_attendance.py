"""
Steward Attendance plugin.

Awards points to stewards who attend configured event types.

    trigger     participant_saved
    entity      worker (context.worker_id)
    sign        negative: the award is credited to the worker
    key         {participant_id}
    date        participant registration date, else today

Qualifies when the event type is configured, the participant is a worker
and a steward, and the attendance status is one of ``attended_statuses``.
Event titles and registration dates come from the ParticipantSource when
one is supplied.
"""

from typing import Any

from charge_kernel.db.types import to_decimal
from charge_kernel.domain.dtos import ExpectedEntry
from charge_kernel.domain.settings_schema import (
    ACCOUNT_ID_FIELD,
    SettingsField,
    SettingsFieldType,
    SettingsSchema,
)
from charge_kernel.domain.triggers import ParticipantSavedContext, TriggerType
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.models.plugin_config import PluginConfig
from charge_kernel.plugins.base import ChargePlugin, PluginMetadata

PLUGIN_ID = "steward-attendance"


class StewardAttendancePlugin(ChargePlugin):
    metadata = PluginMetadata(
        plugin_id=PLUGIN_ID,
        name="Steward Attendance",
        description="Awards points to stewards who attend configured event "
        "types with an attended status.",
        triggers=frozenset({TriggerType.PARTICIPANT_SAVED}),
        settings_schema=SettingsSchema(
            plugin_id=PLUGIN_ID,
            fields=(
                ACCOUNT_ID_FIELD,
                SettingsField(
                    name="amount",
                    field_type=SettingsFieldType.DECIMAL,
                    min_value=0,
                    exclusive_min=True,
                    description="Points awarded per attended event",
                ),
                SettingsField(
                    name="event_type_ids",
                    field_type=SettingsFieldType.ARRAY,
                    item_type=SettingsFieldType.STRING,
                    min_items=1,
                ),
                SettingsField(
                    name="attended_statuses",
                    field_type=SettingsFieldType.ARRAY,
                    item_type=SettingsFieldType.STRING,
                    min_items=1,
                ),
            ),
        ),
        required_component="charges.steward_attendance",
    )
    subject = "participant"

    def business_key(self, context: ParticipantSavedContext, settings: dict[str, Any]) -> str:
        return context.participant_id

    def compute_expected_entry(
        self,
        context: ParticipantSavedContext,
        config: PluginConfig,
        settings: dict[str, Any],
    ) -> ExpectedEntry | None:
        if context.event_type_id not in settings["event_type_ids"]:
            return self.skip("event type not configured", context)
        if not context.worker_id:
            return self.skip("participant is not a worker", context)
        if not context.is_steward:
            return self.skip("worker is not a steward", context)
        if not context.status or context.status not in settings["attended_statuses"]:
            return self.skip("not attended", context)

        participants = self.sources.participants
        title = participants.event_title(context.event_id) if participants else None
        registered_on = participants.registered_on(context.participant_id) if participants else None

        return ExpectedEntry(
            account_id=settings["account_id"],
            entity_type="worker",
            entity_id=context.worker_id,
            amount=-to_decimal(settings["amount"]),
            description=f"Steward Attendance - {title or 'Event'}",
            transaction_date=registered_on or self.clock.today(),
            reference_type="participant",
            reference_id=context.participant_id,
            data={
                "participant_id": context.participant_id,
                "event_id": context.event_id,
                "event_type_id": context.event_type_id,
                "worker_id": context.worker_id,
                "contact_id": context.contact_id,
                "role": context.role,
                "status": context.status,
                "is_steward": context.is_steward,
            },
        )

    def context_from_entry(
        self,
        entry: LedgerEntry,
        settings: dict[str, Any],
    ) -> ParticipantSavedContext | None:
        data = self.entry_data(
            entry, "participant_id", "event_id", "event_type_id", "worker_id", "contact_id",
        )
        if data is None:
            return None

        participants = self.sources.participants
        if participants is not None:
            is_steward = participants.is_steward(data["worker_id"])
        else:
            is_steward = bool(data.get("is_steward", True))

        return ParticipantSavedContext(
            participant_id=data["participant_id"],
            event_id=data["event_id"],
            event_type_id=data["event_type_id"],
            contact_id=data["contact_id"],
            role=data.get("role") or "member",
            status=data.get("status"),
            worker_id=data["worker_id"],
            is_steward=is_steward,
        )
