"""
ChargePlugin -- Base class and metadata for charge plugins.

Responsibility:
    Defines the contract every charge plugin implements and the four-way
    reconciliation shared by all of them:

        expected  existing   action
        --------  --------   ------------------------------------------
        none      none       no-op
        none      present    DELETE, "deleted" notification
        present   none       CREATE, "created" notification
        present   present    UPDATE if amount/description/reference
                             differ ("updated" notification), else no-op

    Subclasses supply only the rule: ``business_key``,
    ``compute_expected_entry`` and ``context_from_entry``.

Architecture position:
    Kernel > Plugins.  May import domain/, db.types and models (read-only).
    Plugins never write to the session; they return LedgerMutations which
    the execution engine persists.

Invariants enforced:
    - idempotency_key = "{config_id}:{business_key}".
    - execute() and verify_entry() never mutate state.
    - verify_entry() uses the same compute_expected_entry() as execute().
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, ClassVar, Protocol
from uuid import UUID

from charge_kernel.db.types import amounts_equal, format_money
from charge_kernel.domain.clock import Clock, SystemClock
from charge_kernel.domain.dtos import (
    ExpectedEntry,
    LedgerMutation,
    LedgerNotification,
    MutationAction,
    NotificationKind,
    PluginExecutionResult,
    ValidationError,
    ValidationResult,
    VerificationResult,
)
from charge_kernel.domain.settings_schema import SettingsSchema
from charge_kernel.domain.settings_validator import validate_settings
from charge_kernel.domain.sources import PluginSources
from charge_kernel.domain.triggers import TriggerContext, TriggerType
from charge_kernel.exceptions import (
    InvalidPluginSettingsError,
    MissingSourceError,
    UnsupportedTriggerError,
)
from charge_kernel.logging_config import get_logger
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.models.plugin_config import ConfigScope, PluginConfig

logger = get_logger("plugins")


@dataclass(frozen=True)
class PluginMetadata:
    """Immutable description of a plugin, declared once per plugin class."""

    plugin_id: str
    name: str
    description: str
    triggers: frozenset[TriggerType]
    default_scope: ConfigScope = ConfigScope.GLOBAL
    settings_schema: SettingsSchema | None = None
    # Feature flag that must be enabled for the plugin to register
    required_component: str | None = None

    def __post_init__(self) -> None:
        if not self.plugin_id:
            raise ValueError("plugin_id is required")
        if not self.triggers:
            raise ValueError(f"Plugin {self.plugin_id} must handle at least one trigger")


class LedgerReader(Protocol):
    """Read access to persisted ledger entries, as plugins see it."""

    def find_entry(self, plugin_id: str, idempotency_key: str) -> LedgerEntry | None: ...


class ChargePlugin(ABC):
    """
    Base class for charge plugins.

    Contract:
        Subclasses set ``metadata`` and implement ``business_key``,
        ``compute_expected_entry`` and ``context_from_entry``.
        ``compute_expected_entry`` returns None when no entry should exist.

    Non-goals:
        Persistence, EA resolution and transaction handling belong to the
        execution engine.
    """

    metadata: ClassVar[PluginMetadata]

    # Word used in "Entry exists but <subject> no longer qualifies"
    subject: ClassVar[str] = "source record"

    def __init__(
        self,
        sources: PluginSources | None = None,
        clock: Clock | None = None,
    ):
        self.sources = sources or PluginSources()
        self.clock = clock or SystemClock()

    @property
    def plugin_id(self) -> str:
        return self.metadata.plugin_id

    def can_handle(self, trigger: TriggerType) -> bool:
        return trigger in self.metadata.triggers

    # Settings

    def validate_settings(self, raw: Any) -> ValidationResult:
        """Structural validation of a configuration's settings blob."""
        if self.metadata.settings_schema is None:
            if isinstance(raw, dict):
                return ValidationResult.success()
            return ValidationResult.failure(
                ValidationError(code="INVALID_TYPE", message="Settings must be an object")
            )
        return validate_settings(raw, self.metadata.settings_schema)

    # Rule hooks

    @abstractmethod
    def business_key(self, context: TriggerContext, settings: dict[str, Any]) -> str:
        """Stable identifier of the logical charge within one configuration."""

    @abstractmethod
    def compute_expected_entry(
        self,
        context: TriggerContext,
        config: PluginConfig,
        settings: dict[str, Any],
    ) -> ExpectedEntry | None:
        """The entry that should exist for this context, or None."""

    @abstractmethod
    def context_from_entry(
        self,
        entry: LedgerEntry,
        settings: dict[str, Any],
    ) -> TriggerContext | None:
        """Rebuild a trigger context from a persisted entry, or None if the
        entry lacks the metadata to do so."""

    # Execution

    @staticmethod
    def idempotency_key(config_id: UUID, business_key: str) -> str:
        return f"{config_id}:{business_key}"

    def execute(
        self,
        context: TriggerContext,
        config: PluginConfig,
        ledger: LedgerReader,
    ) -> PluginExecutionResult:
        """
        Reconcile the ledger for one trigger context under one configuration.

        Returns a failed result (never raises) for a foreign trigger or
        invalid settings.  Unexpected exceptions from the rule hooks
        propagate to the engine, which records them as plugin failures.
        """
        if not self.can_handle(context.trigger):
            error = UnsupportedTriggerError(self.plugin_id, context.trigger.value)
            return PluginExecutionResult.failed(str(error), error.code)

        validation = self.validate_settings(config.settings)
        if not validation:
            error = InvalidPluginSettingsError(self.plugin_id, validation.messages)
            logger.warning(
                "plugin_settings_invalid",
                extra={
                    "plugin_id": self.plugin_id,
                    "config_id": str(config.id),
                    "errors": validation.messages,
                },
            )
            return PluginExecutionResult.failed(str(error), error.code)

        return self.reconcile(context, config, dict(config.settings), ledger)

    def reconcile(
        self,
        context: TriggerContext,
        config: PluginConfig,
        settings: dict[str, Any],
        ledger: LedgerReader,
    ) -> PluginExecutionResult:
        """Four-way diff between the expected and the persisted entry."""
        key = self.idempotency_key(config.id, self.business_key(context, settings))
        expected = self.compute_expected_entry(context, config, settings)
        existing = ledger.find_entry(self.plugin_id, key)

        def mutation(action: MutationAction, **kwargs: Any) -> LedgerMutation:
            return LedgerMutation(
                action=action,
                plugin_id=self.plugin_id,
                config_id=config.id,
                idempotency_key=key,
                **kwargs,
            )

        def notice(kind: NotificationKind, amount: Decimal, previous: Decimal | None = None):
            return LedgerNotification(
                kind=kind,
                plugin_id=self.plugin_id,
                amount=amount,
                previous_amount=previous,
                description=self.notification_text(kind, amount, previous),
            )

        if expected is None and existing is None:
            return PluginExecutionResult.ok("No entry expected and none exists")

        if expected is None:
            return PluginExecutionResult.ok(
                f"Deleting entry {existing.id}: {self.subject} no longer qualifies",
                mutations=(
                    mutation(
                        MutationAction.DELETE,
                        entry_id=existing.id,
                        previous_amount=existing.amount,
                    ),
                ),
                notifications=(notice(NotificationKind.DELETED, existing.amount),),
            )

        if existing is None:
            return PluginExecutionResult.ok(
                f"Creating entry for {format_money(expected.amount)} - {expected.description}",
                mutations=(mutation(MutationAction.CREATE, expected=expected),),
                notifications=(notice(NotificationKind.CREATED, expected.amount),),
            )

        existing_ref = (existing.reference_type, existing.reference_id)
        expected_ref = (expected.reference_type, expected.reference_id)
        changed = [
            name
            for name, differs in (
                ("amount", not amounts_equal(existing.amount, expected.amount)),
                ("description", existing.description != expected.description),
                ("reference", existing_ref != expected_ref),
            )
            if differs
        ]
        if not changed:
            return PluginExecutionResult.ok("Ledger entry already matches expected state")

        return PluginExecutionResult.ok(
            f"Updating entry {existing.id}: {', '.join(changed)} changed",
            mutations=(
                mutation(
                    MutationAction.UPDATE,
                    expected=expected,
                    entry_id=existing.id,
                    previous_amount=existing.amount,
                ),
            ),
            notifications=(
                notice(NotificationKind.UPDATED, expected.amount, existing.amount),
            ),
        )

    # Verification

    def verify_entry(self, entry: LedgerEntry, config: PluginConfig) -> VerificationResult:
        """
        Recompute the expected entry for a persisted entry and report drift.

        Read-only.  Discrepancies are returned, not raised.
        """
        base = dict(
            entry_id=entry.id,
            plugin_id=entry.plugin_id,
            idempotency_key=entry.idempotency_key,
            actual_amount=entry.amount,
            actual_description=entry.description,
            reference_type=entry.reference_type,
            reference_id=entry.reference_id,
            transaction_date=entry.transaction_date,
        )

        validation = self.validate_settings(config.settings)
        if not validation:
            return VerificationResult(
                **base,
                is_valid=False,
                discrepancies=(
                    f"Invalid plugin configuration: {', '.join(validation.messages)}",
                ),
            )

        settings = dict(config.settings)
        context = self.context_from_entry(entry, settings)
        if context is None:
            return VerificationResult(
                **base,
                is_valid=False,
                discrepancies=("Entry missing required metadata - cannot verify",),
            )

        expected = self.compute_expected_entry(context, config, settings)
        if expected is None:
            return VerificationResult(
                **base,
                is_valid=False,
                expected_amount=Decimal("0.00"),
                discrepancies=(
                    f"Entry exists but {self.subject} no longer qualifies - entry should be deleted",
                ),
            )

        discrepancies: list[str] = []
        if not amounts_equal(entry.amount, expected.amount):
            discrepancies.append(
                f"Amount mismatch: expected {format_money(expected.amount)}, "
                f"found {format_money(entry.amount)}"
            )
        if entry.description != expected.description:
            discrepancies.append(
                f'Description mismatch: expected "{expected.description}", '
                f'found "{entry.description}"'
            )
        expected_key = self.idempotency_key(config.id, self.business_key(context, settings))
        if entry.idempotency_key != expected_key:
            discrepancies.append(
                f"Idempotency key mismatch: expected {expected_key}, found {entry.idempotency_key}"
            )

        return VerificationResult(
            **base,
            is_valid=not discrepancies,
            discrepancies=tuple(discrepancies),
            expected_amount=expected.amount,
            expected_description=expected.description,
        )

    # Helpers for subclasses

    @staticmethod
    def entry_data(entry: LedgerEntry, *required: str) -> dict[str, Any] | None:
        """The entry's metadata, or None if any ``required`` key is missing or empty."""
        data = entry.data or {}
        if any(data.get(key) in (None, "") for key in required):
            return None
        return data

    def require_source(self, name: str) -> Any:
        source = getattr(self.sources, name, None)
        if source is None:
            raise MissingSourceError(self.plugin_id, name)
        return source

    def skip(self, reason: str, context: TriggerContext) -> None:
        """Log why no entry is expected and return None."""
        logger.debug(
            "no_entry_expected",
            extra={"plugin_id": self.plugin_id, "reason": reason, "trigger": context.trigger.value},
        )
        return None

    def notification_text(
        self,
        kind: NotificationKind,
        amount: Decimal,
        previous_amount: Decimal | None = None,
    ) -> str:
        name = self.metadata.name
        if kind == NotificationKind.CREATED:
            return f"{name}: {format_money(amount)}"
        if kind == NotificationKind.DELETED:
            return f"{name} removed: {format_money(amount)}"
        if previous_amount is not None and not amounts_equal(previous_amount, amount):
            return f"{name} updated: {format_money(previous_amount)} -> {format_money(amount)}"
        return f"{name} entry updated"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.plugin_id}>"
