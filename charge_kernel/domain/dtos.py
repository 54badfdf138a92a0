"""
Domain DTOs -- Immutable value objects exchanged between plugins, the
execution engine and the verification engine.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  No ORM objects cross
    a plugin boundary except the LedgerEntry handed to ``verify_entry``.

Invariants enforced:
    - All DTOs are frozen dataclasses.
    - Amounts are Decimal at ledger precision (see db.types.round_money).
    - Soft failures are values: PluginExecutionResult / PluginExecutionSummary
      carry success or failure, never an exception.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from charge_kernel.db.types import format_money, round_money


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Contract:
        Carries a machine-readable code, human-readable message and an
        optional field path.  Used for plugin settings validation.
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of validation.

    Guarantees:
        - errors is always a tuple (never None)
        - bool(result) == result.is_valid
    """

    is_valid: bool
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(is_valid=True, errors=())

    @classmethod
    def failure(cls, *errors: ValidationError) -> ValidationResult:
        return cls(is_valid=False, errors=tuple(errors))

    @property
    def messages(self) -> list[str]:
        return [e.message for e in self.errors]

    def __bool__(self) -> bool:
        return self.is_valid


@dataclass(frozen=True)
class ExpectedEntry:
    """
    The ledger entry a plugin says should exist for one business key.

    Contract:
        Pure output of ``compute_expected_entry``.  The EA is described by
        (account_id, entity_type, entity_id) and resolved only at persistence
        time.  ``amount`` is rounded to ledger precision on construction.
    """

    account_id: UUID
    entity_type: str
    entity_id: str
    amount: Decimal
    description: str
    transaction_date: date
    reference_type: str | None = None
    reference_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", round_money(self.amount))
        if not isinstance(self.account_id, UUID):
            object.__setattr__(self, "account_id", UUID(str(self.account_id)))


class MutationAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class LedgerMutation:
    """
    One change the engine must apply to bring the ledger to the expected state.

    Contract:
        - CREATE carries ``expected`` and no ``entry_id``.
        - UPDATE carries ``expected``, ``entry_id`` and ``previous_amount``.
        - DELETE carries ``entry_id`` and ``previous_amount``.
    """

    action: MutationAction
    plugin_id: str
    config_id: UUID
    idempotency_key: str
    expected: ExpectedEntry | None = None
    entry_id: UUID | None = None
    previous_amount: Decimal | None = None

    def __post_init__(self) -> None:
        if self.action in (MutationAction.CREATE, MutationAction.UPDATE) and self.expected is None:
            raise ValueError(f"{self.action.value} mutation requires an expected entry")
        if self.action in (MutationAction.UPDATE, MutationAction.DELETE) and self.entry_id is None:
            raise ValueError(f"{self.action.value} mutation requires an entry_id")

    @property
    def amount(self) -> Decimal | None:
        return self.expected.amount if self.expected is not None else None


class NotificationKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class LedgerNotification:
    """Administrative notice of a ledger change, suitable for surfacing to users."""

    kind: NotificationKind
    plugin_id: str
    amount: Decimal
    description: str
    previous_amount: Decimal | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "type": self.kind.value,
            "plugin_id": self.plugin_id,
            "amount": format_money(self.amount),
            "description": self.description,
        }
        if self.previous_amount is not None:
            result["previous_amount"] = format_money(self.previous_amount)
        return result


@dataclass(frozen=True)
class PluginExecutionResult:
    """Outcome of one ``ChargePlugin.execute`` call."""

    success: bool
    mutations: tuple[LedgerMutation, ...] = ()
    notifications: tuple[LedgerNotification, ...] = ()
    message: str | None = None
    error: str | None = None
    error_code: str | None = None

    @classmethod
    def ok(
        cls,
        message: str,
        mutations: tuple[LedgerMutation, ...] = (),
        notifications: tuple[LedgerNotification, ...] = (),
    ) -> PluginExecutionResult:
        return cls(
            success=True,
            mutations=mutations,
            notifications=notifications,
            message=message,
        )

    @classmethod
    def failed(cls, error: str, error_code: str | None = None) -> PluginExecutionResult:
        return cls(success=False, error=error, error_code=error_code)


class PluginOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class PluginExecutionSummary:
    """Per-plugin line of an ExecutionSummary."""

    plugin_id: str
    outcome: PluginOutcome
    config_id: UUID | None = None
    mutation_count: int = 0
    message: str | None = None
    error: str | None = None
    error_code: str | None = None

    @property
    def success(self) -> bool:
        return self.outcome != PluginOutcome.FAILED


class PersistStatus(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    NOT_FOUND = "not_found"
    FAILED = "failed"
    DRY_RUN = "dry_run"


@dataclass(frozen=True)
class MutationResult:
    """What happened when the engine tried to persist one mutation."""

    mutation: LedgerMutation
    status: PersistStatus
    entry_id: UUID | None = None
    error: str | None = None
    error_code: str | None = None


@dataclass(frozen=True)
class ExecutionSummary:
    """
    Result of ``execute_for_trigger``.

    Guarantees:
        - One PluginExecutionSummary per plugin handling the trigger, in
          registration order.
        - ``results`` holds one MutationResult per proposed mutation.
    """

    trigger: str
    plugins: tuple[PluginExecutionSummary, ...] = ()
    results: tuple[MutationResult, ...] = ()
    notifications: tuple[LedgerNotification, ...] = ()
    dry_run: bool = False

    @property
    def mutations(self) -> tuple[LedgerMutation, ...]:
        return tuple(r.mutation for r in self.results)

    @property
    def total_mutations(self) -> int:
        return len(self.results)

    def _count(self, status: PersistStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def persisted_count(self) -> int:
        return self._count(PersistStatus.APPLIED)

    @property
    def duplicate_count(self) -> int:
        return self._count(PersistStatus.DUPLICATE)

    @property
    def failed_count(self) -> int:
        return self._count(PersistStatus.FAILED)

    @property
    def failed(self) -> tuple[PluginExecutionSummary, ...]:
        return tuple(p for p in self.plugins if not p.success)

    @property
    def success(self) -> bool:
        return not self.failed and self.failed_count == 0

    def for_plugin(self, plugin_id: str) -> PluginExecutionSummary | None:
        return next((p for p in self.plugins if p.plugin_id == plugin_id), None)


@dataclass(frozen=True)
class VerificationResult:
    """
    Read-only audit of one persisted ledger entry.

    ``discrepancies`` is empty iff ``is_valid``.
    """

    entry_id: UUID
    plugin_id: str
    idempotency_key: str
    is_valid: bool
    actual_amount: Decimal
    actual_description: str
    discrepancies: tuple[str, ...] = ()
    expected_amount: Decimal | None = None
    expected_description: str | None = None
    reference_type: str | None = None
    reference_id: str | None = None
    transaction_date: date | None = None


class FindingKind(str, Enum):
    UNKNOWN_PLUGIN = "unknown_plugin"
    NO_MATCHING_CONFIG = "no_matching_config"
    DISCREPANCY = "discrepancy"
    VERIFICATION_ERROR = "verification_error"


@dataclass(frozen=True)
class IntegrityFinding:
    """One row of the ledger integrity report."""

    entry_id: UUID
    plugin_id: str
    kind: FindingKind
    discrepancy: str
    actual_amount: Decimal
    expected_amount: Decimal | None = None
    transaction_date: date | None = None
    reference_type: str | None = None
    reference_id: str | None = None
