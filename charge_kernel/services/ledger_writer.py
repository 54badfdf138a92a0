"""
LedgerWriter -- persists LedgerMutations produced by charge plugins.

Responsibility:
    Applies CREATE / UPDATE / DELETE mutations to ``ledger_entries``, one
    savepoint per mutation, and reports a MutationResult for each.

Architecture position:
    Kernel > Services.  Called only by ChargeExecutionService.

Invariants enforced:
    - At most one entry per (plugin_id, idempotency_key).  CREATE goes
      through ``insert_or_find``; losing a race to a concurrent run yields
      DUPLICATE, not an error.
    - An entry is never partially written: each mutation runs inside its
      own ``begin_nested()`` and is rolled back as a unit on failure.
    - A failing mutation never aborts the remaining ones.

Failure modes:
    - Returned, not raised: FAILED results carry the error text and code
      (``EA_RESOLUTION_FAILED`` for fatal EA resolution errors).
      Database errors are PERSISTENCE_ERROR, anything else unexpected is
      MUTATION_ERROR.
    - NOT_FOUND when an UPDATE/DELETE target was removed concurrently.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from charge_kernel.db.upsert import insert_or_find
from charge_kernel.domain.dtos import (
    LedgerMutation,
    MutationAction,
    MutationResult,
    PersistStatus,
)
from charge_kernel.exceptions import ChargeKernelError
from charge_kernel.logging_config import LogContext, get_logger
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.services.base import BaseService
from charge_kernel.services.ea_resolver import EntityAccountResolver

logger = get_logger("services.ledger_writer")

ENTRY_CONFLICT_COLUMNS = ("plugin_id", "idempotency_key")
PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
MUTATION_ERROR = "MUTATION_ERROR"


class LedgerWriter(BaseService[LedgerEntry]):
    """
    Persists ledger mutations inside the caller's transaction.

    Non-goals:
        - Does NOT decide what the ledger should contain; plugins do.
        - Does NOT commit.
    """

    def __init__(self, session, actor_id: UUID, ea_resolver: EntityAccountResolver | None = None):
        super().__init__(session, actor_id)
        self._ea_resolver = ea_resolver or EntityAccountResolver(session, actor_id)

    def apply_all(
        self,
        mutations: Iterable[LedgerMutation],
        dry_run: bool = False,
    ) -> list[MutationResult]:
        results = []
        for mutation in mutations:
            if dry_run:
                results.append(
                    MutationResult(
                        mutation=mutation,
                        status=PersistStatus.DRY_RUN,
                        entry_id=mutation.entry_id,
                    )
                )
            else:
                results.append(self.apply(mutation))
        return results

    def apply(self, mutation: LedgerMutation) -> MutationResult:
        """Apply one mutation in its own savepoint."""
        with LogContext.bind(plugin_id=mutation.plugin_id, config_id=str(mutation.config_id)):
            try:
                with self.session.begin_nested():
                    if mutation.action == MutationAction.CREATE:
                        return self._create(mutation)
                    if mutation.action == MutationAction.UPDATE:
                        return self._update(mutation)
                    return self._delete(mutation)
            except Exception as exc:
                if isinstance(exc, ChargeKernelError):
                    code = exc.code
                elif isinstance(exc, SQLAlchemyError):
                    code = PERSISTENCE_ERROR
                else:
                    code = MUTATION_ERROR
                logger.error(
                    "ledger_mutation_failed",
                    extra={
                        "action": mutation.action.value,
                        "idempotency_key": mutation.idempotency_key,
                        "error": str(exc),
                        "error_code": code,
                    },
                    exc_info=not isinstance(exc, ChargeKernelError),
                )
                return MutationResult(
                    mutation=mutation,
                    status=PersistStatus.FAILED,
                    entry_id=mutation.entry_id,
                    error=str(exc),
                    error_code=code,
                )

    def _create(self, mutation: LedgerMutation) -> MutationResult:
        expected = mutation.expected
        ea = self._ea_resolver.get_or_create(
            expected.entity_type,
            expected.entity_id,
            expected.account_id,
        )
        entry, created = insert_or_find(
            self.session,
            LedgerEntry,
            {
                "plugin_id": mutation.plugin_id,
                "plugin_config_id": mutation.config_id,
                "idempotency_key": mutation.idempotency_key,
                "ea_id": ea.id,
                "amount": expected.amount,
                "description": expected.description,
                "reference_type": expected.reference_type,
                "reference_id": expected.reference_id,
                "transaction_date": expected.transaction_date,
                "data": dict(expected.data),
                "created_by_id": self.actor_id,
            },
            ENTRY_CONFLICT_COLUMNS,
        )
        if entry is None:
            return MutationResult(
                mutation=mutation,
                status=PersistStatus.FAILED,
                error=f"Ledger entry for {mutation.idempotency_key} could not be created",
                error_code=PERSISTENCE_ERROR,
            )
        if not created:
            logger.info(
                "ledger_entry_duplicate",
                extra={"entry_id": str(entry.id), "idempotency_key": mutation.idempotency_key},
            )
            return MutationResult(
                mutation=mutation, status=PersistStatus.DUPLICATE, entry_id=entry.id
            )

        logger.info(
            "ledger_entry_created",
            extra={
                "entry_id": str(entry.id),
                "ea_id": str(ea.id),
                "amount": str(entry.amount),
                "idempotency_key": mutation.idempotency_key,
            },
        )
        return MutationResult(mutation=mutation, status=PersistStatus.APPLIED, entry_id=entry.id)

    def _load(self, mutation: LedgerMutation) -> LedgerEntry | None:
        entry = self.session.get(LedgerEntry, mutation.entry_id, populate_existing=True)
        if entry is None:
            logger.warning(
                "ledger_entry_vanished",
                extra={
                    "entry_id": str(mutation.entry_id),
                    "action": mutation.action.value,
                },
            )
        return entry

    def _update(self, mutation: LedgerMutation) -> MutationResult:
        entry = self._load(mutation)
        if entry is None:
            return MutationResult(
                mutation=mutation, status=PersistStatus.NOT_FOUND, entry_id=mutation.entry_id
            )
        expected = mutation.expected
        previous = entry.amount
        entry.amount = expected.amount
        entry.description = expected.description
        entry.reference_type = expected.reference_type
        entry.reference_id = expected.reference_id
        entry.transaction_date = expected.transaction_date
        entry.data = dict(expected.data)
        entry.updated_by_id = self.actor_id
        self.session.flush()
        logger.info(
            "ledger_entry_updated",
            extra={
                "entry_id": str(entry.id),
                "previous_amount": str(previous),
                "amount": str(entry.amount),
            },
        )
        return MutationResult(mutation=mutation, status=PersistStatus.APPLIED, entry_id=entry.id)

    def _delete(self, mutation: LedgerMutation) -> MutationResult:
        entry = self._load(mutation)
        if entry is None:
            return MutationResult(
                mutation=mutation, status=PersistStatus.NOT_FOUND, entry_id=mutation.entry_id
            )
        amount = entry.amount
        self.session.delete(entry)
        self.session.flush()
        logger.info(
            "ledger_entry_deleted",
            extra={"entry_id": str(mutation.entry_id), "amount": str(amount)},
        )
        return MutationResult(
            mutation=mutation, status=PersistStatus.APPLIED, entry_id=mutation.entry_id
        )
