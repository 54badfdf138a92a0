"""
EntityAccountResolver -- race-safe get-or-create of EA links.

Responsibility:
    Returns the unique LedgerEntityAccount binding an entity (worker,
    employer, contact, ...) to a ledger account, creating it on first use.

Architecture position:
    Kernel > Services.  Called by LedgerWriter for every CREATE mutation.

Invariants enforced:
    - At most one EA per (account_id, entity_type, entity_id): the unique
      constraint ``uq_ledger_ea_account_entity`` arbitrates concurrent
      creators through ``insert_or_find``.
    - Every concurrent caller gets the same row back.

Failure modes:
    - EntityAccountResolutionError: neither the insert nor the re-select
      produced a row.  This is an invariant violation and is never
      swallowed.
"""

from uuid import UUID

from charge_kernel.db.upsert import insert_or_find
from charge_kernel.exceptions import AccountNotFoundError, EntityAccountResolutionError
from charge_kernel.logging_config import get_logger
from charge_kernel.models.account import LedgerAccount
from charge_kernel.models.entity_account import LedgerEntityAccount
from charge_kernel.selectors.ledger_selector import LedgerSelector
from charge_kernel.services.base import BaseService

logger = get_logger("services.ea_resolver")

EA_CONFLICT_COLUMNS = ("account_id", "entity_type", "entity_id")


class EntityAccountResolver(BaseService[LedgerEntityAccount]):
    """
    Get-or-create for EA links.

    Contract:
        ``get_or_create`` is safe to call from many sessions at once; the
        losers of an insert race re-select the winner's row.
    """

    def __init__(self, session, actor_id: UUID):
        super().__init__(session, actor_id)
        self._selector = LedgerSelector(session)

    def get_or_create(
        self,
        entity_type: str,
        entity_id: str,
        account_id: UUID,
    ) -> LedgerEntityAccount:
        existing = self._selector.find_ea(account_id, entity_type, entity_id)
        if existing is not None:
            return existing

        if self.session.get(LedgerAccount, account_id) is None:
            raise AccountNotFoundError(str(account_id))

        with self.session.begin_nested():
            ea, created = insert_or_find(
                self.session,
                LedgerEntityAccount,
                {
                    "account_id": account_id,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "created_by_id": self.actor_id,
                },
                EA_CONFLICT_COLUMNS,
            )

        if ea is None:
            logger.error(
                "ea_resolution_failed",
                extra={
                    "account_id": str(account_id),
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                },
            )
            raise EntityAccountResolutionError(str(account_id), entity_type, entity_id)

        logger.info(
            "ea_created" if created else "ea_found_after_conflict",
            extra={
                "ea_id": str(ea.id),
                "account_id": str(account_id),
                "entity_type": entity_type,
                "entity_id": entity_id,
            },
        )
        return ea

    def get_account_for_entity(
        self,
        entity_type: str,
        entity_id: str,
        account_id: UUID,
    ) -> LedgerEntityAccount | None:
        """Read-only lookup; never creates."""
        return self._selector.find_ea(account_id, entity_type, entity_id)
