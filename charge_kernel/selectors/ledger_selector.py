"""
Module: charge_kernel.selectors.ledger_selector
Responsibility: Read access to ledger entries and EA links.
Architecture position: Kernel > Selectors.

LedgerSelector is the LedgerReader handed to plugins.  It returns ORM rows
because plugins and the verification engine need the persisted identity
(id, amount, description, reference, metadata); callers treat them as
read-only.
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from charge_kernel.db.types import round_money
from charge_kernel.db.upsert import find_by_key
from charge_kernel.models.entity_account import LedgerEntityAccount
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.selectors.base import BaseSelector


class LedgerSelector(BaseSelector[LedgerEntry]):
    """Queries over ledger_entries and ledger_ea."""

    def find_entry(self, plugin_id: str, idempotency_key: str) -> LedgerEntry | None:
        """The entry owning (plugin_id, idempotency_key), if any."""
        return find_by_key(
            self.session,
            LedgerEntry,
            {"plugin_id": plugin_id, "idempotency_key": idempotency_key},
        )

    def get_entry(self, entry_id: UUID) -> LedgerEntry | None:
        return self.session.get(LedgerEntry, entry_id)

    def entries(
        self,
        plugin_ids: Iterable[str] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[LedgerEntry]:
        """
        Entries produced by plugins, optionally filtered.

        Args:
            plugin_ids: Restrict to these plugins.  None or empty means all.
            date_from: Inclusive lower bound on transaction_date.
            date_to: Inclusive upper bound on transaction_date.
        """
        stmt = select(LedgerEntry)
        plugin_ids = list(plugin_ids or ())
        if plugin_ids:
            stmt = stmt.where(LedgerEntry.plugin_id.in_(plugin_ids))
        if date_from is not None:
            stmt = stmt.where(LedgerEntry.transaction_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(LedgerEntry.transaction_date <= date_to)
        stmt = stmt.order_by(LedgerEntry.transaction_date, LedgerEntry.created_at)
        return list(self.session.execute(stmt).scalars())

    def entries_for_ea(self, ea_id: UUID) -> list[LedgerEntry]:
        stmt = (
            select(LedgerEntry)
            .where(LedgerEntry.ea_id == ea_id)
            .order_by(LedgerEntry.transaction_date, LedgerEntry.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def count_entries_for_key(self, plugin_id: str, idempotency_key: str) -> int:
        stmt = select(func.count()).select_from(LedgerEntry).where(
            LedgerEntry.plugin_id == plugin_id,
            LedgerEntry.idempotency_key == idempotency_key,
        )
        return self.session.execute(stmt).scalar_one()

    def balance(self, ea_id: UUID) -> Decimal:
        """Signed sum of the EA's entries (positive = owed by the entity)."""
        stmt = select(func.coalesce(func.sum(LedgerEntry.amount), 0)).where(
            LedgerEntry.ea_id == ea_id
        )
        return round_money(self.session.execute(stmt).scalar_one())

    def find_ea(
        self,
        account_id: UUID,
        entity_type: str,
        entity_id: str,
    ) -> LedgerEntityAccount | None:
        return find_by_key(
            self.session,
            LedgerEntityAccount,
            {"account_id": account_id, "entity_type": entity_type, "entity_id": entity_id},
        )

    def eas_for_entity(self, entity_type: str, entity_id: str) -> list[LedgerEntityAccount]:
        stmt = select(LedgerEntityAccount).where(
            LedgerEntityAccount.entity_type == entity_type,
            LedgerEntityAccount.entity_id == entity_id,
        )
        return list(self.session.execute(stmt).scalars())
