"""
Module: charge_kernel.models.ledger_entry
Responsibility: ORM persistence for ledger entries produced by charge plugins.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - (plugin_id, idempotency_key) is globally unique
      (uq_ledger_entry_plugin_key).  This is the backstop that prevents
      duplicate entries when the same logical event is triggered repeatedly
      or concurrently.
    - idempotency_key = "{plugin_config_id}:{business_key}".
    - amount carries two fraction digits; the sign encodes direction
      (positive = owed by the entity, negative = credited to it).
    - Rows are created, updated and deleted only by LedgerWriter on behalf
      of a plugin.

Failure modes:
    - IntegrityError on duplicate key insert; absorbed by insert_or_find and
      reported as a duplicate, not a failure.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from charge_kernel.db.base import TrackedBase, UUIDString
from charge_kernel.db.types import MONEY_COLUMN

if TYPE_CHECKING:
    from charge_kernel.models.entity_account import LedgerEntityAccount


class LedgerEntry(TrackedBase):
    """
    A signed amount on an EA, owned by exactly one plugin execution.

    Guarantees:
        - plugin_id and idempotency_key are non-null and unique together.
        - plugin_config_id records which configuration produced the row,
          so the verification engine can recompute it.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        UniqueConstraint(
            "plugin_id", "idempotency_key",
            name="uq_ledger_entry_plugin_key",
        ),
        Index("idx_ledger_entry_ea", "ea_id"),
        Index("idx_ledger_entry_reference", "reference_type", "reference_id"),
        Index("idx_ledger_entry_date", "transaction_date"),
    )

    plugin_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    plugin_config_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    idempotency_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    ea_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_ea.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(
        MONEY_COLUMN,
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(4000),
        nullable=False,
    )

    reference_type: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    reference_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    transaction_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    data: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
    )

    ea: Mapped["LedgerEntityAccount"] = relationship()

    def __repr__(self) -> str:
        return f"<LedgerEntry {self.plugin_id}:{self.idempotency_key} {self.amount}>"
