"""
Module: charge_kernel.models.entity_account
Responsibility: ORM persistence for the Entity-Account (EA) link -- the unique
    pairing of one LedgerAccount with one business entity (worker, employer,
    contact, ...).  Ledger entries hang off an EA, never off an account
    directly.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - At most one EA per (account_id, entity_type, entity_id)
      (uq_ledger_ea_account_entity).  EntityAccountResolver relies on this
      constraint to stay race-free.
    - EAs are created lazily on the first charge and never deleted while
      ledger entries reference them.

Failure modes:
    - IntegrityError on duplicate (account, entity) insert; absorbed by
      insert_or_find.
"""

from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from charge_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from charge_kernel.models.account import LedgerAccount


class LedgerEntityAccount(TrackedBase):
    """
    Link between a ledger account and a business entity.

    Contract:
        (account_id, entity_type, entity_id) identifies the link.  Only the
        ``data`` metadata may change after creation.
    """

    __tablename__ = "ledger_ea"

    __table_args__ = (
        UniqueConstraint(
            "account_id", "entity_type", "entity_id",
            name="uq_ledger_ea_account_entity",
        ),
        Index("idx_ledger_ea_entity", "entity_type", "entity_id"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("ledger_accounts.id"),
        nullable=False,
    )

    # "worker", "employer", "contact", ...
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    entity_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    data: Mapped[dict[str, Any] | None] = mapped_column(
        JSON,
        nullable=True,
    )

    account: Mapped["LedgerAccount"] = relationship(
        back_populates="entity_links",
    )

    def __repr__(self) -> str:
        return f"<LedgerEntityAccount {self.entity_type}:{self.entity_id} -> {self.account_id}>"
