"""
Module: charge_kernel.models.account
Responsibility: ORM persistence for ledger accounts (dues, benefits, steward
    points, ...).  An account is the financial bucket; the per-entity
    balance lives on the EA links that reference it.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - currency is an ISO 4217 code (validated by AccountService).
    - An account is never deleted while an EA link references it
      (FK without cascade plus AccountService guard).
"""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from charge_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from charge_kernel.models.entity_account import LedgerEntityAccount


class LedgerAccount(TrackedBase):
    """
    A ledger account administered by staff.

    Guarantees:
        - name is non-null.
        - is_active defaults to True.
    """

    __tablename__ = "ledger_accounts"

    __table_args__ = (
        Index("idx_ledger_account_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(4000),
        nullable=True,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    entity_links: Mapped[list["LedgerEntityAccount"]] = relationship(
        back_populates="account",
        lazy="select",
    )

    def __repr__(self) -> str:
        return f"<LedgerAccount {self.name} ({self.currency})>"
