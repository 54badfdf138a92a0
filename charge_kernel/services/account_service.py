"""
AccountService -- ledger account lifecycle.

Responsibility:
    Creates, deactivates and deletes ledger accounts.  Accounts are the
    targets plugin settings point at (``account_id``); EA links hang off
    them.

Architecture position:
    Kernel > Services.

Invariants enforced:
    - Currency is a valid ISO 4217 code.
    - An account referenced by any EA link is never deleted; deactivate it
      instead.

Failure modes:
    - InvalidCurrencyError, AccountNotFoundError, AccountReferencedError.
"""

from uuid import UUID

from sqlalchemy import func, select

from charge_kernel.db.types import validate_currency
from charge_kernel.exceptions import AccountNotFoundError, AccountReferencedError
from charge_kernel.logging_config import get_logger
from charge_kernel.models.account import LedgerAccount
from charge_kernel.models.entity_account import LedgerEntityAccount
from charge_kernel.services.base import BaseService

logger = get_logger("services.accounts")


class AccountService(BaseService[LedgerAccount]):
    """Administrative operations on LedgerAccount rows."""

    def create(
        self,
        name: str,
        currency: str = "USD",
        description: str | None = None,
        account_id: UUID | None = None,
    ) -> LedgerAccount:
        if not name or not name.strip():
            raise ValueError("Account name is required")
        account = LedgerAccount(
            name=name.strip(),
            currency=validate_currency(currency),
            description=description,
            is_active=True,
            created_by_id=self.actor_id,
        )
        if account_id is not None:
            account.id = account_id
        self.session.add(account)
        self.session.flush()
        logger.info(
            "account_created",
            extra={"account_id": str(account.id), "currency": account.currency},
        )
        return account

    def get(self, account_id: UUID) -> LedgerAccount:
        account = self.session.get(LedgerAccount, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def deactivate(self, account_id: UUID) -> LedgerAccount:
        account = self.get(account_id)
        account.is_active = False
        account.updated_by_id = self.actor_id
        self.session.flush()
        logger.info("account_deactivated", extra={"account_id": str(account_id)})
        return account

    def delete(self, account_id: UUID) -> None:
        account = self.get(account_id)
        link_count = self.session.execute(
            select(func.count())
            .select_from(LedgerEntityAccount)
            .where(LedgerEntityAccount.account_id == account_id)
        ).scalar_one()
        if link_count:
            raise AccountReferencedError(str(account_id), link_count)
        self.session.delete(account)
        self.session.flush()
        logger.info("account_deleted", extra={"account_id": str(account_id)})
