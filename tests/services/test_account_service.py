"""AccountService: creation, currency validation, deletion protection."""

from uuid import uuid4

import pytest

from charge_kernel.exceptions import (
    AccountNotFoundError,
    AccountReferencedError,
    InvalidCurrencyError,
)
from charge_kernel.models.account import LedgerAccount
from charge_kernel.services.account_service import AccountService
from charge_kernel.services.ea_resolver import EntityAccountResolver
from tests.conftest import EMPLOYER_ID, count_rows


@pytest.fixture
def accounts(session, test_actor_id):
    return AccountService(session, test_actor_id)


class TestAccountService:

    def test_create(self, session, accounts, test_actor_id):
        account = accounts.create("  Dues  ", currency="usd", description="Monthly dues")

        assert account.name == "Dues"
        assert account.currency == "USD"
        assert account.is_active
        assert account.created_by_id == test_actor_id
        assert count_rows(session, LedgerAccount) == 1

    def test_create_with_explicit_id(self, accounts):
        account_id = uuid4()
        assert accounts.create("Dues", account_id=account_id).id == account_id

    def test_blank_name(self, accounts):
        with pytest.raises(ValueError):
            accounts.create("   ")

    def test_invalid_currency(self, accounts):
        with pytest.raises(InvalidCurrencyError):
            accounts.create("Dues", currency="DOLLARS")

    def test_get_unknown(self, accounts):
        with pytest.raises(AccountNotFoundError):
            accounts.get(uuid4())

    def test_deactivate(self, accounts, account):
        assert not accounts.deactivate(account.id).is_active

    def test_delete_unreferenced(self, session, accounts, account):
        accounts.delete(account.id)
        assert count_rows(session, LedgerAccount) == 0

    def test_delete_referenced(self, session, accounts, account, test_actor_id):
        EntityAccountResolver(session, test_actor_id).get_or_create("employer", EMPLOYER_ID, account.id)

        with pytest.raises(AccountReferencedError) as exc_info:
            accounts.delete(account.id)
        assert exc_info.value.code == "ACCOUNT_REFERENCED"
