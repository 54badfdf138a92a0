"""
Four-way reconciliation shared by all charge plugins.

Verifies:
- create / no-op / update / delete decisions against the persisted entry
- idempotency keys are "{config_id}:{business_key}"
- notifications mirror the mutations
- invalid settings and foreign triggers fail without raising
"""

from decimal import Decimal

from charge_kernel.domain.dtos import MutationAction, NotificationKind
from charge_kernel.plugins.hour_fixed import HourFixedPlugin
from tests.conftest import EMPLOYER_ID, STATUS_ACTIVE, WORKER_ID, make_hours, make_wmb
from tests.plugins.conftest import ACCOUNT_ID

SETTINGS = {
    "account_id": ACCOUNT_ID,
    "employment_status_ids": [STATUS_ACTIVE],
    "rate_history": [{"effective_date": "2025-01-01", "rate": "5"}],
}


class TestFourWayDiff:

    def test_create_when_nothing_exists(self, make_config, dict_ledger):
        plugin = HourFixedPlugin()
        config = make_config("hour-fixed", SETTINGS)

        result = plugin.execute(make_hours("10"), config, dict_ledger)

        assert result.success
        (mutation,) = result.mutations
        assert mutation.action == MutationAction.CREATE
        assert mutation.idempotency_key == f"{config.id}:{WORKER_ID}:{EMPLOYER_ID}:2025-03-05"
        assert mutation.amount == Decimal("50.00")
        (notice,) = result.notifications
        assert notice.kind == NotificationKind.CREATED
        assert notice.description == "Hour - Fixed Rate: 50.00"

    def test_noop_when_matching(self, make_config, dict_ledger, apply_to):
        plugin = HourFixedPlugin()
        config = make_config("hour-fixed", SETTINGS)
        apply_to(plugin.execute(make_hours("10"), config, dict_ledger))

        result = plugin.execute(make_hours("10"), config, dict_ledger)

        assert result.success
        assert result.mutations == ()
        assert result.notifications == ()
        assert result.message == "Ledger entry already matches expected state"

    def test_update_when_amount_changes(self, make_config, dict_ledger, apply_to):
        plugin = HourFixedPlugin()
        config = make_config("hour-fixed", SETTINGS)
        apply_to(plugin.execute(make_hours("10"), config, dict_ledger))

        result = plugin.execute(make_hours("12"), config, dict_ledger)

        (mutation,) = result.mutations
        assert mutation.action == MutationAction.UPDATE
        assert mutation.previous_amount == Decimal("50.00")
        assert mutation.amount == Decimal("60.00")
        assert "amount, description changed" in result.message
        (notice,) = result.notifications
        assert notice.description == "Hour - Fixed Rate updated: 50.00 -> 60.00"

    def test_update_when_only_reference_changes(self, make_config, dict_ledger, apply_to):
        plugin = HourFixedPlugin()
        config = make_config("hour-fixed", SETTINGS)
        apply_to(plugin.execute(make_hours("10"), config, dict_ledger))

        result = plugin.execute(make_hours("10", hours_id="h-77"), config, dict_ledger)

        (mutation,) = result.mutations
        assert mutation.action == MutationAction.UPDATE
        assert mutation.expected.reference_id == "h-77"
        assert result.notifications[0].description == "Hour - Fixed Rate entry updated"

    def test_delete_when_no_longer_qualifying(self, make_config, dict_ledger, apply_to):
        plugin = HourFixedPlugin()
        config = make_config("hour-fixed", SETTINGS)
        apply_to(plugin.execute(make_hours("10"), config, dict_ledger))

        result = plugin.execute(make_hours("0"), config, dict_ledger)

        (mutation,) = result.mutations
        assert mutation.action == MutationAction.DELETE
        assert mutation.previous_amount == Decimal("50.00")
        assert mutation.expected is None
        assert result.notifications[0].kind == NotificationKind.DELETED
        assert "hours entry no longer qualifies" in result.message

    def test_nothing_expected_nothing_exists(self, make_config, dict_ledger):
        result = HourFixedPlugin().execute(
            make_hours("0"), make_config("hour-fixed", SETTINGS), dict_ledger
        )
        assert result.success
        assert result.mutations == ()

    def test_keys_are_scoped_by_config(self, make_config, dict_ledger):
        plugin = HourFixedPlugin()
        first = plugin.execute(make_hours(), make_config("hour-fixed", SETTINGS), dict_ledger)
        second = plugin.execute(make_hours(), make_config("hour-fixed", SETTINGS), dict_ledger)
        assert first.mutations[0].idempotency_key != second.mutations[0].idempotency_key


class TestExecuteGuards:

    def test_invalid_settings(self, make_config, dict_ledger):
        result = HourFixedPlugin().execute(
            make_hours(), make_config("hour-fixed", {"rate_history": []}), dict_ledger
        )
        assert not result.success
        assert result.error_code == "INVALID_PLUGIN_SETTINGS"
        assert result.mutations == ()

    def test_foreign_trigger(self, make_config, dict_ledger):
        result = HourFixedPlugin().execute(
            make_wmb(), make_config("hour-fixed", SETTINGS), dict_ledger
        )
        assert not result.success
        assert result.error_code == "UNSUPPORTED_TRIGGER"
