"""
VerificationService: per-entry verification and the integrity report.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from charge_kernel.domain.dtos import FindingKind
from charge_kernel.models.ledger_entry import LedgerEntry
from charge_kernel.plugins.hour_fixed import HourFixedPlugin
from tests.conftest import count_rows, make_hours, make_payment


def _only_entry(session, plugin_id="hour-fixed"):
    return session.execute(
        select(LedgerEntry).where(LedgerEntry.plugin_id == plugin_id)
    ).scalar_one()


@pytest.fixture
def hours_entry(session, execution_service, hour_fixed_config):
    execution_service.execute_for_trigger(make_hours("10"))
    return _only_entry(session)


class TestVerify:

    def test_untouched_entry_is_valid(self, verification_service, hours_entry, hour_fixed_config):
        result = verification_service.verify(hours_entry, hour_fixed_config)

        assert result.is_valid
        assert result.discrepancies == ()
        assert result.expected_amount == Decimal("50.00")
        assert result.expected_description == hours_entry.description

    def test_out_of_band_amount_change(self, session, verification_service, hours_entry, hour_fixed_config):
        hours_entry.amount = Decimal("55.00")
        session.flush()

        result = verification_service.verify(hours_entry, hour_fixed_config)

        assert not result.is_valid
        assert result.discrepancies == ("Amount mismatch: expected 50.00, found 55.00",)

    def test_verification_leaves_entry_unmodified(self, session, verification_service, hours_entry, hour_fixed_config):
        hours_entry.amount = Decimal("55.00")
        session.flush()
        updated_at = hours_entry.updated_at
        updated_by = hours_entry.updated_by_id

        verification_service.verify(hours_entry, hour_fixed_config)
        assert not session.dirty
        session.expire_all()

        entry = _only_entry(session)
        assert entry.amount == Decimal("55.00")
        assert entry.updated_at == updated_at
        assert entry.updated_by_id == updated_by
        assert count_rows(session, LedgerEntry) == 1

    def test_description_change(self, session, verification_service, hours_entry, hour_fixed_config):
        hours_entry.description = "Edited by hand"
        session.flush()

        result = verification_service.verify(hours_entry, hour_fixed_config)

        assert result.discrepancies == (
            'Description mismatch: expected "Hours charge: 10 hours @ $5/hr", found "Edited by hand"',
        )

    def test_rate_change_shows_as_drift(self, session, verification_service, config_service, hours_entry, hour_fixed_config, hour_fixed_settings):
        config_service.update(
            hour_fixed_config.id, settings=hour_fixed_settings(rates=(("2025-01-01", "6"),))
        )

        result = verification_service.verify(hours_entry, hour_fixed_config)

        assert "Amount mismatch: expected 60.00, found 50.00" in result.discrepancies

    def test_status_no_longer_charged(self, session, verification_service, config_service, hours_entry, hour_fixed_config, hour_fixed_settings):
        config_service.update(
            hour_fixed_config.id, settings=hour_fixed_settings(statuses=("status-other",))
        )

        result = verification_service.verify(hours_entry, hour_fixed_config)

        assert result.discrepancies == (
            "Entry exists but hours entry no longer qualifies - entry should be deleted",
        )
        assert result.expected_amount == Decimal("0.00")

    def test_invalid_configuration(self, session, verification_service, hours_entry, hour_fixed_config):
        hour_fixed_config.settings = {"rate_history": []}
        session.flush()

        result = verification_service.verify(hours_entry, hour_fixed_config)

        assert result.discrepancies[0].startswith("Invalid plugin configuration:")

    def test_plugin_error_becomes_result(self, verification_service, hours_entry, hour_fixed_config, monkeypatch):
        def broken(self, entry, settings):
            raise KeyError("worker_id")

        monkeypatch.setattr(HourFixedPlugin, "context_from_entry", broken)

        result = verification_service.verify(hours_entry, hour_fixed_config)

        assert not result.is_valid
        assert result.discrepancies == ("Verification error: 'worker_id'",)

    def test_unknown_plugin(self, session, verification_service, hours_entry, hour_fixed_config):
        hours_entry.plugin_id = "retired"
        session.flush()

        result = verification_service.verify(hours_entry, hour_fixed_config)

        assert result.discrepancies == ("Unknown charge plugin: retired",)


class TestIntegrityCheck:

    def test_clean_ledger(self, verification_service, hours_entry, captured_logs):
        assert verification_service.run_integrity_check() == []
        assert any(r["message"] == "integrity_check_completed" for r in captured_logs())

    def test_reports_discrepancy(self, session, verification_service, hours_entry):
        hours_entry.amount = Decimal("1.00")
        session.flush()

        (finding,) = verification_service.run_integrity_check()

        assert finding.kind == FindingKind.DISCREPANCY
        assert finding.entry_id == hours_entry.id
        assert finding.actual_amount == Decimal("1.00")
        assert finding.expected_amount == Decimal("50.00")
        assert finding.discrepancy == "Amount mismatch: expected 50.00, found 1.00"

    def test_joins_multiple_discrepancies(self, session, verification_service, hours_entry):
        hours_entry.amount = Decimal("1.00")
        hours_entry.description = "x"
        session.flush()

        (finding,) = verification_service.run_integrity_check()

        assert finding.discrepancy.count("; ") == 1

    def test_deleted_config(self, session, verification_service, config_service, hours_entry, hour_fixed_config):
        config_service.delete(hour_fixed_config.id)

        (finding,) = verification_service.run_integrity_check()

        assert finding.kind == FindingKind.NO_MATCHING_CONFIG
        assert finding.discrepancy == "No matching plugin configuration found for entry"

    def test_disabled_config(self, verification_service, config_service, hours_entry, hour_fixed_config):
        config_service.update(hour_fixed_config.id, enabled=False)

        (finding,) = verification_service.run_integrity_check()

        assert finding.kind == FindingKind.NO_MATCHING_CONFIG

    def test_unregistered_plugin(self, registry, verification_service, hours_entry):
        registry.unregister("hour-fixed")

        (finding,) = verification_service.run_integrity_check()

        assert finding.kind == FindingKind.UNKNOWN_PLUGIN

    def test_verification_error(self, verification_service, hours_entry, monkeypatch):
        def broken(self, entry, settings):
            raise ValueError("corrupt")

        monkeypatch.setattr(HourFixedPlugin, "context_from_entry", broken)

        (finding,) = verification_service.run_integrity_check()

        assert finding.kind == FindingKind.VERIFICATION_ERROR

    def test_filters(self, session, verification_service, execution_service, payment_config, account, payment_source, hours_entry):
        payment_source.save(make_payment(account.id))
        execution_service.execute_for_trigger(make_payment(account.id))
        payment_entry = _only_entry(session, "payment-simple-allocation")
        hours_entry.amount = Decimal("1.00")
        payment_entry.amount = Decimal("1.00")
        session.flush()

        assert len(verification_service.run_integrity_check()) == 2
        (finding,) = verification_service.run_integrity_check(plugin_ids=["hour-fixed"])
        assert finding.plugin_id == "hour-fixed"
        # hours entry is dated 2025-03-05, payment 2025-03-07
        (finding,) = verification_service.run_integrity_check(date_from=date(2025, 3, 6))
        assert finding.plugin_id == "payment-simple-allocation"
        (finding,) = verification_service.run_integrity_check(date_to=date(2025, 3, 5))
        assert finding.plugin_id == "hour-fixed"
