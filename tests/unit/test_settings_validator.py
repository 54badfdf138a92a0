"""
Unit tests for plugin settings validation.

Verifies:
- Required fields, types and constraints are enforced
- Nested rate_history items are validated with indexed paths
- Plugins surface schema errors through validate_settings
"""

import pytest

from charge_kernel.domain.settings_schema import (
    ACCOUNT_ID_FIELD,
    SettingsField,
    SettingsFieldType,
    SettingsSchema,
    rate_history_field,
)
from charge_kernel.domain.settings_validator import validate_settings
from charge_kernel.plugins.hour_fixed import HourFixedPlugin
from charge_kernel.plugins.payment_allocation import PaymentSimpleAllocationPlugin
from charge_kernel.plugins.steward_attendance import StewardAttendancePlugin

ACCOUNT = "6f1c1f5e-6a58-4c5e-9d53-0d8a4b9f0a11"

SCHEMA = SettingsSchema(
    plugin_id="test",
    fields=(ACCOUNT_ID_FIELD, rate_history_field(positive=True)),
)


def _codes(result):
    return [e.code for e in result.errors]


class TestValidateSettings:

    def test_valid(self):
        result = validate_settings(
            {"account_id": ACCOUNT, "rate_history": [{"effective_date": "2025-01-01", "rate": "5"}]},
            SCHEMA,
        )
        assert result.is_valid
        assert bool(result)

    def test_not_an_object(self):
        result = validate_settings(["nope"], SCHEMA)
        assert _codes(result) == ["INVALID_TYPE"]

    def test_missing_required(self):
        result = validate_settings({}, SCHEMA)
        assert _codes(result) == ["MISSING_REQUIRED_FIELD", "MISSING_REQUIRED_FIELD"]
        assert {e.field for e in result.errors} == {"account_id", "rate_history"}

    def test_bad_uuid(self):
        result = validate_settings(
            {"account_id": "acct-1", "rate_history": [{"effective_date": "2025-01-01", "rate": "5"}]},
            SCHEMA,
        )
        assert _codes(result) == ["INVALID_UUID_FORMAT"]

    def test_empty_rate_history(self):
        result = validate_settings({"account_id": ACCOUNT, "rate_history": []}, SCHEMA)
        assert _codes(result) == ["TOO_FEW_ITEMS"]

    def test_rate_history_item_paths(self):
        result = validate_settings(
            {
                "account_id": ACCOUNT,
                "rate_history": [
                    {"effective_date": "2025-01-01", "rate": "5"},
                    {"effective_date": "01/02/2025", "rate": "0"},
                ],
            },
            SCHEMA,
        )
        assert _codes(result) == ["INVALID_DATE_FORMAT", "VALUE_TOO_SMALL"]
        assert result.errors[0].field == "rate_history[1].effective_date"
        assert result.errors[1].field == "rate_history[1].rate"

    def test_rate_history_item_must_be_object(self):
        result = validate_settings({"account_id": ACCOUNT, "rate_history": ["5"]}, SCHEMA)
        assert _codes(result) == ["INVALID_TYPE"]

    def test_non_numeric_rate(self):
        result = validate_settings(
            {"account_id": ACCOUNT, "rate_history": [{"effective_date": "2025-01-01", "rate": "abc"}]},
            SCHEMA,
        )
        assert _codes(result) == ["INVALID_TYPE"]

    def test_unknown_fields_rejected_when_closed(self):
        closed = SettingsSchema(plugin_id="test", fields=(ACCOUNT_ID_FIELD,), allow_extra=False)
        result = validate_settings({"account_id": ACCOUNT, "colour": "red"}, closed)
        assert _codes(result) == ["UNKNOWN_FIELD"]

    def test_messages(self):
        result = validate_settings({}, SCHEMA)
        assert "Required field missing: account_id" in result.messages


class TestSettingsField:

    def test_array_requires_item_type(self):
        with pytest.raises(ValueError):
            SettingsField(name="ids", field_type=SettingsFieldType.ARRAY)


class TestPluginSettings:

    def test_hour_fixed_status_filter_must_be_strings(self):
        result = HourFixedPlugin().validate_settings(
            {
                "account_id": ACCOUNT,
                "employment_status_ids": [1, 2],
                "rate_history": [{"effective_date": "2025-01-01", "rate": "5"}],
            }
        )
        assert not result
        assert _codes(result) == ["INVALID_TYPE", "INVALID_TYPE"]

    def test_hour_fixed_status_filter_is_optional(self):
        result = HourFixedPlugin().validate_settings(
            {"account_id": ACCOUNT, "rate_history": [{"effective_date": "2025-01-01", "rate": "5"}]}
        )
        assert result

    def test_payment_requires_account_ids(self):
        result = PaymentSimpleAllocationPlugin().validate_settings({"account_ids": []})
        assert _codes(result) == ["TOO_FEW_ITEMS"]

    def test_steward_amount_must_be_positive(self):
        result = StewardAttendancePlugin().validate_settings(
            {
                "account_id": ACCOUNT,
                "amount": "0",
                "event_type_ids": ["meeting"],
                "attended_statuses": ["attended"],
            }
        )
        assert _codes(result) == ["VALUE_TOO_SMALL"]
