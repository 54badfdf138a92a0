"""SettingsValidator -- Pure validation of plugin settings blobs."""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from charge_kernel.domain.dtos import ValidationError, ValidationResult
from charge_kernel.domain.settings_schema import (
    SettingsField,
    SettingsFieldType,
    SettingsSchema,
)
from charge_kernel.logging_config import get_logger

logger = get_logger("domain.settings_validator")


def validate_settings(raw: Any, schema: SettingsSchema) -> ValidationResult:
    """Validate a settings blob against a plugin's schema."""
    if not isinstance(raw, dict):
        return ValidationResult.failure(
            ValidationError(
                code="INVALID_TYPE",
                message=f"Settings must be an object, got {type(raw).__name__}",
            )
        )

    errors: list[ValidationError] = []
    for settings_field in schema.fields:
        errors.extend(
            validate_field(raw.get(settings_field.name), settings_field, settings_field.name)
        )

    if not schema.allow_extra:
        for key in sorted(set(raw) - schema.field_names):
            errors.append(
                ValidationError(
                    code="UNKNOWN_FIELD",
                    message=f"Unknown settings field: {key}",
                    field=key,
                )
            )

    if errors:
        logger.debug(
            "settings_validation_failed",
            extra={
                "plugin_id": schema.plugin_id,
                "error_count": len(errors),
                "error_codes": [e.code for e in errors],
            },
        )
        return ValidationResult.failure(*errors)
    return ValidationResult.success()


def validate_field(
    value: Any,
    settings_field: SettingsField,
    path: str,
) -> list[ValidationError]:
    """Validate a single field value against its schema."""
    field_errors: list[ValidationError] = []

    if value is None:
        if settings_field.required and not settings_field.nullable:
            field_errors.append(
                ValidationError(
                    code="MISSING_REQUIRED_FIELD",
                    message=f"Required field missing: {path}",
                    field=path,
                )
            )
        return field_errors

    type_error = validate_field_type(value, settings_field.field_type, path)
    if type_error:
        field_errors.append(type_error)
        return field_errors

    field_errors.extend(validate_field_constraints(value, settings_field, path))

    if settings_field.field_type == SettingsFieldType.OBJECT and settings_field.nested_fields:
        for nested in settings_field.nested_fields:
            field_errors.extend(
                validate_field(value.get(nested.name), nested, f"{path}.{nested.name}")
            )

    if settings_field.field_type == SettingsFieldType.ARRAY:
        for i, item in enumerate(value):
            item_path = f"{path}[{i}]"
            if settings_field.item_schema:
                if not isinstance(item, dict):
                    field_errors.append(
                        ValidationError(
                            code="INVALID_TYPE",
                            message=f"Expected object at {item_path}, got {type(item).__name__}",
                            field=item_path,
                        )
                    )
                    continue
                for item_field in settings_field.item_schema:
                    field_errors.extend(
                        validate_field(
                            item.get(item_field.name),
                            item_field,
                            f"{item_path}.{item_field.name}",
                        )
                    )
            elif settings_field.item_type:
                item_error = validate_field_type(item, settings_field.item_type, item_path)
                if item_error:
                    field_errors.append(item_error)

    return field_errors


def _type_error(expected: str, value: Any, path: str) -> ValidationError:
    return ValidationError(
        code="INVALID_TYPE",
        message=f"Expected {expected} at {path}, got {type(value).__name__}",
        field=path,
    )


def validate_field_type(
    value: Any,
    field_type: SettingsFieldType,
    path: str,
) -> ValidationError | None:
    """Validate that a value matches the expected type."""
    if field_type == SettingsFieldType.STRING:
        if not isinstance(value, str):
            return _type_error("string", value, path)

    elif field_type == SettingsFieldType.INTEGER:
        if not isinstance(value, int) or isinstance(value, bool):
            return _type_error("integer", value, path)

    elif field_type == SettingsFieldType.DECIMAL:
        if isinstance(value, bool):
            return _type_error("decimal", value, path)
        try:
            if not Decimal(str(value)).is_finite():
                return _type_error("finite decimal", value, path)
        except (InvalidOperation, ValueError, TypeError):
            return _type_error("decimal", value, path)

    elif field_type == SettingsFieldType.BOOLEAN:
        if not isinstance(value, bool):
            return _type_error("boolean", value, path)

    elif field_type == SettingsFieldType.DATE:
        if isinstance(value, str):
            try:
                datetime.strptime(value, "%Y-%m-%d")
            except ValueError:
                return ValidationError(
                    code="INVALID_DATE_FORMAT",
                    message=f"Invalid date format at {path}: expected YYYY-MM-DD",
                    field=path,
                )
        elif not isinstance(value, date) or isinstance(value, datetime):
            return _type_error("date", value, path)

    elif field_type == SettingsFieldType.UUID:
        if isinstance(value, str):
            try:
                UUID(value)
            except ValueError:
                return ValidationError(
                    code="INVALID_UUID_FORMAT",
                    message=f"Invalid UUID format at {path}",
                    field=path,
                )
        elif not isinstance(value, UUID):
            return _type_error("UUID", value, path)

    elif field_type == SettingsFieldType.OBJECT:
        if not isinstance(value, dict):
            return _type_error("object", value, path)

    elif field_type == SettingsFieldType.ARRAY:
        if not isinstance(value, list):
            return _type_error("array", value, path)

    return None


def validate_field_constraints(
    value: Any,
    settings_field: SettingsField,
    path: str,
) -> list[ValidationError]:
    """Validate min/max, length, pattern, item count and allowed values."""
    errors: list[ValidationError] = []

    if settings_field.field_type in (SettingsFieldType.INTEGER, SettingsFieldType.DECIMAL):
        numeric_value = Decimal(str(value))

        if settings_field.min_value is not None:
            min_val = Decimal(str(settings_field.min_value))
            too_small = (
                numeric_value <= min_val
                if settings_field.exclusive_min
                else numeric_value < min_val
            )
            if too_small:
                bound = "greater than" if settings_field.exclusive_min else "at least"
                errors.append(
                    ValidationError(
                        code="VALUE_TOO_SMALL",
                        message=f"Value at {path} is {value}, must be {bound} {settings_field.min_value}",
                        field=path,
                    )
                )

        if settings_field.max_value is not None:
            if numeric_value > Decimal(str(settings_field.max_value)):
                errors.append(
                    ValidationError(
                        code="VALUE_TOO_LARGE",
                        message=f"Value at {path} is {value}, maximum is {settings_field.max_value}",
                        field=path,
                    )
                )

    if settings_field.field_type == SettingsFieldType.STRING:
        if settings_field.min_length is not None and len(value) < settings_field.min_length:
            errors.append(
                ValidationError(
                    code="STRING_TOO_SHORT",
                    message=f"String at {path} is {len(value)} chars, minimum is {settings_field.min_length}",
                    field=path,
                )
            )
        if settings_field.max_length is not None and len(value) > settings_field.max_length:
            errors.append(
                ValidationError(
                    code="STRING_TOO_LONG",
                    message=f"String at {path} is {len(value)} chars, maximum is {settings_field.max_length}",
                    field=path,
                )
            )
        if settings_field.pattern is not None and not re.match(settings_field.pattern, value):
            errors.append(
                ValidationError(
                    code="PATTERN_MISMATCH",
                    message=f"String at {path} does not match pattern: {settings_field.pattern}",
                    field=path,
                )
            )

    if settings_field.field_type == SettingsFieldType.ARRAY:
        if settings_field.min_items is not None and len(value) < settings_field.min_items:
            errors.append(
                ValidationError(
                    code="TOO_FEW_ITEMS",
                    message=f"Array at {path} has {len(value)} items, minimum is {settings_field.min_items}",
                    field=path,
                )
            )

    if settings_field.allowed_values is not None and value not in settings_field.allowed_values:
        errors.append(
            ValidationError(
                code="VALUE_NOT_ALLOWED",
                message=f"Value '{value}' at {path} not in allowed values: {sorted(settings_field.allowed_values)}",
                field=path,
            )
        )

    return errors
