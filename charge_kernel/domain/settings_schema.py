"""
Settings schema data structures.

Provides immutable, hashable schema definitions for plugin configuration
settings blobs.  Each plugin declares one SettingsSchema in its metadata;
``settings_validator.validate_settings`` checks a raw blob against it.
This is part of the functional core - no I/O, no ORM.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class SettingsFieldType(str, Enum):
    """Supported field types in settings schemas."""

    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"  # JSON number or numeric string
    BOOLEAN = "boolean"
    DATE = "date"  # ISO 8601 date (YYYY-MM-DD)
    UUID = "uuid"
    OBJECT = "object"
    ARRAY = "array"


@dataclass(frozen=True)
class SettingsField:
    """
    Schema definition for a single settings field.

    Immutable and hashable so schemas can live on frozen plugin metadata.
    """

    name: str
    field_type: SettingsFieldType
    required: bool = True
    nullable: bool = False
    description: str | None = None

    # For OBJECT type
    nested_fields: tuple["SettingsField", ...] | None = None

    # For ARRAY type
    item_type: SettingsFieldType | None = None
    item_schema: tuple["SettingsField", ...] | None = None
    min_items: int | None = None

    # Numeric constraints
    min_value: Decimal | int | None = None
    max_value: Decimal | int | None = None
    exclusive_min: bool = False

    # String constraints
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None

    allowed_values: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if self.field_type == SettingsFieldType.OBJECT and not self.nested_fields:
            raise ValueError(
                f"Field '{self.name}' of type OBJECT must have nested_fields"
            )

        if self.field_type == SettingsFieldType.ARRAY:
            if not self.item_type and not self.item_schema:
                raise ValueError(
                    f"Field '{self.name}' of type ARRAY must have item_type or item_schema"
                )
            if self.item_type == SettingsFieldType.OBJECT and not self.item_schema:
                raise ValueError(
                    f"Field '{self.name}' with item_type OBJECT must have item_schema"
                )


@dataclass(frozen=True)
class SettingsSchema:
    """Complete settings schema for one plugin."""

    plugin_id: str
    fields: tuple[SettingsField, ...]
    allow_extra: bool = True

    def __post_init__(self) -> None:
        if not self.plugin_id:
            raise ValueError("plugin_id is required")
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate field names in settings schema for {self.plugin_id}")

    @property
    def field_names(self) -> frozenset[str]:
        return frozenset(f.name for f in self.fields)

    def get_field(self, name: str) -> SettingsField | None:
        return next((f for f in self.fields if f.name == name), None)


# Reusable field definitions

RATE_HISTORY_ITEM = (
    SettingsField(
        name="effective_date",
        field_type=SettingsFieldType.DATE,
        description="First day the rate applies",
    ),
    SettingsField(
        name="rate",
        field_type=SettingsFieldType.DECIMAL,
        min_value=0,
    ),
)


def rate_history_field(*, positive: bool = False) -> SettingsField:
    """A non-empty ``rate_history`` array of {effective_date, rate} objects."""
    item = RATE_HISTORY_ITEM
    if positive:
        item = (
            RATE_HISTORY_ITEM[0],
            SettingsField(
                name="rate",
                field_type=SettingsFieldType.DECIMAL,
                min_value=0,
                exclusive_min=True,
            ),
        )
    return SettingsField(
        name="rate_history",
        field_type=SettingsFieldType.ARRAY,
        item_schema=item,
        min_items=1,
        description="Effective-dated rates",
    )


ACCOUNT_ID_FIELD = SettingsField(
    name="account_id",
    field_type=SettingsFieldType.UUID,
    description="Ledger account the entries are booked to",
)
