"""
Module: charge_kernel.models.plugin_config
Responsibility: ORM persistence for charge plugin configurations -- a named
    settings blob scoped globally or to one employer.
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - employer_id is set iff scope == "employer" (PluginConfigService).
    - One record per (plugin_id, scope, employer_id).  The table constraint
      covers employer rows; global rows have a NULL employer_id, which SQL
      treats as distinct, so PluginConfigService also checks before insert.
    - Read-only to the execution engine.
"""

from enum import Enum
from typing import Any

from sqlalchemy import JSON, Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from charge_kernel.db.base import TrackedBase


class ConfigScope(str, Enum):
    """Where a plugin configuration applies."""

    GLOBAL = "global"
    EMPLOYER = "employer"


class PluginConfig(TrackedBase):
    """
    Settings for one plugin, globally or for a single employer.

    An enabled employer-scoped config overrides the global one for that
    employer (see ConfigResolver).
    """

    __tablename__ = "charge_plugin_configs"

    __table_args__ = (
        UniqueConstraint(
            "plugin_id", "scope", "employer_id",
            name="uq_charge_plugin_config_scope",
        ),
        Index("idx_charge_plugin_config_plugin", "plugin_id", "enabled"),
    )

    plugin_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    scope: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ConfigScope.GLOBAL.value,
    )

    employer_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )

    settings: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    def __repr__(self) -> str:
        target = f" employer={self.employer_id}" if self.employer_id else ""
        return f"<PluginConfig {self.plugin_id} {self.scope}{target} enabled={self.enabled}>"
