"""
Charge configuration schema.

Typed, frozen views of the YAML configuration files:

  RuntimeSettings   = process settings (database, logging, components)
  PluginConfigSeed  = declarative plugin configuration, applied to the
                      ``charge_plugin_configs`` table by PluginConfigService
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

# Actor recorded on rows written by the engine when none is configured
DEFAULT_SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings passed to ``charge_kernel.db.engine``."""

    url: str
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30


@dataclass(frozen=True)
class RuntimeSettings:
    """Everything a ChargeKernel needs that is not code."""

    database: DatabaseSettings
    log_level: str = "INFO"
    enabled_components: frozenset[str] = frozenset()
    system_actor_id: UUID = DEFAULT_SYSTEM_ACTOR_ID


@dataclass(frozen=True)
class PluginConfigSeed:
    """One plugin configuration, keyed by (plugin_id, scope, employer_id)."""

    plugin_id: str
    scope: str = "global"
    employer_id: str | None = None
    enabled: bool = True
    settings: dict[str, Any] = field(default_factory=dict)
