"""
Plugin configuration resolution and administration.

Responsibility:
    ConfigResolver picks the effective configuration for a plugin and an
    optional employer.  PluginConfigService is the administrative write
    path: create, update, delete and seed configurations.

Architecture position:
    Kernel > Services.  ConfigResolver is read-only; PluginConfigService
    flushes but never commits.

Invariants enforced:
    - Employer-scoped config wins over global config; disabled configs are
      never effective.
    - Scope rules: ``employer`` scope requires an employer id, ``global``
      scope forbids one.
    - At most one config per (plugin_id, scope, employer_id).  Checked here
      because SQL unique constraints treat NULL employer ids as distinct.
    - Settings are validated against the plugin's schema before they are
      stored.

Failure modes:
    - PluginNotFoundError, PluginConfigScopeError,
      InvalidPluginSettingsError, DuplicatePluginConfigError,
      PluginConfigNotFoundError.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from charge_kernel.exceptions import (
    DuplicatePluginConfigError,
    InvalidPluginSettingsError,
    PluginConfigNotFoundError,
    PluginConfigScopeError,
    PluginNotFoundError,
)
from charge_kernel.logging_config import get_logger
from charge_kernel.models.plugin_config import ConfigScope, PluginConfig
from charge_kernel.plugins.registry import PluginRegistry
from charge_kernel.selectors.config_selector import PluginConfigSelector
from charge_kernel.services.base import BaseService

logger = get_logger("services.config")


class ConfigResolver:
    """Effective-configuration lookup.  Read-only."""

    def __init__(self, session: Session):
        self._selector = PluginConfigSelector(session)

    def resolve(self, plugin_id: str, employer_id: str | None = None) -> PluginConfig | None:
        """
        Employer-scoped config if present and enabled, else the enabled
        global config, else None.
        """
        if employer_id:
            employer_config = self._selector.find(plugin_id, ConfigScope.EMPLOYER, employer_id)
            if employer_config is not None and employer_config.enabled:
                return employer_config
        global_config = self._selector.find(plugin_id, ConfigScope.GLOBAL)
        if global_config is not None and global_config.enabled:
            return global_config
        return None


class ConfigSeed(Protocol):
    """Shape of a declarative plugin configuration (see charge_config)."""

    plugin_id: str
    scope: str
    employer_id: str | None
    enabled: bool
    settings: dict[str, Any]


@dataclass(frozen=True)
class SeedReport:
    created: tuple[UUID, ...] = ()
    updated: tuple[UUID, ...] = ()
    skipped: tuple[str, ...] = ()


class PluginConfigService(BaseService[PluginConfig]):
    """Administrative operations on plugin configurations."""

    def __init__(self, session: Session, actor_id: UUID, registry: PluginRegistry):
        super().__init__(session, actor_id)
        self._registry = registry
        self._selector = PluginConfigSelector(session)

    def get(self, config_id: UUID) -> PluginConfig:
        config = self._selector.get(config_id)
        if config is None:
            raise PluginConfigNotFoundError(str(config_id))
        return config

    def list_configs(self, plugin_id: str | None = None) -> list[PluginConfig]:
        return self._selector.list_configs(plugin_id)

    def create(
        self,
        plugin_id: str,
        settings: dict[str, Any],
        scope: ConfigScope | str | None = None,
        employer_id: str | None = None,
        enabled: bool = True,
    ) -> PluginConfig:
        plugin = self._registry.require(plugin_id)
        scope = self._check_scope(scope or plugin.metadata.default_scope, employer_id)
        self._check_settings(plugin_id, settings)

        if self._selector.find(plugin_id, scope, employer_id) is not None:
            raise DuplicatePluginConfigError(plugin_id, scope.value, employer_id)

        config = PluginConfig(
            plugin_id=plugin_id,
            enabled=enabled,
            scope=scope.value,
            employer_id=employer_id,
            settings=dict(settings),
            created_by_id=self.actor_id,
        )
        self.session.add(config)
        self.session.flush()
        logger.info(
            "plugin_config_created",
            extra={
                "config_id": str(config.id),
                "plugin_id": plugin_id,
                "scope": scope.value,
                "employer_id": employer_id,
            },
        )
        return config

    def update(
        self,
        config_id: UUID,
        enabled: bool | None = None,
        settings: dict[str, Any] | None = None,
    ) -> PluginConfig:
        config = self.get(config_id)
        if settings is not None:
            self._check_settings(config.plugin_id, settings)
            config.settings = dict(settings)
        if enabled is not None:
            config.enabled = enabled
        config.updated_by_id = self.actor_id
        self.session.flush()
        logger.info(
            "plugin_config_updated",
            extra={"config_id": str(config.id), "plugin_id": config.plugin_id},
        )
        return config

    def delete(self, config_id: UUID) -> None:
        config = self.get(config_id)
        self.session.delete(config)
        self.session.flush()
        logger.info(
            "plugin_config_deleted",
            extra={"config_id": str(config_id), "plugin_id": config.plugin_id},
        )

    def apply_seeds(self, seeds: Iterable[ConfigSeed]) -> SeedReport:
        """
        Create or update configs from declarative seeds, keyed by
        (plugin_id, scope, employer_id).  Seeds for plugins that are not
        registered (e.g. component disabled) are skipped.
        """
        created: list[UUID] = []
        updated: list[UUID] = []
        skipped: list[str] = []
        for seed in seeds:
            if not self._registry.has_plugin(seed.plugin_id):
                logger.warning("plugin_config_seed_skipped", extra={"plugin_id": seed.plugin_id})
                skipped.append(seed.plugin_id)
                continue
            scope = self._check_scope(seed.scope, seed.employer_id)
            existing = self._selector.find(seed.plugin_id, scope, seed.employer_id)
            if existing is None:
                config = self.create(
                    seed.plugin_id,
                    seed.settings,
                    scope=scope,
                    employer_id=seed.employer_id,
                    enabled=seed.enabled,
                )
                created.append(config.id)
            else:
                self.update(existing.id, enabled=seed.enabled, settings=seed.settings)
                updated.append(existing.id)
        return SeedReport(tuple(created), tuple(updated), tuple(skipped))

    def _check_scope(self, scope: ConfigScope | str, employer_id: str | None) -> ConfigScope:
        try:
            scope = ConfigScope(scope)
        except ValueError:
            raise PluginConfigScopeError(str(scope), "must be 'global' or 'employer'") from None
        if scope == ConfigScope.EMPLOYER and not employer_id:
            raise PluginConfigScopeError(scope.value, "employer scope requires an employer_id")
        if scope == ConfigScope.GLOBAL and employer_id:
            raise PluginConfigScopeError(scope.value, "global scope must not set employer_id")
        return scope

    def _check_settings(self, plugin_id: str, settings: Any) -> None:
        plugin = self._registry.get(plugin_id)
        if plugin is None:
            raise PluginNotFoundError(plugin_id)
        validation = plugin.validate_settings(settings)
        if not validation:
            raise InvalidPluginSettingsError(plugin_id, validation.messages)
