"""
Module: charge_kernel.selectors.config_selector
Responsibility: Read access to charge plugin configurations.
Architecture position: Kernel > Selectors.
"""

from uuid import UUID

from sqlalchemy import select

from charge_kernel.models.plugin_config import ConfigScope, PluginConfig
from charge_kernel.selectors.base import BaseSelector


class PluginConfigSelector(BaseSelector[PluginConfig]):
    """Queries over charge_plugin_configs."""

    def get(self, config_id: UUID) -> PluginConfig | None:
        return self.session.get(PluginConfig, config_id)

    def find(
        self,
        plugin_id: str,
        scope: ConfigScope,
        employer_id: str | None = None,
    ) -> PluginConfig | None:
        """The config for (plugin_id, scope, employer_id), enabled or not."""
        stmt = select(PluginConfig).where(
            PluginConfig.plugin_id == plugin_id,
            PluginConfig.scope == ConfigScope(scope).value,
        )
        if employer_id is None:
            stmt = stmt.where(PluginConfig.employer_id.is_(None))
        else:
            stmt = stmt.where(PluginConfig.employer_id == employer_id)
        return self.session.execute(stmt.limit(1)).scalar_one_or_none()

    def list_configs(
        self,
        plugin_id: str | None = None,
        enabled_only: bool = False,
    ) -> list[PluginConfig]:
        stmt = select(PluginConfig)
        if plugin_id is not None:
            stmt = stmt.where(PluginConfig.plugin_id == plugin_id)
        if enabled_only:
            stmt = stmt.where(PluginConfig.enabled.is_(True))
        stmt = stmt.order_by(PluginConfig.plugin_id, PluginConfig.scope, PluginConfig.employer_id)
        return list(self.session.execute(stmt).scalars())
