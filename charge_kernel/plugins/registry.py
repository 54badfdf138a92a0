"""PluginRegistry -- Plugin id and trigger type to ChargePlugin dispatch."""

from collections.abc import Iterable

from charge_kernel.domain.triggers import TriggerType
from charge_kernel.exceptions import DuplicatePluginError, PluginNotFoundError
from charge_kernel.logging_config import get_logger
from charge_kernel.plugins.base import ChargePlugin

logger = get_logger("plugins.registry")


class PluginRegistry:
    """
    Catalog of charge plugins, owned by the composition root.

    Contract:
        Populated once at startup.  Registration order is preserved and is
        the order in which the engine runs plugins for a trigger.

    Guarantees:
        - At most one plugin per plugin_id (DuplicatePluginError otherwise).
        - Plugins whose ``required_component`` is not in
          ``enabled_components`` are not registered.
    """

    def __init__(self, enabled_components: Iterable[str] | None = None):
        self._plugins: dict[str, ChargePlugin] = {}
        self._enabled_components = frozenset(enabled_components or ())

    def register(self, plugin: ChargePlugin) -> bool:
        """
        Register a plugin.

        Returns:
            True if registered, False if skipped because its required
            component is disabled.

        Raises:
            DuplicatePluginError: plugin_id already registered.
        """
        plugin_id = plugin.plugin_id
        if plugin_id in self._plugins:
            raise DuplicatePluginError(plugin_id)

        component = plugin.metadata.required_component
        if component is not None and component not in self._enabled_components:
            logger.debug(
                "plugin_not_registered",
                extra={"plugin_id": plugin_id, "required_component": component},
            )
            return False

        self._plugins[plugin_id] = plugin
        logger.info(
            "plugin_registered",
            extra={
                "plugin_id": plugin_id,
                "triggers": sorted(t.value for t in plugin.metadata.triggers),
            },
        )
        return True

    def get(self, plugin_id: str) -> ChargePlugin | None:
        return self._plugins.get(plugin_id)

    def require(self, plugin_id: str) -> ChargePlugin:
        plugin = self._plugins.get(plugin_id)
        if plugin is None:
            raise PluginNotFoundError(plugin_id)
        return plugin

    def for_trigger(self, trigger: TriggerType) -> list[ChargePlugin]:
        """All plugins handling ``trigger``, in registration order."""
        return [p for p in self._plugins.values() if p.can_handle(trigger)]

    def list_plugins(self) -> list[ChargePlugin]:
        return list(self._plugins.values())

    def has_plugin(self, plugin_id: str) -> bool:
        return plugin_id in self._plugins

    def unregister(self, plugin_id: str) -> None:
        self._plugins.pop(plugin_id, None)

    def __len__(self) -> int:
        return len(self._plugins)

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._plugins
