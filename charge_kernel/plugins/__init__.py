"""
Charge plugins.

Each plugin encodes one charging rule.  ``register_builtin_plugins`` is
called once by the composition root (ChargeKernel); plugins gated behind a
component register only when that component is enabled.
"""

from charge_kernel.domain.clock import Clock
from charge_kernel.domain.sources import PluginSources
from charge_kernel.plugins.base import ChargePlugin, LedgerReader, PluginMetadata
from charge_kernel.plugins.benefit_monthly import BenefitMonthlyPlugin
from charge_kernel.plugins.hour_fixed import HourFixedPlugin
from charge_kernel.plugins.hours_monthly_flat import HoursMonthlyFlatPlugin
from charge_kernel.plugins.payment_allocation import PaymentSimpleAllocationPlugin
from charge_kernel.plugins.registry import PluginRegistry
from charge_kernel.plugins.steward_attendance import StewardAttendancePlugin

# Registration order is execution order for a shared trigger
BUILTIN_PLUGINS: tuple[type[ChargePlugin], ...] = (
    HourFixedPlugin,
    HoursMonthlyFlatPlugin,
    PaymentSimpleAllocationPlugin,
    StewardAttendancePlugin,
    BenefitMonthlyPlugin,
)


def register_builtin_plugins(
    registry: PluginRegistry,
    sources: PluginSources | None = None,
    clock: Clock | None = None,
) -> list[str]:
    """Instantiate and register every built-in plugin; return the ids registered."""
    registered = []
    for plugin_cls in BUILTIN_PLUGINS:
        if registry.register(plugin_cls(sources=sources, clock=clock)):
            registered.append(plugin_cls.metadata.plugin_id)
    return registered


__all__ = [
    "BUILTIN_PLUGINS",
    "BenefitMonthlyPlugin",
    "ChargePlugin",
    "HourFixedPlugin",
    "HoursMonthlyFlatPlugin",
    "LedgerReader",
    "PaymentSimpleAllocationPlugin",
    "PluginMetadata",
    "PluginRegistry",
    "StewardAttendancePlugin",
    "register_builtin_plugins",
]
