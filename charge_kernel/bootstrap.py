"""
ChargeKernel -- composition root for the charge-plugin engine.

Responsibility:
    Wires the plugin registry, collaborator sources, clock and session
    factory together and exposes the operations a host application calls:
    run a trigger, handle a raw event payload, verify one entry, and run a
    ledger integrity check.

Architecture position:
    Kernel > Bootstrap.  The only module that knows about every layer.
    Hosts that already own a session use ChargeExecutionService and
    VerificationService directly instead.

Invariants enforced:
    - One registry per kernel; nothing reads a module-level registry.
    - Each public call runs in its own ``session_scope``: committed on
      success, rolled back on an exception escaping the engine.
"""

from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from charge_kernel.db.engine import build_engine, create_tables, session_scope
from charge_kernel.domain.clock import Clock, SystemClock
from charge_kernel.domain.dtos import ExecutionSummary, IntegrityFinding, VerificationResult
from charge_kernel.domain.sources import PluginSources
from charge_kernel.domain.triggers import TriggerContext, TriggerType, context_from_payload
from charge_kernel.exceptions import LedgerEntryNotFoundError, PluginConfigNotFoundError
from charge_kernel.logging_config import get_logger
from charge_kernel.plugins import register_builtin_plugins
from charge_kernel.plugins.registry import PluginRegistry
from charge_kernel.selectors.config_selector import PluginConfigSelector
from charge_kernel.selectors.ledger_selector import LedgerSelector
from charge_kernel.services.execution_engine import ChargeExecutionService
from charge_kernel.services.verification_service import VerificationService

logger = get_logger("bootstrap")


class ChargeKernel:
    """
    Facade over the charge engine for host applications.

    Contract:
        Call ``execute_for_trigger`` after the domain write that caused the
        trigger has committed; the kernel opens its own transaction.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        registry: PluginRegistry,
        actor_id: UUID,
        clock: Clock | None = None,
    ):
        self.session_factory = session_factory
        self.registry = registry
        self.actor_id = actor_id
        self.clock = clock or SystemClock()

    @classmethod
    def create(
        cls,
        database_url: str,
        actor_id: UUID,
        enabled_components: Iterable[str] = (),
        sources: PluginSources | None = None,
        clock: Clock | None = None,
        create_schema: bool = False,
        echo: bool = False,
        **pool_options: Any,
    ) -> "ChargeKernel":
        """Build an engine, a registry with the built-in plugins, and a kernel."""
        clock = clock or SystemClock()
        engine = build_engine(database_url, echo=echo, **pool_options)
        if create_schema:
            create_tables(engine)
        registry = PluginRegistry(enabled_components)
        registered = register_builtin_plugins(registry, sources=sources, clock=clock)
        logger.info(
            "charge_kernel_created",
            extra={"dialect": engine.dialect.name, "plugins": registered},
        )
        return cls(
            sessionmaker(bind=engine, expire_on_commit=False),
            registry,
            actor_id,
            clock=clock,
        )

    def execute_for_trigger(self, context: TriggerContext) -> ExecutionSummary:
        with session_scope(self.session_factory) as session:
            service = ChargeExecutionService(session, self.registry, self.actor_id)
            return service.execute_for_trigger(context)

    def handle_event(
        self,
        trigger: TriggerType | str,
        payload: Mapping[str, Any],
    ) -> ExecutionSummary:
        """Parse an event-bus payload and run its trigger."""
        return self.execute_for_trigger(context_from_payload(trigger, payload))

    def verify_entry(self, entry_id: UUID) -> VerificationResult:
        """
        Verify one persisted entry against the configuration that produced it.

        Raises:
            LedgerEntryNotFoundError: No entry with this id.
            PluginConfigNotFoundError: The producing configuration was deleted.
        """
        with session_scope(self.session_factory) as session:
            entry = LedgerSelector(session).get_entry(entry_id)
            if entry is None:
                raise LedgerEntryNotFoundError(str(entry_id))
            config = PluginConfigSelector(session).get(entry.plugin_config_id)
            if config is None:
                raise PluginConfigNotFoundError(str(entry.plugin_config_id))
            return VerificationService(session, self.registry).verify(entry, config)

    def run_integrity_check(
        self,
        plugin_ids: Iterable[str] | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[IntegrityFinding]:
        with session_scope(self.session_factory) as session:
            service = VerificationService(session, self.registry)
            return service.run_integrity_check(plugin_ids, date_from, date_to)
