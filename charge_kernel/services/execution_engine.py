"""
ChargeExecutionService -- runs every charge plugin for one trigger.

Responsibility:
    Entry point for business events.  For a trigger context it finds the
    plugins handling the trigger, resolves each plugin's effective
    configuration, runs the plugin's reconciliation, persists the
    resulting mutations and returns an ExecutionSummary.

Architecture position:
    Kernel > Services.  Called by ChargeKernel (bootstrap) or directly by a
    host that already owns a session.

Invariants enforced:
    - Plugins run sequentially in registration order.
    - Failure isolation: a plugin that raises or returns a failed result is
      recorded as FAILED; the remaining plugins still run.
    - No configuration is not an error: the plugin is recorded as SKIPPED.
    - Persistence is per mutation (savepoint each, via LedgerWriter).  A
      fatal EA resolution error marks the owning plugin FAILED.
    - Never commits.  Dry-run contexts (scheduled job in test mode) compute
      and report mutations without touching the ledger.

Failure modes:
    - None raised for plugin or persistence errors; they are values in the
      summary.  Errors from the session itself outside a savepoint propagate.
"""

import time
from dataclasses import replace
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from charge_kernel.domain.dtos import (
    ExecutionSummary,
    LedgerMutation,
    LedgerNotification,
    MutationResult,
    PluginExecutionSummary,
    PluginOutcome,
)
from charge_kernel.domain.triggers import TriggerContext
from charge_kernel.exceptions import EntityAccountResolutionError
from charge_kernel.logging_config import LogContext, get_logger
from charge_kernel.plugins.base import ChargePlugin
from charge_kernel.plugins.registry import PluginRegistry
from charge_kernel.selectors.ledger_selector import LedgerSelector
from charge_kernel.services.config_resolver import ConfigResolver
from charge_kernel.services.ledger_writer import LedgerWriter

logger = get_logger("services.execution")

PLUGIN_EXECUTION_ERROR = "PLUGIN_EXECUTION_ERROR"


class ChargeExecutionService:
    """
    Executes charge plugins for trigger contexts.

    Contract:
        ``execute_for_trigger`` returns one PluginExecutionSummary per plugin
        handling the trigger and one MutationResult per proposed mutation.
        Re-running it with an unchanged context proposes zero mutations.

    Non-goals:
        - Does NOT commit; the caller owns the transaction.
        - Does NOT retry failed plugins.
    """

    def __init__(
        self,
        session: Session,
        registry: PluginRegistry,
        actor_id: UUID,
        writer: LedgerWriter | None = None,
    ):
        self._session = session
        self._registry = registry
        self._configs = ConfigResolver(session)
        self._ledger = LedgerSelector(session)
        self._writer = writer or LedgerWriter(session, actor_id)
        self._actor_id = actor_id

    def execute_for_trigger(self, context: TriggerContext) -> ExecutionSummary:
        t0 = time.monotonic()
        dry_run = context.dry_run
        plugins = self._registry.for_trigger(context.trigger)
        employer_id = context.scope_employer_id()
        correlation_id = LogContext.get_all().get("correlation_id") or str(uuid4())

        with LogContext.bind(
            correlation_id=correlation_id,
            trigger=context.trigger.value,
            actor_id=str(self._actor_id),
        ):
            logger.info(
                "trigger_execution_started",
                extra={
                    "plugin_count": len(plugins),
                    "employer_id": employer_id,
                    "dry_run": dry_run,
                },
            )

            summaries: list[PluginExecutionSummary] = []
            mutations: list[LedgerMutation] = []
            notifications: list[LedgerNotification] = []
            for plugin in plugins:
                summary, result = self._run_plugin(plugin, context, employer_id)
                summaries.append(summary)
                if result is not None:
                    mutations.extend(result.mutations)
                    notifications.extend(result.notifications)

            results = self._writer.apply_all(mutations, dry_run=dry_run)
            summaries = self._mark_fatal_persistence(summaries, results)

            summary = ExecutionSummary(
                trigger=context.trigger.value,
                plugins=tuple(summaries),
                results=tuple(results),
                notifications=tuple(notifications),
                dry_run=dry_run,
            )
            logger.info(
                "trigger_execution_completed",
                extra={
                    "total_mutations": summary.total_mutations,
                    "persisted": summary.persisted_count,
                    "duplicates": summary.duplicate_count,
                    "failed_mutations": summary.failed_count,
                    "failed_plugins": [p.plugin_id for p in summary.failed],
                    "dry_run": dry_run,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return summary

    def _run_plugin(self, plugin: ChargePlugin, context: TriggerContext, employer_id: str | None):
        plugin_id = plugin.plugin_id
        config = self._configs.resolve(plugin_id, employer_id)
        if config is None:
            logger.debug(
                "plugin_skipped_no_config",
                extra={"plugin_id": plugin_id, "employer_id": employer_id},
            )
            return (
                PluginExecutionSummary(
                    plugin_id=plugin_id,
                    outcome=PluginOutcome.SKIPPED,
                    message="No enabled configuration",
                ),
                None,
            )

        with LogContext.bind(plugin_id=plugin_id, config_id=str(config.id)):
            logger.info("plugin_execution_started")
            try:
                result = plugin.execute(context, config, self._ledger)
            except Exception as exc:
                code = getattr(exc, "code", None)
                if not isinstance(code, str):
                    code = PLUGIN_EXECUTION_ERROR
                logger.error(
                    "plugin_execution_failed",
                    extra={"error": str(exc), "error_code": code},
                    exc_info=True,
                )
                return (
                    PluginExecutionSummary(
                        plugin_id=plugin_id,
                        outcome=PluginOutcome.FAILED,
                        config_id=config.id,
                        error=str(exc),
                        error_code=code,
                    ),
                    None,
                )

            if not result.success:
                logger.warning(
                    "plugin_execution_failed",
                    extra={"error": result.error, "error_code": result.error_code},
                )
                return (
                    PluginExecutionSummary(
                        plugin_id=plugin_id,
                        outcome=PluginOutcome.FAILED,
                        config_id=config.id,
                        error=result.error,
                        error_code=result.error_code,
                    ),
                    None,
                )

            logger.info(
                "plugin_execution_completed",
                extra={"mutation_count": len(result.mutations), "result_message": result.message},
            )
            return (
                PluginExecutionSummary(
                    plugin_id=plugin_id,
                    outcome=PluginOutcome.SUCCEEDED,
                    config_id=config.id,
                    mutation_count=len(result.mutations),
                    message=result.message,
                ),
                result,
            )

    @staticmethod
    def _mark_fatal_persistence(
        summaries: list[PluginExecutionSummary],
        results: list[MutationResult],
    ) -> list[PluginExecutionSummary]:
        """Fail the plugins whose mutations hit an EA resolution error."""
        fatal = {
            r.mutation.plugin_id: r
            for r in results
            if r.error_code == EntityAccountResolutionError.code
        }
        if not fatal:
            return summaries
        return [
            replace(
                s,
                outcome=PluginOutcome.FAILED,
                error=fatal[s.plugin_id].error,
                error_code=fatal[s.plugin_id].error_code,
            )
            if s.plugin_id in fatal
            else s
            for s in summaries
        ]
