"""
Pure domain layer.

Trigger contexts, rate resolution, settings schemas and the value objects
exchanged between plugins and the engine.  No ORM, no database access; the
clock is injected.
"""

from charge_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from charge_kernel.domain.dtos import (
    ExecutionSummary,
    ExpectedEntry,
    FindingKind,
    IntegrityFinding,
    LedgerMutation,
    LedgerNotification,
    MutationAction,
    MutationResult,
    NotificationKind,
    PersistStatus,
    PluginExecutionResult,
    PluginExecutionSummary,
    PluginOutcome,
    ValidationError,
    ValidationResult,
    VerificationResult,
)
from charge_kernel.domain.rates import (
    RateHistoryEntry,
    parse_rate_history,
    resolve_effective_rate,
)
from charge_kernel.domain.sources import (
    HoursSource,
    ParticipantSource,
    PaymentSource,
    PluginSources,
)
from charge_kernel.domain.triggers import (
    HoursSavedContext,
    JobMode,
    ParticipantSavedContext,
    PaymentSavedContext,
    ScheduledJobContext,
    TriggerContext,
    TriggerType,
    WmbSavedContext,
    context_from_payload,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ExecutionSummary",
    "ExpectedEntry",
    "FindingKind",
    "IntegrityFinding",
    "LedgerMutation",
    "LedgerNotification",
    "MutationAction",
    "MutationResult",
    "NotificationKind",
    "PersistStatus",
    "PluginExecutionResult",
    "PluginExecutionSummary",
    "PluginOutcome",
    "ValidationError",
    "ValidationResult",
    "VerificationResult",
    "RateHistoryEntry",
    "parse_rate_history",
    "resolve_effective_rate",
    "HoursSource",
    "ParticipantSource",
    "PaymentSource",
    "PluginSources",
    "HoursSavedContext",
    "JobMode",
    "ParticipantSavedContext",
    "PaymentSavedContext",
    "ScheduledJobContext",
    "TriggerContext",
    "TriggerType",
    "WmbSavedContext",
    "context_from_payload",
]
