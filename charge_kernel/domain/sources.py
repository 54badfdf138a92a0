"""
Sources -- Narrow read interfaces onto the domain modules that emit triggers.

Responsibility:
    Plugins that need more than the trigger context (monthly hours totals,
    event titles, steward status) query these protocols.  The host
    application supplies implementations; tests use in-memory fakes.

Architecture position:
    Kernel > Domain.  Protocols only; no implementations live in the kernel.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Protocol, runtime_checkable

from charge_kernel.domain.triggers import PaymentSavedContext


@runtime_checkable
class HoursSource(Protocol):
    """Read access to recorded worker hours."""

    def monthly_hours_total(
        self,
        worker_id: str,
        employer_id: str,
        year: int,
        month: int,
        employment_status_ids: Iterable[str] | None = None,
    ) -> Decimal:
        """Total hours for the worker at the employer in the month, optionally
        restricted to the given employment statuses."""
        ...


@runtime_checkable
class ParticipantSource(Protocol):
    """Read access to events, participants and steward assignments."""

    def event_title(self, event_id: str) -> str | None: ...

    def registered_on(self, participant_id: str) -> date | None: ...

    def is_steward(self, worker_id: str) -> bool: ...


@runtime_checkable
class PaymentSource(Protocol):
    """Read access to payments, used to re-verify allocation entries."""

    def get_payment(self, payment_id: str) -> PaymentSavedContext | None: ...


@dataclass
class PluginSources:
    """Bundle of optional collaborator sources handed to plugins at construction."""

    hours: HoursSource | None = None
    participants: ParticipantSource | None = None
    payments: PaymentSource | None = None
    extra: dict[str, object] = field(default_factory=dict)
