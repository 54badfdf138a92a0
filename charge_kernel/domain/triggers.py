"""
Triggers -- Transient event payloads that start a charge run.

Responsibility:
    Defines the trigger type enum and one frozen context dataclass per
    trigger.  Contexts are built by the emitting domain operation (or from an
    event-bus payload via ``context_from_payload``) and are never persisted.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Each context class is bound to exactly one TriggerType.
    - Numeric fields are Decimal, never float.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, ClassVar

from charge_kernel.db.types import to_decimal
from charge_kernel.domain.rates import to_day
from charge_kernel.exceptions import InvalidTriggerPayloadError


class TriggerType(str, Enum):
    """Business events a charge plugin can react to."""

    HOURS_SAVED = "hours_saved"
    PAYMENT_SAVED = "payment_saved"
    PARTICIPANT_SAVED = "participant_saved"
    WMB_SAVED = "wmb_saved"
    SCHEDULED_JOB = "scheduled_job"


class JobMode(str, Enum):
    LIVE = "live"
    TEST = "test"


@dataclass(frozen=True)
class TriggerContext:
    """Base class for all trigger contexts."""

    trigger: ClassVar[TriggerType]

    def scope_employer_id(self) -> str | None:
        """Employer used for config resolution; None when not applicable."""
        return getattr(self, "employer_id", None)

    @property
    def dry_run(self) -> bool:
        return False

    def describe(self) -> dict[str, Any]:
        """Flat dict for structured logging."""
        fields = {k: v for k, v in self.__dict__.items()}
        fields["trigger"] = self.trigger.value
        return fields


@dataclass(frozen=True)
class HoursSavedContext(TriggerContext):
    """Hours recorded for a worker at an employer on one day."""

    trigger: ClassVar[TriggerType] = TriggerType.HOURS_SAVED

    worker_id: str
    employer_id: str
    year: int
    month: int
    day: int
    hours: Decimal
    employment_status_id: str
    home: bool = False
    hours_id: str | None = None

    @property
    def work_date(self) -> date:
        return date(self.year, self.month, self.day)


@dataclass(frozen=True)
class PaymentSavedContext(TriggerContext):
    """A payment saved against an EA.  Only "cleared" payments yield entries."""

    trigger: ClassVar[TriggerType] = TriggerType.PAYMENT_SAVED

    payment_id: str
    amount: str
    status: str
    ledger_ea_id: str
    account_id: str
    entity_type: str
    entity_id: str
    date_cleared: date | None = None
    payment_type_id: str | None = None
    memo: str | None = None


@dataclass(frozen=True)
class ParticipantSavedContext(TriggerContext):
    """An event attendance record saved."""

    trigger: ClassVar[TriggerType] = TriggerType.PARTICIPANT_SAVED

    participant_id: str
    event_id: str
    event_type_id: str
    contact_id: str
    role: str
    status: str | None = None
    worker_id: str | None = None
    is_steward: bool = False


@dataclass(frozen=True)
class WmbSavedContext(TriggerContext):
    """A worker-monthly-benefit record saved (or deleted)."""

    trigger: ClassVar[TriggerType] = TriggerType.WMB_SAVED

    wmb_id: str
    worker_id: str
    employer_id: str
    benefit_id: str
    year: int
    month: int
    is_deleted: bool = False


@dataclass(frozen=True)
class ScheduledJobContext(TriggerContext):
    """A scheduled job run.  ``mode == "test"`` computes without persisting."""

    trigger: ClassVar[TriggerType] = TriggerType.SCHEDULED_JOB

    job_id: str
    mode: JobMode = JobMode.LIVE

    @property
    def dry_run(self) -> bool:
        return self.mode == JobMode.TEST


# Payload parsing


def _require(payload: Mapping[str, Any], trigger: TriggerType, name: str) -> Any:
    value = payload.get(name)
    if value is None or value == "":
        raise InvalidTriggerPayloadError(trigger.value, f"missing field '{name}'")
    return value


def _as_int(trigger: TriggerType, name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidTriggerPayloadError(trigger.value, f"'{name}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidTriggerPayloadError(
            trigger.value, f"'{name}' must be an integer, got {value!r}"
        ) from None


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "y")
    return bool(value)


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _parse_hours(payload: Mapping[str, Any]) -> HoursSavedContext:
    t = TriggerType.HOURS_SAVED
    try:
        hours = to_decimal(_require(payload, t, "hours"))
    except (InvalidOperation, TypeError):
        raise InvalidTriggerPayloadError(t.value, "'hours' must be numeric") from None
    year = _as_int(t, "year", _require(payload, t, "year"))
    month = _as_int(t, "month", _require(payload, t, "month"))
    day = _as_int(t, "day", _require(payload, t, "day"))
    try:
        date(year, month, day)
    except ValueError as exc:
        raise InvalidTriggerPayloadError(t.value, str(exc)) from None
    return HoursSavedContext(
        worker_id=str(_require(payload, t, "worker_id")),
        employer_id=str(_require(payload, t, "employer_id")),
        year=year,
        month=month,
        day=day,
        hours=hours,
        employment_status_id=str(_require(payload, t, "employment_status_id")),
        home=_as_bool(payload.get("home", False)),
        hours_id=_optional_str(payload.get("hours_id")),
    )


def _parse_payment(payload: Mapping[str, Any]) -> PaymentSavedContext:
    t = TriggerType.PAYMENT_SAVED
    raw_cleared = payload.get("date_cleared")
    date_cleared = to_day(raw_cleared) if raw_cleared else None
    if raw_cleared and date_cleared is None:
        raise InvalidTriggerPayloadError(t.value, f"'date_cleared' is not a date: {raw_cleared!r}")
    return PaymentSavedContext(
        payment_id=str(_require(payload, t, "payment_id")),
        amount=str(_require(payload, t, "amount")),
        status=str(_require(payload, t, "status")),
        ledger_ea_id=str(_require(payload, t, "ledger_ea_id")),
        account_id=str(_require(payload, t, "account_id")),
        entity_type=str(_require(payload, t, "entity_type")),
        entity_id=str(_require(payload, t, "entity_id")),
        date_cleared=date_cleared,
        payment_type_id=_optional_str(payload.get("payment_type_id")),
        memo=_optional_str(payload.get("memo")),
    )


def _parse_participant(payload: Mapping[str, Any]) -> ParticipantSavedContext:
    t = TriggerType.PARTICIPANT_SAVED
    return ParticipantSavedContext(
        participant_id=str(_require(payload, t, "participant_id")),
        event_id=str(_require(payload, t, "event_id")),
        event_type_id=str(_require(payload, t, "event_type_id")),
        contact_id=str(_require(payload, t, "contact_id")),
        role=str(payload.get("role") or "member"),
        status=_optional_str(payload.get("status")),
        worker_id=_optional_str(payload.get("worker_id")),
        is_steward=_as_bool(payload.get("is_steward", False)),
    )


def _parse_wmb(payload: Mapping[str, Any]) -> WmbSavedContext:
    t = TriggerType.WMB_SAVED
    return WmbSavedContext(
        wmb_id=str(_require(payload, t, "wmb_id")),
        worker_id=str(_require(payload, t, "worker_id")),
        employer_id=str(_require(payload, t, "employer_id")),
        benefit_id=str(_require(payload, t, "benefit_id")),
        year=_as_int(t, "year", _require(payload, t, "year")),
        month=_as_int(t, "month", _require(payload, t, "month")),
        is_deleted=_as_bool(payload.get("is_deleted", False)),
    )


def _parse_job(payload: Mapping[str, Any]) -> ScheduledJobContext:
    t = TriggerType.SCHEDULED_JOB
    raw_mode = payload.get("mode") or JobMode.LIVE.value
    try:
        mode = JobMode(raw_mode)
    except ValueError:
        raise InvalidTriggerPayloadError(t.value, f"unknown mode {raw_mode!r}") from None
    return ScheduledJobContext(job_id=str(_require(payload, t, "job_id")), mode=mode)


_PARSERS = {
    TriggerType.HOURS_SAVED: _parse_hours,
    TriggerType.PAYMENT_SAVED: _parse_payment,
    TriggerType.PARTICIPANT_SAVED: _parse_participant,
    TriggerType.WMB_SAVED: _parse_wmb,
    TriggerType.SCHEDULED_JOB: _parse_job,
}


def context_from_payload(
    trigger: TriggerType | str,
    payload: Mapping[str, Any],
) -> TriggerContext:
    """
    Build a trigger context from an event-bus style payload.

    Args:
        trigger: Trigger type or its string value.
        payload: snake_case field mapping.

    Raises:
        InvalidTriggerPayloadError: Unknown trigger, missing or malformed field.
    """
    try:
        trigger_type = TriggerType(trigger)
    except ValueError:
        raise InvalidTriggerPayloadError(str(trigger), "unknown trigger type") from None
    return _PARSERS[trigger_type](payload)
