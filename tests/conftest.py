"""
Pytest fixtures for the charge kernel test suite.

Provides:
- Database sessions (SQLite in-memory by default, PostgreSQL via DATABASE_URL)
- A registry with every built-in plugin, wired to in-memory sources
- Deterministic clock, ledger accounts and plugin configuration helpers
- Captured structured logs

Environment Variables:
- DATABASE_URL: SQLAlchemy URL.  If not set, an in-memory SQLite database
  is used.  Tests marked ``postgres`` are skipped unless it points at
  PostgreSQL.
"""

import json
import logging
import os
import threading
from collections.abc import Generator, Iterable
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy import func, select, text
from sqlalchemy.orm import Session

from charge_kernel.bootstrap import ChargeKernel
from charge_kernel.db.base import Base
from charge_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from charge_kernel.domain.clock import DeterministicClock
from charge_kernel.domain.sources import PluginSources
from charge_kernel.domain.triggers import (
    HoursSavedContext,
    ParticipantSavedContext,
    PaymentSavedContext,
    WmbSavedContext,
)
from charge_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from charge_kernel.models.account import LedgerAccount
from charge_kernel.plugins import register_builtin_plugins
from charge_kernel.plugins.registry import PluginRegistry
from charge_kernel.selectors.ledger_selector import LedgerSelector
from charge_kernel.services.account_service import AccountService
from charge_kernel.services.config_resolver import PluginConfigService
from charge_kernel.services.execution_engine import ChargeExecutionService
from charge_kernel.services.verification_service import VerificationService

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

ALL_COMPONENTS = frozenset({
    "charges.hours_monthly",
    "charges.steward_attendance",
    "charges.benefit_monthly",
})

WORKER_ID = "w-100"
EMPLOYER_ID = "e-200"
STATUS_ACTIVE = "status-active"
BENEFIT_ID = "5c0d2a8e-3f61-4d8a-9b7e-1a2b3c4d5e6f"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture charge_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, run_trigger):
            run_trigger(context)
            logs = captured_logs()
            assert any(r["message"] == "ledger_entry_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("charge_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", "sqlite://")


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(
        get_database_url(), echo=False,
        pool_size=30, max_overflow=20, pool_timeout=10,
    )
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables()
    create_tables()
    yield
    drop_tables()


def _truncate_all_tables(engine):
    """Delete every row, children first.

    Used by tests that need real commits and therefore cannot rely on the
    rollback isolation pattern.
    """
    table_names = [t.name for t in reversed(Base.metadata.sorted_tables)]
    with engine.connect() as conn:
        if engine.dialect.name == "postgresql":
            conn.execute(text("TRUNCATE " + ", ".join(table_names) + " CASCADE"))
        else:
            for name in table_names:
                conn.execute(text(f"DELETE FROM {name}"))
        conn.commit()


@pytest.fixture
def require_postgres(db_engine):
    if db_engine.dialect.name != "postgresql":
        pytest.skip("requires DATABASE_URL pointing at PostgreSQL")


# =============================================================================
# Per-test session with automatic rollback
# =============================================================================


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    Uses the SQLAlchemy 2.0 ``join_transaction_block`` pattern:
    - Opens a dedicated connection with an outer transaction
    - Creates a session that *joins* the outer transaction
    - Any ``session.commit()`` inside the test releases a savepoint -- it
      does NOT actually commit to the database
    - At teardown the outer transaction is rolled back, undoing ALL data
      changes made during the test
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


@pytest.fixture(scope="function")
def committing_session_factory(db_engine, db_tables):
    """Session factory whose sessions really commit; rows deleted at teardown."""
    factory = get_session_factory()
    created_sessions = []
    lock = threading.Lock()

    def tracked_factory():
        with lock:
            s = factory()
            created_sessions.append(s)
            return s

    yield tracked_factory

    for s in created_sessions:
        try:
            if s.is_active:
                s.rollback()
        finally:
            s.close()
    _truncate_all_tables(db_engine)


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


# =============================================================================
# Collaborator fakes
# =============================================================================


class InMemoryHoursSource:
    """Hours rows: (worker_id, employer_id, work_date, status_id, hours)."""

    def __init__(self):
        self.rows: list[tuple[str, str, date, str, Decimal]] = []

    def add(self, worker_id, employer_id, work_date, status_id, hours) -> None:
        self.rows.append((worker_id, employer_id, work_date, status_id, Decimal(str(hours))))

    def clear(self) -> None:
        self.rows.clear()

    def monthly_hours_total(
        self,
        worker_id: str,
        employer_id: str,
        year: int,
        month: int,
        employment_status_ids: Iterable[str] | None = None,
    ) -> Decimal:
        statuses = set(employment_status_ids or ())
        return sum(
            (
                hours
                for w, e, d, s, hours in self.rows
                if w == worker_id
                and e == employer_id
                and (d.year, d.month) == (year, month)
                and (not statuses or s in statuses)
            ),
            Decimal(0),
        )


class InMemoryParticipantSource:
    def __init__(self):
        self.titles: dict[str, str] = {}
        self.registrations: dict[str, date] = {}
        self.stewards: set[str] = set()

    def event_title(self, event_id: str) -> str | None:
        return self.titles.get(event_id)

    def registered_on(self, participant_id: str) -> date | None:
        return self.registrations.get(participant_id)

    def is_steward(self, worker_id: str) -> bool:
        return worker_id in self.stewards


class InMemoryPaymentSource:
    def __init__(self):
        self.payments: dict[str, PaymentSavedContext] = {}

    def save(self, payment: PaymentSavedContext) -> None:
        self.payments[payment.payment_id] = payment

    def remove(self, payment_id: str) -> None:
        self.payments.pop(payment_id, None)

    def get_payment(self, payment_id: str) -> PaymentSavedContext | None:
        return self.payments.get(payment_id)


# =============================================================================
# Kernel fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def hours_source() -> InMemoryHoursSource:
    return InMemoryHoursSource()


@pytest.fixture
def participant_source() -> InMemoryParticipantSource:
    return InMemoryParticipantSource()


@pytest.fixture
def payment_source() -> InMemoryPaymentSource:
    return InMemoryPaymentSource()


@pytest.fixture
def plugin_sources(hours_source, participant_source, payment_source) -> PluginSources:
    return PluginSources(
        hours=hours_source,
        participants=participant_source,
        payments=payment_source,
    )


@pytest.fixture
def registry(plugin_sources, deterministic_clock) -> PluginRegistry:
    """Registry with every built-in plugin and every component enabled."""
    reg = PluginRegistry(ALL_COMPONENTS)
    register_builtin_plugins(reg, sources=plugin_sources, clock=deterministic_clock)
    return reg


@pytest.fixture
def account(session, test_actor_id) -> LedgerAccount:
    return AccountService(session, test_actor_id).create("Member dues", currency="USD")


@pytest.fixture
def second_account(session, test_actor_id) -> LedgerAccount:
    return AccountService(session, test_actor_id).create("Steward points", currency="USD")


@pytest.fixture
def config_service(session, test_actor_id, registry) -> PluginConfigService:
    return PluginConfigService(session, test_actor_id, registry)


@pytest.fixture
def execution_service(session, test_actor_id, registry) -> ChargeExecutionService:
    return ChargeExecutionService(session, registry, test_actor_id)


@pytest.fixture
def verification_service(session, registry) -> VerificationService:
    return VerificationService(session, registry)


@pytest.fixture
def ledger(session) -> LedgerSelector:
    return LedgerSelector(session)


@pytest.fixture
def hour_fixed_settings(account):
    def _make(rates=(("2025-01-01", "5"),), statuses=(STATUS_ACTIVE,)):
        settings = {
            "account_id": str(account.id),
            "rate_history": [{"effective_date": d, "rate": r} for d, r in rates],
        }
        if statuses is not None:
            settings["employment_status_ids"] = list(statuses)
        return settings

    return _make


@pytest.fixture
def hour_fixed_config(config_service, hour_fixed_settings):
    return config_service.create("hour-fixed", hour_fixed_settings())


@pytest.fixture
def payment_config(config_service, account):
    return config_service.create("payment-simple-allocation", {"account_ids": [str(account.id)]})


def make_hours(hours="10", day=5, month=3, year=2025, status=STATUS_ACTIVE, **overrides):
    fields = dict(
        worker_id=WORKER_ID,
        employer_id=EMPLOYER_ID,
        year=year,
        month=month,
        day=day,
        hours=Decimal(str(hours)),
        employment_status_id=status,
    )
    fields.update(overrides)
    return HoursSavedContext(**fields)


def make_payment(account_id, status="cleared", amount="100.00", **overrides):
    fields = dict(
        payment_id="pay-1",
        amount=amount,
        status=status,
        ledger_ea_id="ea-legacy-1",
        account_id=str(account_id),
        entity_type="employer",
        entity_id=EMPLOYER_ID,
        date_cleared=date(2025, 3, 7),
        payment_type_id="check",
    )
    fields.update(overrides)
    return PaymentSavedContext(**fields)


def make_participant(**overrides):
    fields = dict(
        participant_id="p-1",
        event_id="ev-1",
        event_type_id="meeting",
        contact_id="c-1",
        role="member",
        status="attended",
        worker_id=WORKER_ID,
        is_steward=True,
    )
    fields.update(overrides)
    return ParticipantSavedContext(**fields)


def make_wmb(**overrides):
    fields = dict(
        wmb_id="wmb-1",
        worker_id=WORKER_ID,
        employer_id=EMPLOYER_ID,
        benefit_id=BENEFIT_ID,
        year=2025,
        month=2,
    )
    fields.update(overrides)
    return WmbSavedContext(**fields)


@pytest.fixture
def committed_kernel(committing_session_factory, registry, test_actor_id, deterministic_clock):
    """ChargeKernel over real commits, for tests crossing transaction boundaries."""
    return ChargeKernel(
        committing_session_factory,
        registry,
        test_actor_id,
        clock=deterministic_clock,
    )


def count_rows(session: Session, model) -> int:
    return session.execute(select(func.count()).select_from(model)).scalar_one()


# Convenience for plugin-level unit tests that never touch the database
class DictLedger:
    """LedgerReader over a dict keyed by (plugin_id, idempotency_key)."""

    def __init__(self):
        self.entries = {}

    def find_entry(self, plugin_id, idempotency_key):
        return self.entries.get((plugin_id, idempotency_key))


@pytest.fixture
def dict_ledger() -> DictLedger:
    return DictLedger()


__all__ = [
    "ALL_COMPONENTS",
    "BENEFIT_ID",
    "EMPLOYER_ID",
    "STATUS_ACTIVE",
    "WORKER_ID",
    "DictLedger",
    "count_rows",
    "make_hours",
    "make_participant",
    "make_payment",
    "make_wmb",
]

