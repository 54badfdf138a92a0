"""
Module: charge_kernel.db.upsert
Responsibility: The single "insert or find" primitive used wherever a row is
    guarded by a uniqueness constraint and concurrent callers may race to
    create it (EA links, ledger entries).
Architecture position: Kernel > DB.  Imports only SQLAlchemy and db/base.py.

Invariants enforced:
    - At most one row per conflict key: the store's uniqueness constraint is
      the arbiter.  PostgreSQL and SQLite use the native
      ``INSERT ... ON CONFLICT DO NOTHING``; any other dialect falls back to a
      SAVEPOINT around an ORM insert and treats IntegrityError as "the other
      caller won".
    - The caller's outer transaction is never rolled back by a conflict.

Failure modes:
    - Returns (None, False) if neither the insert nor the re-select yields a
      row.  Callers decide whether that is fatal.
"""

from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from charge_kernel.db.base import Base
from charge_kernel.logging_config import get_logger

logger = get_logger("db.upsert")

ModelType = TypeVar("ModelType", bound=Base)

_NATIVE_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def find_by_key(
    session: Session,
    model: type[ModelType],
    key: Mapping[str, Any],
) -> ModelType | None:
    """Select the row matching every column in ``key``, bypassing the identity map cache."""
    stmt = (
        select(model)
        .filter_by(**key)
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return session.execute(stmt).scalar_one_or_none()


def insert_or_find(
    session: Session,
    model: type[ModelType],
    values: Mapping[str, Any],
    conflict_columns: Sequence[str],
) -> tuple[ModelType | None, bool]:
    """
    Insert ``values`` unless a row with the same conflict key exists, then
    return the row that owns the key.

    Args:
        session: Active session.  The insert joins its current transaction.
        model: ORM class with a unique constraint over ``conflict_columns``.
        values: Column values for the new row.
        conflict_columns: Columns forming the unique key.

    Returns:
        (row, created) -- ``created`` is True only if this call inserted it.
    """
    key = {col: values[col] for col in conflict_columns}
    dialect = session.get_bind().dialect.name
    native_insert = _NATIVE_INSERTS.get(dialect)

    if native_insert is not None:
        stmt = (
            native_insert(model)
            .values(**values)
            .on_conflict_do_nothing(index_elements=list(conflict_columns))
        )
        result = session.execute(stmt)
        created = result.rowcount == 1
    else:
        savepoint = session.begin_nested()
        try:
            session.add(model(**values))
            session.flush()
            savepoint.commit()
            created = True
        except IntegrityError:
            savepoint.rollback()
            created = False

    if not created:
        logger.debug(
            "insert_conflict_resolved",
            extra={"table": model.__tablename__, "key": {k: str(v) for k, v in key.items()}},
        )

    return find_by_key(session, model, key), created
