"""
Module: charge_kernel.db.base
Responsibility: Declarative base for the charge tables (accounts, EA links,
    ledger entries, plugin configurations) and the audit columns they share.
Architecture position: Kernel > DB.  Imported by every model; imports
    nothing from the rest of the kernel.

Invariants enforced:
    - Every row has a uuid4 primary key, stored as text so the same schema
      runs on SQLite and PostgreSQL.
    - Every tracked row names the actor that wrote it.  Rows written by a
      charge run carry the kernel's system actor; the engine sets
      ``updated_by_id`` on UPDATE mutations.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUIDs in, UUIDs out; ``String(36)`` on disk."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else PyUUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
    }

    id: Mapped[PyUUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Audit columns for rows an operator may need to trace back.

    ``created_at``/``updated_at`` are set by the database; ``updated_at``
    moves on every UPDATE, so verification tests use it to prove an entry
    was left alone.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    created_by_id: Mapped[PyUUID] = mapped_column(nullable=False)
    updated_by_id: Mapped[PyUUID | None] = mapped_column(nullable=True)


UUID = PyUUID
