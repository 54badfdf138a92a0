"""Database layer - engine, base classes, types, and the insert-or-find primitive."""

from charge_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from charge_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from charge_kernel.db.types import MONEY_COLUMN, round_money, to_decimal
from charge_kernel.db.upsert import find_by_key, insert_or_find

__all__ = [
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "MONEY_COLUMN",
    "round_money",
    "to_decimal",
    "find_by_key",
    "insert_or_find",
]
