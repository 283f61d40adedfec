"""Database layer - engine, base classes, types, and immutability."""

from taxledger_kernel.db.base import UUID, Base, UUIDString
from taxledger_kernel.db.engine import (
    create_tables,
    enable_sqlite_savepoints,
    get_engine,
    get_session,
)
from taxledger_kernel.db.types import round_money

__all__ = [
    "get_engine",
    "get_session",
    "create_tables",
    "enable_sqlite_savepoints",
    "Base",
    "UUIDString",
    "UUID",
    "round_money",
]
