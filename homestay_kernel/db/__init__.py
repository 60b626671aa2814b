"""Database layer - engine, base classes, types, and immutability."""

from homestay_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from homestay_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    session_scope,
)
from homestay_kernel.db.types import Amount, UTCDateTime

__all__ = [
    "get_engine",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "UTCDateTime",
    "Amount",
]
