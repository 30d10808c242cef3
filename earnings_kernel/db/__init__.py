"""Database layer - engine, session scope, and declarative base classes."""

from earnings_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from earnings_kernel.db.engine import (
    create_store_engine,
    create_tables,
    drop_tables,
    make_session_factory,
    session_scope,
)

__all__ = [
    "create_store_engine",
    "create_tables",
    "drop_tables",
    "make_session_factory",
    "session_scope",
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
]
