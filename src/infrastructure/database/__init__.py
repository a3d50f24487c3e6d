# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure.

This package provides:
- SQLAlchemy async connection management for the enrollment database
- ORM models for the ``classes`` and ``users`` tables
- The class store contract and its SQL and in-memory implementations
- Read access to user profiles

Example:
    from src.infrastructure.database import (
        SqlAlchemyClassStore,
        get_sessionmaker,
        init_database,
    )

    await init_database(settings)
    store = SqlAlchemyClassStore(get_sessionmaker(), event_bus=get_event_bus())
"""

from src.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    close_database,
    create_schema,
    get_engine,
    get_session,
    get_sessionmaker,
    init_database,
)
from src.infrastructure.database.memory_store import InMemoryClassStore
from src.infrastructure.database.sql_store import SqlAlchemyClassStore
from src.infrastructure.database.store import (
    ClassStore,
    ClassSubscription,
    ClassTransaction,
    InvalidClassRecordError,
    StoreUnavailableError,
    TransactionConflictError,
    WriteConflictError,
)
from src.infrastructure.database.users import UserRepository

__all__ = [
    # Connection
    "DatabaseError",
    "check_database_connection",
    "close_database",
    "create_schema",
    "get_engine",
    "get_session",
    "get_sessionmaker",
    "init_database",
    # Class store
    "ClassStore",
    "ClassSubscription",
    "ClassTransaction",
    "InMemoryClassStore",
    "InvalidClassRecordError",
    "SqlAlchemyClassStore",
    "StoreUnavailableError",
    "TransactionConflictError",
    "WriteConflictError",
    # Users
    "UserRepository",
]
