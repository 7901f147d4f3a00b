"""Backing store factory.

``build_store()`` picks the adapter from the configured database URL:
``memory://`` gives the in-memory store, anything else is handed to
SQLAlchemy.
"""

from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from store.memory import InMemoryStore
from store.port import BackingStore
from store.schema import setup_db
from store.sql import SqlStore

MEMORY_URL = "memory://"


def build_store(database_url: str, create_tables: bool = True) -> BackingStore:
    if database_url == MEMORY_URL:
        return InMemoryStore()

    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # One shared connection, otherwise every checkout sees an empty database
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_url, pool_pre_ping=True)

    if create_tables:
        setup_db(engine)
    return SqlStore(engine)


__all__ = ["BackingStore", "InMemoryStore", "MEMORY_URL", "SqlStore", "build_store"]
