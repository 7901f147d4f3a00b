"""Backing store port (abstract interface).

Defines the contract every storage adapter implements: plain CRUD over named
tables plus one atomic conditional update. Rows are plain dicts keyed by
column name. Unique constraints declared in ``store.schema`` are enforced by
every adapter and surface as ``DuplicateKeyError``.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable


class BackingStore(ABC):
    """Abstract relational store."""

    @abstractmethod
    def insert(self, table: str, row: dict) -> dict:
        """Insert ``row`` and return it as stored (with generated ids).

        Raises:
            DuplicateKeyError: a unique constraint rejected the row.
        """
        ...

    @abstractmethod
    def insert_many(self, table: str, rows: list[dict]) -> list[dict]:
        """Insert every row or none of them.

        Raises:
            DuplicateKeyError: a unique constraint rejected one of the rows.
        """
        ...

    @abstractmethod
    def get(self, table: str, **criteria) -> dict | None:
        """Return the single row equal on every criterion, or None."""
        ...

    @abstractmethod
    def find(
        self,
        table: str,
        *,
        order_by: Iterable[tuple[str, bool]] = (),
        limit: int | None = None,
        offset: int = 0,
        search: tuple[Iterable[str], str] | None = None,
        **criteria,
    ) -> list[dict]:
        """Return rows matching ``criteria``.

        ``order_by`` holds ``(column, descending)`` pairs. ``search`` is a
        ``(columns, term)`` pair matching rows where any column contains
        ``term``, case-insensitively.
        """
        ...

    @abstractmethod
    def count(self, table: str, *, search: tuple[Iterable[str], str] | None = None, **criteria) -> int:
        ...

    def exists(self, table: str, **criteria) -> bool:
        return self.get(table, **criteria) is not None

    @abstractmethod
    def update(self, table: str, criteria: dict, values: dict) -> int:
        """Unconditionally update matching rows. Returns the number updated."""
        ...

    @abstractmethod
    def conditional_update(self, table: str, key: dict, expected: dict, values: dict) -> dict | None:
        """Atomically update the row identified by ``key`` only if it still
        holds ``expected``.

        The check and the write happen as one step, equivalent to
        ``UPDATE table SET values WHERE key AND expected``. Returns the
        updated row, or None when no row matched (missing, or the expected
        values no longer hold).
        """
        ...

    @abstractmethod
    def upsert(self, table: str, row: dict, conflict_keys: tuple[str, ...]) -> dict:
        """Insert ``row`` or replace the row sharing ``conflict_keys``."""
        ...

    @abstractmethod
    def delete(self, table: str, **criteria) -> int:
        ...

    @abstractmethod
    def reset(self) -> None:
        """Remove every row from every table (tests and CLI only)."""
        ...
