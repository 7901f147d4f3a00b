"""In-memory backing store for development and testing.

Every operation takes one process-wide lock, so a conditional update is as
atomic here as ``UPDATE ... WHERE`` is in a database. Rows are copied on the
way in and on the way out; callers never share mutable state with the store.
"""

import copy
import threading
from collections.abc import Iterable

from shared.errors import DuplicateKeyError, NotFoundError
from store.port import BackingStore
from store.schema import metadata, unique_keys


def _matches(row: dict, criteria: dict) -> bool:
    return all(row.get(column) == value for column, value in criteria.items())


def _matches_search(row: dict, search: tuple[Iterable[str], str] | None) -> bool:
    if not search:
        return True
    columns, term = search
    if not term:
        return True
    needle = term.lower()
    return any(needle in str(row.get(column) or "").lower() for column in columns)


def _sort_key(value):
    # None sorts before every value in either direction
    return (value is not None, value if value is not None else 0)


class InMemoryStore(BackingStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, list[dict]] = {name: [] for name in metadata.tables}
        self._sequences: dict[str, int] = {name: 0 for name in metadata.tables}
        self._unique: dict[str, list[tuple[str, ...]]] = {
            name: unique_keys(table) for name, table in metadata.tables.items()
        }
        self._defaults: dict[str, dict] = {
            name: {
                column.name: column.default.arg if column.default is not None and column.default.is_scalar else None
                for column in table.columns
            }
            for name, table in metadata.tables.items()
        }
        self._autoincrement: dict[str, str | None] = {
            name: table.autoincrement_column.name if table.autoincrement_column is not None else None
            for name, table in metadata.tables.items()
        }

    # -----------------------------------------------------------------
    # Helpers (caller holds the lock)
    # -----------------------------------------------------------------
    def _table(self, table: str) -> list[dict]:
        if table not in self._rows:
            raise NotFoundError(f"Unknown table {table}", table=table)
        return self._rows[table]

    def _check_unique(self, table: str, row: dict, ignore: dict | None = None) -> None:
        for columns in self._unique[table]:
            if any(row.get(column) is None for column in columns):
                continue
            for existing in self._rows[table]:
                if existing is ignore:
                    continue
                if all(existing.get(column) == row.get(column) for column in columns):
                    raise DuplicateKeyError(table, columns)

    def _insert(self, table: str, row: dict) -> dict:
        rows = self._table(table)
        stored = {**self._defaults[table], **copy.deepcopy(row)}
        id_column = self._autoincrement[table]
        if id_column is not None and stored.get(id_column) is None:
            stored[id_column] = self._sequences[table] + 1
        self._check_unique(table, stored)
        if id_column is not None:
            self._sequences[table] = max(self._sequences[table], stored[id_column])
        rows.append(stored)
        return copy.deepcopy(stored)

    # -----------------------------------------------------------------
    # BackingStore
    # -----------------------------------------------------------------
    def insert(self, table: str, row: dict) -> dict:
        with self._lock:
            return self._insert(table, row)

    def insert_many(self, table: str, rows: list[dict]) -> list[dict]:
        with self._lock:
            existing = self._table(table)
            size, sequence = len(existing), self._sequences[table]
            try:
                return [self._insert(table, row) for row in rows]
            except DuplicateKeyError:
                del existing[size:]
                self._sequences[table] = sequence
                raise

    def get(self, table: str, **criteria) -> dict | None:
        with self._lock:
            for row in self._table(table):
                if _matches(row, criteria):
                    return copy.deepcopy(row)
        return None

    def _select(self, table, criteria, search) -> list[dict]:
        return [row for row in self._table(table) if _matches(row, criteria) and _matches_search(row, search)]

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
        with self._lock:
            rows = self._select(table, criteria, search)
            for column, descending in reversed(list(order_by)):
                rows = sorted(rows, key=lambda row: _sort_key(row.get(column)), reverse=descending)
            rows = rows[offset:]
            if limit is not None:
                rows = rows[:limit]
            return copy.deepcopy(rows)

    def count(self, table: str, *, search: tuple[Iterable[str], str] | None = None, **criteria) -> int:
        with self._lock:
            return len(self._select(table, criteria, search))

    def update(self, table: str, criteria: dict, values: dict) -> int:
        with self._lock:
            updated = 0
            for row in self._table(table):
                if _matches(row, criteria):
                    self._check_unique(table, {**row, **values}, ignore=row)
                    row.update(copy.deepcopy(values))
                    updated += 1
            return updated

    def conditional_update(self, table: str, key: dict, expected: dict, values: dict) -> dict | None:
        with self._lock:
            for row in self._table(table):
                if _matches(row, key) and _matches(row, expected):
                    self._check_unique(table, {**row, **values}, ignore=row)
                    row.update(copy.deepcopy(values))
                    return copy.deepcopy(row)
        return None

    def upsert(self, table: str, row: dict, conflict_keys: tuple[str, ...]) -> dict:
        with self._lock:
            criteria = {column: row[column] for column in conflict_keys}
            for existing in self._table(table):
                if _matches(existing, criteria):
                    self._check_unique(table, {**existing, **row}, ignore=existing)
                    existing.update(copy.deepcopy(row))
                    return copy.deepcopy(existing)
            return self._insert(table, row)

    def delete(self, table: str, **criteria) -> int:
        with self._lock:
            rows = self._table(table)
            kept = [row for row in rows if not _matches(row, criteria)]
            removed = len(rows) - len(kept)
            self._rows[table] = kept
            return removed

    def reset(self) -> None:
        with self._lock:
            for name in self._rows:
                self._rows[name] = []
                self._sequences[name] = 0
