"""SQLAlchemy Core adapter for the backing store.

Every call runs in its own transaction (``engine.begin()``). The conditional
update is a single ``UPDATE ... WHERE key AND expected`` statement whose row
count decides the outcome, so concurrent writers never both win.
"""

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

import structlog
from sqlalchemy import DateTime, Engine, Table, delete, func, insert, or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from shared.errors import DuplicateKeyError, NotFoundError, TransientError
from store.port import BackingStore
from store.schema import metadata, unique_keys

logger = structlog.get_logger(__name__)


class SqlStore(BackingStore):
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------
    def _table(self, name: str) -> Table:
        try:
            return metadata.tables[name]
        except KeyError:
            raise NotFoundError(f"Unknown table {name}", table=name) from None

    @contextmanager
    def _translate_errors(self, table: Table) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            columns = self._violated_columns(table, str(exc.orig))
            raise DuplicateKeyError(table.name, columns) from exc
        except OperationalError as exc:
            logger.warning("Backing store operational error", table=table.name, error=str(exc.orig))
            raise TransientError("Backing store unavailable", table=table.name) from exc
        except DBAPIError as exc:
            if exc.connection_invalidated:
                raise TransientError("Backing store connection lost", table=table.name) from exc
            raise

    @staticmethod
    def _violated_columns(table: Table, message: str) -> tuple[str, ...]:
        for columns in unique_keys(table):
            if all(column in message for column in columns):
                return columns
        return ()

    @staticmethod
    def _where(table: Table, criteria: dict) -> list:
        return [table.c[column] == value for column, value in criteria.items()]

    @staticmethod
    def _filtered(stmt, *clauses):
        clauses = [clause for clause in clauses if clause is not None]
        return stmt.where(*clauses) if clauses else stmt

    @staticmethod
    def _search_clause(table: Table, search: tuple[Iterable[str], str] | None):
        if not search:
            return None
        columns, term = search
        if not term:
            return None
        return or_(*[table.c[column].ilike(f"%{term}%") for column in columns])

    @staticmethod
    def _to_dict(table: Table, row) -> dict:
        result = dict(row)
        for column in table.columns:
            value = result.get(column.name)
            # SQLite hands back naive datetimes even for timezone-aware columns
            if isinstance(column.type, DateTime) and isinstance(value, datetime) and value.tzinfo is None:
                result[column.name] = value.replace(tzinfo=UTC)
        return result

    def _select_one(self, conn, table: Table, criteria: dict) -> dict | None:
        row = conn.execute(self._filtered(select(table), *self._where(table, criteria))).mappings().first()
        return self._to_dict(table, row) if row is not None else None

    # -----------------------------------------------------------------
    # BackingStore
    # -----------------------------------------------------------------
    def insert(self, table: str, row: dict) -> dict:
        t = self._table(table)
        with self._translate_errors(t), self.engine.begin() as conn:
            result = conn.execute(insert(t).values(**row))
            pk_columns = [column.name for column in t.primary_key.columns]
            key = dict(zip(pk_columns, result.inserted_primary_key, strict=True))
            return self._select_one(conn, t, key)

    def insert_many(self, table: str, rows: list[dict]) -> list[dict]:
        t = self._table(table)
        pk_columns = [column.name for column in t.primary_key.columns]
        stored = []
        with self._translate_errors(t), self.engine.begin() as conn:
            for row in rows:
                result = conn.execute(insert(t).values(**row))
                key = dict(zip(pk_columns, result.inserted_primary_key, strict=True))
                stored.append(self._select_one(conn, t, key))
        return stored

    def get(self, table: str, **criteria) -> dict | None:
        t = self._table(table)
        with self._translate_errors(t), self.engine.connect() as conn:
            return self._select_one(conn, t, criteria)

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
        t = self._table(table)
        stmt = self._filtered(select(t), *self._where(t, criteria), self._search_clause(t, search))
        for column, descending in order_by:
            stmt = stmt.order_by(t.c[column].desc() if descending else t.c[column].asc())
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._translate_errors(t), self.engine.connect() as conn:
            return [self._to_dict(t, row) for row in conn.execute(stmt).mappings()]

    def count(self, table: str, *, search: tuple[Iterable[str], str] | None = None, **criteria) -> int:
        t = self._table(table)
        stmt = self._filtered(
            select(func.count()).select_from(t), *self._where(t, criteria), self._search_clause(t, search)
        )
        with self._translate_errors(t), self.engine.connect() as conn:
            return conn.execute(stmt).scalar_one()

    def update(self, table: str, criteria: dict, values: dict) -> int:
        t = self._table(table)
        with self._translate_errors(t), self.engine.begin() as conn:
            result = conn.execute(self._filtered(update(t), *self._where(t, criteria)).values(**values))
            return result.rowcount

    def conditional_update(self, table: str, key: dict, expected: dict, values: dict) -> dict | None:
        t = self._table(table)
        with self._translate_errors(t), self.engine.begin() as conn:
            result = conn.execute(
                update(t).where(*self._where(t, key), *self._where(t, expected)).values(**values)
            )
            if result.rowcount == 0:
                return None
            return self._select_one(conn, t, key)

    def upsert(self, table: str, row: dict, conflict_keys: tuple[str, ...]) -> dict:
        t = self._table(table)
        criteria = {column: row[column] for column in conflict_keys}
        with self._translate_errors(t), self.engine.begin() as conn:
            result = conn.execute(update(t).where(*self._where(t, criteria)).values(**row))
            if result.rowcount == 0:
                conn.execute(insert(t).values(**row))
            return self._select_one(conn, t, criteria)

    def delete(self, table: str, **criteria) -> int:
        t = self._table(table)
        with self._translate_errors(t), self.engine.begin() as conn:
            return conn.execute(self._filtered(delete(t), *self._where(t, criteria))).rowcount

    def reset(self) -> None:
        with self.engine.begin() as conn:
            for t in reversed(metadata.sorted_tables):
                conn.execute(delete(t))
