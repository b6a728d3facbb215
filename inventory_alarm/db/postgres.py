from __future__ import annotations

import os
from collections.abc import Iterable, Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any

import psycopg2
from psycopg2.extras import Json, RealDictCursor, execute_values

from ..models.row import CellValue, InventoryRow
from .store import RowNotFoundError, StoreError, StoreUnavailableError, StoreWriteError

"""PostgreSQL storage collaborator (psycopg2).

Table layout (see ensure_schema):
    id SERIAL, file_group, sequence_index, data JSON, baseline NUMERIC NULL,
    alarm BOOLEAN, expiry_date DATE NULL

`data` is JSON, not JSONB: JSONB reorders object keys and header order drives
first-match-wins role resolution.

Each public method runs in its own transaction (`with conn:` commits on
success, rolls back on error). psycopg2 errors never escape; they are wrapped
into StoreError subclasses.
"""

__all__ = [
    "DEFAULT_TABLE",
    "PostgresRowStore",
    "resolve_dsn",
]

DEFAULT_TABLE = "inventory_rows"
_SELECT_COLUMNS = "id, file_group, sequence_index, data, baseline, alarm, expiry_date"


def resolve_dsn(db_cfg: Any) -> str:
    """Build the connection DSN.

    Precedence:
        1. DATABASE_URL / PGDSN environment variables (whole DSN)
        2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. the `database` section of the config file
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


def _wrap(exc: Exception, action: str, write: bool) -> StoreError:
    if isinstance(exc, (psycopg2.OperationalError, psycopg2.InterfaceError)):
        return StoreUnavailableError(f"{action}: {exc}")
    if write:
        return StoreWriteError(f"{action}: {exc}")
    return StoreError(f"{action}: {exc}")


def _number(value: Any) -> float | int | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


class PostgresRowStore:
    def __init__(self, connection: Any, table: str = DEFAULT_TABLE, page_size: int = 1000) -> None:
        # identifiers cannot be bound as parameters
        if not table.replace("_", "").isalnum():
            raise ValueError(f"invalid table name: {table!r}")
        self.conn = connection
        self.table = table
        self.page_size = page_size

    @classmethod
    def connect(cls, dsn: str, table: str = DEFAULT_TABLE) -> PostgresRowStore:
        try:
            connection = psycopg2.connect(dsn)
        except psycopg2.Error as e:
            raise StoreUnavailableError(f"connect failed: {e}") from e
        return cls(connection, table=table)

    def close(self) -> None:
        if self.conn is not None and not self.conn.closed:
            self.conn.close()

    def __enter__(self) -> PostgresRowStore:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def ensure_schema(self) -> None:
        sql = (
            f"CREATE TABLE IF NOT EXISTS {self.table} ("
            " id SERIAL PRIMARY KEY,"
            " file_group TEXT NOT NULL,"
            " sequence_index INTEGER NOT NULL,"
            " data JSON NOT NULL,"
            " baseline NUMERIC NULL,"
            " alarm BOOLEAN NOT NULL DEFAULT false,"
            " expiry_date DATE NULL)"
        )
        index_sql = (
            f"CREATE INDEX IF NOT EXISTS idx_{self.table}_file_group"
            f" ON {self.table} (file_group, sequence_index)"
        )
        try:
            with self.conn, self.conn.cursor() as cur:
                cur.execute(sql)
                cur.execute(index_sql)
        except psycopg2.Error as e:
            raise _wrap(e, "ensure_schema", write=True) from e

    @staticmethod
    def _hydrate(record: Mapping[str, Any]) -> InventoryRow:
        return InventoryRow(
            id=record["id"],
            file_group=record["file_group"],
            sequence_index=record["sequence_index"],
            fields=dict(record["data"] or {}),
            baseline=_number(record["baseline"]),
            alarm=bool(record["alarm"]),
            expiry_date=record.get("expiry_date"),
        )

    def _fetch(self, sql: str, params: Sequence[Any], action: str) -> list[InventoryRow]:
        try:
            with self.conn, self.conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(sql, params)
                return [self._hydrate(r) for r in cur.fetchall()]
        except psycopg2.Error as e:
            raise _wrap(e, action, write=False) from e

    def get_row(self, row_id: Any) -> InventoryRow:
        rows = self._fetch(
            f"SELECT {_SELECT_COLUMNS} FROM {self.table} WHERE id = %s",
            (row_id,),
            "get_row",
        )
        if not rows:
            raise RowNotFoundError(row_id)
        return rows[0]

    def range_by_file_group(self, file_group: str) -> list[InventoryRow]:
        return self._fetch(
            f"SELECT {_SELECT_COLUMNS} FROM {self.table} WHERE file_group = %s ORDER BY sequence_index, id",
            (file_group,),
            "range_by_file_group",
        )

    def list_alarming(self, file_group: str | None = None) -> list[InventoryRow]:
        # baseline IS NOT NULL: a stored alarm without a baseline is read as false
        sql = f"SELECT {_SELECT_COLUMNS} FROM {self.table} WHERE alarm AND baseline IS NOT NULL"
        params: list[Any] = []
        if file_group is not None:
            sql += " AND file_group = %s"
            params.append(file_group)
        sql += " ORDER BY file_group, sequence_index"
        return self._fetch(sql, params, "list_alarming")

    def put_row(self, row: InventoryRow) -> None:
        sql = (
            f"UPDATE {self.table} SET data = %s, baseline = %s, alarm = %s, expiry_date = %s"
            " WHERE id = %s"
        )
        try:
            with self.conn, self.conn.cursor() as cur:
                cur.execute(sql, (Json(row.fields), row.baseline, row.alarm, row.expiry_date, row.id))
                updated = cur.rowcount
        except psycopg2.Error as e:
            raise _wrap(e, f"put_row id={row.id}", write=True) from e
        if updated == 0:
            raise RowNotFoundError(row.id)

    def delete_row(self, row_id: Any) -> None:
        try:
            with self.conn, self.conn.cursor() as cur:
                cur.execute(f"DELETE FROM {self.table} WHERE id = %s", (row_id,))
                deleted = cur.rowcount
        except psycopg2.Error as e:
            raise _wrap(e, f"delete_row id={row_id}", write=True) from e
        if deleted == 0:
            raise RowNotFoundError(row_id)

    def append_rows(
        self,
        file_group: str,
        records: Iterable[Mapping[str, CellValue]],
        expiry_dates: Sequence[date | None] | None = None,
    ) -> list[InventoryRow]:
        """Bulk insert new unconfirmed rows with execute_values ... RETURNING."""
        records_list = [dict(r) for r in records]
        if not records_list:
            return []
        insert_sql = (
            f"INSERT INTO {self.table} (file_group, sequence_index, data, baseline, alarm, expiry_date)"
            f" VALUES %s RETURNING {_SELECT_COLUMNS}"
        )
        try:
            with self.conn, self.conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(
                    f"SELECT COALESCE(MAX(sequence_index) + 1, 0) AS n FROM {self.table} WHERE file_group = %s",
                    (file_group,),
                )
                start = cur.fetchone()["n"]
                values = []
                for offset, record in enumerate(records_list):
                    expiry = expiry_dates[offset] if expiry_dates is not None and offset < len(expiry_dates) else None
                    values.append((file_group, start + offset, Json(record), None, False, expiry))
                returned = execute_values(cur, insert_sql, values, page_size=self.page_size, fetch=True)
        except psycopg2.Error as e:
            raise _wrap(e, f"append_rows file_group={file_group}", write=True) from e
        return [self._hydrate(r) for r in returned]
