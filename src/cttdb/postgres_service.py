"""PostgreSQL implementation of DatabaseService."""

import threading
from contextlib import contextmanager
from queue import Empty, Queue
from typing import Iterator

import psycopg2
import psycopg2.extras

from cttdb.service import DatabaseService
from cttdb.types import Params, ParamsList, Row, StorageError


class PostgresDatabaseService(DatabaseService):
    """PostgreSQL backend using psycopg2.

    Thread-safe via a connection pool (Queue). Each transaction() call
    acquires a dedicated connection and returns it on exit. Bulk writes go
    through ``execute_values`` so one chunk is one multi-row statement.
    """

    dialect = "postgresql"
    placeholder = "%s"

    def __init__(self, dsn: str, pool_size: int = 4):
        self._dsn = dsn
        self._pool_size = pool_size
        self._pool: Queue = Queue(maxsize=pool_size)
        self._local = threading.local()

    def connect(self) -> None:
        for _ in range(self._pool_size):
            conn = psycopg2.connect(self._dsn)
            conn.autocommit = False
            self._pool.put(conn)

    def close(self) -> None:
        while not self._pool.empty():
            try:
                conn = self._pool.get_nowait()
                conn.close()
            except Empty:
                break

    def _acquire(self):
        return self._pool.get(timeout=30)

    def _release(self, conn) -> None:
        self._pool.put(conn)

    def _get_conn(self):
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        raise RuntimeError(
            "No active transaction. Wrap calls in a `with service.transaction():` block."
        )

    @contextmanager
    def transaction(self) -> Iterator[None]:
        conn = self._acquire()
        self._local.conn = conn
        try:
            yield
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            raise StorageError(f"PostgreSQL error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            self._local.conn = None
            self._release(conn)

    def execute(self, sql: str, params: Params | None = None) -> list[Row]:
        conn = self._get_conn()
        with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(sql, params or ())
            if cur.description is None:
                return []
            return [dict(row) for row in cur.fetchall()]

    def execute_update(self, sql: str, params: Params | None = None) -> int:
        conn = self._get_conn()
        with conn.cursor() as cur:
            cur.execute(sql, params or ())
            return cur.rowcount

    def execute_many(self, sql: str, params_list: ParamsList) -> None:
        conn = self._get_conn()
        with conn.cursor() as cur:
            cur.executemany(sql, params_list)

    def execute_ddl(self, sql: str) -> None:
        conn = self._acquire()
        try:
            with conn.cursor() as cur:
                for statement in sql.split(";"):
                    statement = statement.strip()
                    if statement:
                        cur.execute(statement)
            conn.commit()
        except psycopg2.Error:
            conn.rollback()
            raise
        finally:
            self._release(conn)

    def table_exists(self, table: str) -> bool:
        conn = self._acquire()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT to_regclass(%s)", (table,))
                found = cur.fetchone()[0] is not None
            conn.commit()
            return found
        finally:
            self._release(conn)

    def truncate_tables(self, tables: list[str]) -> None:
        # A single TRUNCATE naming every table skips the per-table
        # foreign-key check that separate statements would hit.
        if not tables:
            return
        conn = self._acquire()
        try:
            with conn.cursor() as cur:
                cur.execute(f"TRUNCATE TABLE {', '.join(tables)} RESTART IDENTITY")
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            raise StorageError(f"PostgreSQL error truncating {tables}: {e}") from e
        finally:
            self._release(conn)

    def insert_ignore(self, table: str, columns: list[str], rows: list[tuple]) -> None:
        if not rows:
            return
        conn = self._get_conn()
        cols = ", ".join(columns)
        sql = f"INSERT INTO {table} ({cols}) VALUES %s ON CONFLICT DO NOTHING"
        with conn.cursor() as cur:
            psycopg2.extras.execute_values(cur, sql, rows, page_size=len(rows))
