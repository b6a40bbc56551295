"""SQLite implementation of DatabaseService."""

import sqlite3
import threading
from contextlib import contextmanager
from queue import Empty, Queue
from typing import Iterator

from cttdb.service import DatabaseService
from cttdb.types import Params, ParamsList, Row, StorageError


class SQLiteDatabaseService(DatabaseService):
    """SQLite backend using stdlib sqlite3.

    Thread-safe via a connection pool (Queue). Each transaction() call
    acquires a dedicated connection and returns it on exit. An in-memory
    database is private to its connection, so ``:memory:`` always gets a
    single-connection pool.
    """

    dialect = "sqlite"
    placeholder = "?"

    def __init__(self, db_path: str, pool_size: int = 4):
        self._db_path = db_path
        self._pool_size = 1 if db_path == ":memory:" else pool_size
        self._pool: Queue[sqlite3.Connection] = Queue(maxsize=self._pool_size)
        self._local = threading.local()

    def connect(self) -> None:
        for _ in range(self._pool_size):
            conn = sqlite3.connect(self._db_path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            self._pool.put(conn)

    def close(self) -> None:
        while not self._pool.empty():
            try:
                conn = self._pool.get_nowait()
                conn.close()
            except Empty:
                break

    def _acquire(self) -> sqlite3.Connection:
        return self._pool.get(timeout=30)

    def _release(self, conn: sqlite3.Connection) -> None:
        self._pool.put(conn)

    def _get_conn(self) -> sqlite3.Connection:
        """Get the connection bound to the current transaction."""
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
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"SQLite error: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            self._local.conn = None
            self._release(conn)

    def execute(self, sql: str, params: Params | None = None) -> list[Row]:
        conn = self._get_conn()
        cursor = conn.execute(sql, params or ())
        if cursor.description is None:
            return []
        columns = [desc[0] for desc in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def execute_update(self, sql: str, params: Params | None = None) -> int:
        conn = self._get_conn()
        return conn.execute(sql, params or ()).rowcount

    def execute_many(self, sql: str, params_list: ParamsList) -> None:
        conn = self._get_conn()
        conn.executemany(sql, params_list)

    def execute_ddl(self, sql: str) -> None:
        conn = self._acquire()
        try:
            conn.executescript(sql)
            conn.commit()
        finally:
            self._release(conn)

    def table_exists(self, table: str) -> bool:
        conn = self._acquire()
        try:
            row = conn.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
            ).fetchone()
            return row is not None
        finally:
            self._release(conn)

    def truncate_tables(self, tables: list[str]) -> None:
        # PRAGMA foreign_keys is a no-op inside a transaction, so it is
        # toggled on a pooled connection with nothing pending.
        conn = self._acquire()
        try:
            conn.commit()
            conn.execute("PRAGMA foreign_keys=OFF")
            try:
                for table in tables:
                    conn.execute(f"DELETE FROM {table}")
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise StorageError(f"SQLite error truncating {table}: {e}") from e
            finally:
                conn.execute("PRAGMA foreign_keys=ON")
        finally:
            self._release(conn)

    def insert_ignore(self, table: str, columns: list[str], rows: list[tuple]) -> None:
        if not rows:
            return
        cols = ", ".join(columns)
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {table} ({cols}) VALUES ({placeholders}) ON CONFLICT DO NOTHING"
        self.execute_many(sql, rows)
