"""Tests for DatabaseService (SQLite backend)."""

import threading

import pytest

from cttdb import StorageError, create_service

PARENT_CHILD_DDL = """
CREATE TABLE parent (code TEXT PRIMARY KEY, name TEXT);
CREATE TABLE child (
    id INTEGER PRIMARY KEY,
    code TEXT NOT NULL REFERENCES parent(code),
    name TEXT,
    UNIQUE (code, name)
);
"""


class TestDatabaseService:
    def test_execute_ddl_and_insert(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, name TEXT)")
        with db_service.transaction():
            db_service.execute("INSERT INTO t (id, name) VALUES (?, ?)", (1, "Lisboa"))
            rows = db_service.execute("SELECT * FROM t")
        assert rows == [{"id": 1, "name": "Lisboa"}]

    def test_execute_many(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with db_service.transaction():
            db_service.execute_many(
                "INSERT INTO t (id, val) VALUES (?, ?)",
                [(1, "a"), (2, "b"), (3, "c")],
            )
            rows = db_service.execute("SELECT * FROM t ORDER BY id")
        assert len(rows) == 3
        assert rows[0]["val"] == "a"

    def test_insert_ignore_skips_duplicates(self, db_service):
        db_service.execute_ddl(PARENT_CHILD_DDL)
        with db_service.transaction():
            db_service.insert_ignore("parent", ["code", "name"], [("11", "Lisboa")])
        with db_service.transaction():
            db_service.insert_ignore(
                "parent", ["code", "name"], [("11", "Renamed"), ("07", "Évora")]
            )
            rows = db_service.execute("SELECT * FROM parent ORDER BY code")
        assert rows == [{"code": "07", "name": "Évora"}, {"code": "11", "name": "Lisboa"}]

    def test_insert_ignore_still_enforces_foreign_keys(self, db_service):
        db_service.execute_ddl(PARENT_CHILD_DDL)
        with pytest.raises(StorageError):
            with db_service.transaction():
                db_service.insert_ignore("child", ["code", "name"], [("99", "orphan")])

    def test_insert_ignore_empty_rows(self, db_service):
        db_service.execute_ddl(PARENT_CHILD_DDL)
        with db_service.transaction():
            db_service.insert_ignore("parent", ["code", "name"], [])
            rows = db_service.execute("SELECT * FROM parent")
        assert rows == []

    def test_execute_update_returns_rowcount(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with db_service.transaction():
            db_service.execute_many(
                "INSERT INTO t (id, val) VALUES (?, ?)", [(1, None), (2, None), (3, "set")]
            )
            updated = db_service.execute_update("UPDATE t SET val = 'x' WHERE val IS NULL")
        assert updated == 2

    def test_transaction_rollback_on_error(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with pytest.raises(ValueError):
            with db_service.transaction():
                db_service.execute("INSERT INTO t (id, val) VALUES (?, ?)", (1, "x"))
                raise ValueError("simulated failure")

        with db_service.transaction():
            rows = db_service.execute("SELECT * FROM t")
        assert rows == []

    def test_driver_error_becomes_storage_error(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val TEXT)")
        with pytest.raises(StorageError) as exc_info:
            with db_service.transaction():
                db_service.execute("INSERT INTO t (id, val) VALUES (?, ?)", (1, "x"))
                db_service.execute("INSERT INTO t (id, val) VALUES (?, ?)", (1, "dup"))
        assert exc_info.value.__cause__ is not None

        with db_service.transaction():
            rows = db_service.execute("SELECT * FROM t")
        assert rows == []

    def test_requires_transaction(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY)")
        with pytest.raises(RuntimeError, match="No active transaction"):
            db_service.execute("SELECT 1")

    def test_truncate_tables_with_foreign_keys(self, db_service):
        db_service.execute_ddl(PARENT_CHILD_DDL)
        with db_service.transaction():
            db_service.insert_ignore("parent", ["code", "name"], [("11", "Lisboa")])
            db_service.insert_ignore("child", ["code", "name"], [("11", "Cascais")])

        # Parent first would violate the foreign key if checks were active.
        db_service.truncate_tables(["parent", "child"])

        with db_service.transaction():
            parents = db_service.execute("SELECT * FROM parent")
            children = db_service.execute("SELECT * FROM child")
        assert parents == [] and children == []

    def test_foreign_keys_restored_after_truncate(self, db_service):
        db_service.execute_ddl(PARENT_CHILD_DDL)
        db_service.truncate_tables(["child", "parent"])
        with pytest.raises(StorageError):
            with db_service.transaction():
                db_service.insert_ignore("child", ["code", "name"], [("99", "orphan")])

    def test_table_exists(self, db_service):
        assert db_service.table_exists("parent") is False
        db_service.execute_ddl(PARENT_CHILD_DDL)
        assert db_service.table_exists("parent") is True
        assert db_service.table_exists("child") is True

    def test_concurrent_transactions(self, db_service):
        db_service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY, val INTEGER)")
        errors = []

        def worker(n):
            try:
                with db_service.transaction():
                    db_service.execute("INSERT INTO t (id, val) VALUES (?, ?)", (n, n * 10))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        with db_service.transaction():
            rows = db_service.execute("SELECT * FROM t ORDER BY id")
        assert len(rows) == 4


class TestCreateService:
    def test_sqlite_memory_uses_single_connection(self):
        service = create_service("sqlite:///:memory:")
        service.connect()
        try:
            service.execute_ddl("CREATE TABLE t (id INTEGER PRIMARY KEY)")
            with service.transaction():
                service.execute("INSERT INTO t (id) VALUES (1)")
            with service.transaction():
                rows = service.execute("SELECT * FROM t")
        finally:
            service.close()
        assert rows == [{"id": 1}]

    def test_dialect_attributes(self, db_service):
        assert db_service.dialect == "sqlite"
        assert db_service.placeholder == "?"

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError, match="Unsupported database URL"):
            create_service("mysql://localhost/ctt")
