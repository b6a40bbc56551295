"""Abstract DatabaseService interface."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator

from cttdb.types import Params, ParamsList, Row


class DatabaseService(ABC):
    """Database-agnostic interface for all DB operations.

    Design principles:
    - Stateless: no mutable state beyond the connection pool
    - Thread-safe: each transaction() acquires its own connection
    - DB-agnostic: callers program against this ABC, never a concrete backend

    ``dialect`` names the SQL flavour ("sqlite" or "postgresql") for callers
    that emit their own DDL, and ``placeholder`` is the parameter marker used
    in hand-written statements.
    """

    dialect: str
    placeholder: str

    @abstractmethod
    def connect(self) -> None:
        """Initialize the connection pool."""

    @abstractmethod
    def close(self) -> None:
        """Close all connections and release resources."""

    @abstractmethod
    def execute(self, sql: str, params: Params | None = None) -> list[Row]:
        """Execute a single SQL statement and return rows as dicts."""

    @abstractmethod
    def execute_update(self, sql: str, params: Params | None = None) -> int:
        """Execute an UPDATE/DELETE statement and return the affected row count."""

    @abstractmethod
    def execute_many(self, sql: str, params_list: ParamsList) -> None:
        """Execute a SQL statement for each parameter set."""

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Context manager: acquires a connection, commits on success, rolls back on error.

        Driver errors are re-raised as StorageError.
        """

    @abstractmethod
    def execute_ddl(self, sql: str) -> None:
        """Execute DDL statements (CREATE TABLE, CREATE INDEX, etc.)."""

    @abstractmethod
    def truncate_tables(self, tables: list[str]) -> None:
        """Empty the given tables, in order, with foreign-key checks suspended."""

    @abstractmethod
    def table_exists(self, table: str) -> bool:
        """Whether ``table`` exists in the current database."""

    @abstractmethod
    def insert_ignore(self, table: str, columns: list[str], rows: list[tuple]) -> None:
        """Insert rows, silently skipping any that violate a uniqueness constraint."""
