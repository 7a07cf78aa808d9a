"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
SQLAlchemy-based access to the Bugzilla and Redmine databases.

Each store holds exactly one connection for the whole run. Statements are
plain SQL with named binds executed through ``sqlalchemy.text``; the
connection runs in autocommit mode, so every statement is durable as soon
as it returns and a failed run leaves the target partially migrated.
"""

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event, exc, text
from sqlalchemy.engine import Connection, Engine, RowMapping
from sqlalchemy.pool import NullPool
from sqlalchemy.sql.elements import TextClause

from bzred.core.config import DatabaseConfig
from bzred.exceptions import StoreIOFailure

logger = logging.getLogger(__name__)

# Upper bound on the characters of a statement or parameter value in logs
_LOG_LIMIT = 200


def _short(value: Any) -> str:
    if isinstance(value, bytes | bytearray | memoryview):
        return f"<{len(value)} bytes>"
    text_value = str(value)
    if len(text_value) > _LOG_LIMIT:
        return text_value[:_LOG_LIMIT] + "..."
    return text_value


class SQLStore:
    """
    One named database (``bugzilla`` or ``redmine``) behind a single connection.

    The store is opened once, used sequentially, and closed unconditionally
    by :func:`open_stores` or its own context manager protocol.
    """

    def __init__(self, name: str, engine: Engine):
        """
        Initialize the store.

        Args:
            name: Store name used in logs and errors
            engine: SQLAlchemy engine for the database

        """
        self.name = name
        self.engine = engine
        self.statement_count = 0
        self.last_insert_id: int | None = None
        self._connection: Connection | None = None
        self._streaming = False

    @classmethod
    def from_config(cls, name: str, config: DatabaseConfig) -> "SQLStore":
        """
        Create a store from a database configuration.

        Args:
            name: Store name used in logs and errors
            config: Connection settings

        Returns:
            SQLStore: The (not yet opened) store

        """
        kwargs: dict[str, Any] = {"echo": config.echo}
        if config.db_type == "sqlite":
            # Use NullPool for SQLite, the run holds its only connection anyway
            kwargs["poolclass"] = NullPool
        else:
            kwargs["pool_size"] = 1
            kwargs["max_overflow"] = 0
            kwargs["pool_pre_ping"] = True
            kwargs["connect_args"] = {"connect_timeout": config.connect_timeout}

        engine = create_engine(config.get_connection_string(), **kwargs)
        if config.db_type == "sqlite":
            _configure_sqlite(engine)

        logger.info(f"{name}: using {config.get_sanitized_connection_string()}")
        return cls(name, engine)

    def open(self) -> "SQLStore":
        """Open the store connection in autocommit mode."""
        if self._connection is None:
            logger.info(f"Opening {self.name} connection")
            try:
                connection = self.engine.connect()
                self._connection = connection.execution_options(isolation_level="AUTOCOMMIT")
            except exc.SQLAlchemyError as e:
                raise StoreIOFailure(self.name, "connect", str(e)) from e
        return self

    def close(self) -> None:
        """Close the store connection and release the engine."""
        if self._connection is not None:
            logger.info(f"Closing {self.name} connection")
            try:
                self._connection.close()
            finally:
                self._connection = None
                self._streaming = False
                self.engine.dispose()

    def __enter__(self) -> "SQLStore":
        return self.open()

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            raise StoreIOFailure(self.name, "", "store is not open")
        return self._connection

    def _log(self, sql: str | TextClause, params: Mapping[str, Any] | None) -> None:
        if logger.isEnabledFor(logging.DEBUG):
            args = ",".join(f"{k}={_short(v)}" for k, v in (params or {}).items())
            statement = " ".join(str(sql).split())
            logger.debug(f"{self.name}: {_short(statement)} args={args}")

    def _run(self, sql: str | TextClause, params: Mapping[str, Any] | None, stream: bool = False):
        self._log(sql, params)
        statement = text(sql) if isinstance(sql, str) else sql
        if self._streaming:
            # One connection cannot serve a second statement while a server-side cursor is open
            raise StoreIOFailure(self.name, str(statement), "a streamed select is still open")
        options = {"stream_results": True} if stream else {}
        try:
            return self.connection.execute(statement, dict(params or {}), execution_options=options)
        except exc.SQLAlchemyError as e:
            raise StoreIOFailure(self.name, str(statement), str(e)) from e

    def select(
        self,
        sql: str | TextClause,
        params: Mapping[str, Any] | None = None,
        stream: bool = False,
    ) -> Iterator[RowMapping]:
        """
        Run a query and yield its rows one at a time.

        A streamed select reads through a server-side cursor, so rows are
        not buffered by the driver. The store accepts no other statement
        until the stream is exhausted or closed.

        Args:
            sql: SQL text or a prepared ``text()`` clause
            params: Named bind parameters
            stream: Use a server-side cursor

        Yields:
            RowMapping: Row addressable by column name

        """
        result = self._run(sql, params, stream=stream)
        if stream:
            self._streaming = True
        try:
            while True:
                try:
                    row = result.fetchone()
                except exc.SQLAlchemyError as e:
                    raise StoreIOFailure(self.name, str(sql), str(e)) from e
                if row is None:
                    break
                yield row._mapping
        finally:
            if stream:
                self._streaming = False
            result.close()

    def select_all(
        self, sql: str | TextClause, params: Mapping[str, Any] | None = None,
    ) -> list[RowMapping]:
        """Run a query and return every row, for reads that precede writes."""
        return list(self.select(sql, params))

    def scalar(self, sql: str | TextClause, params: Mapping[str, Any] | None = None) -> Any:
        """Run a query and return the first column of the first row, or None."""
        result = self._run(sql, params)
        try:
            return result.scalar()
        except exc.SQLAlchemyError as e:
            raise StoreIOFailure(self.name, str(sql), str(e)) from e

    def exists(self, sql: str | TextClause, params: Mapping[str, Any] | None = None) -> bool:
        """Return True when the query yields at least one row."""
        result = self._run(sql, params)
        try:
            return result.first() is not None
        except exc.SQLAlchemyError as e:
            raise StoreIOFailure(self.name, str(sql), str(e)) from e

    def execute(self, sql: str | TextClause, params: Mapping[str, Any] | None = None) -> int | None:
        """
        Execute a mutating statement.

        Args:
            sql: SQL text or a prepared ``text()`` clause
            params: Named bind parameters

        Returns:
            The id generated by the statement when the database assigned one

        """
        result = self._run(sql, params)
        self.statement_count += 1
        self.last_insert_id = result.lastrowid if result.lastrowid else None
        result.close()
        return self.last_insert_id


def _configure_sqlite(engine: Engine) -> None:
    """Configure SQLite connections."""

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()


@contextmanager
def open_stores(
    source: SQLStore | DatabaseConfig, target: SQLStore | DatabaseConfig,
) -> Iterator[tuple[SQLStore, SQLStore]]:
    """
    Open the Bugzilla and Redmine stores for the duration of a run.

    Both connections are released when the block exits, whether it
    completed or raised.

    Args:
        source: The Bugzilla store or its configuration
        target: The Redmine store or its configuration

    Yields:
        Tuple of (source store, target store)

    """
    if isinstance(source, DatabaseConfig):
        source = SQLStore.from_config("bugzilla", source)
    if isinstance(target, DatabaseConfig):
        target = SQLStore.from_config("redmine", target)

    try:
        source.open()
        target.open()
        yield source, target
    finally:
        try:
            source.close()
        finally:
            target.close()
