"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Store fixtures for the BZRED testing framework.

Both stores are SQLite files in a temporary directory, created with the
schemas from :mod:`tests.fixtures.schemas`. The Redmine database comes with
the stock lookup rows (trackers, statuses, priorities, roles).
"""

from collections.abc import Generator, Iterable, Mapping
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy import create_engine, text

from bzred.core.config import AppConfig, DatabaseConfig, EnumerationConfig, MigrationConfig
from bzred.core.db_manager import SQLStore
from tests.fixtures.schemas import (
    BUGZILLA_SCHEMA,
    PRIORITIES,
    REDMINE_LOOKUPS,
    REDMINE_SCHEMA,
    STATUSES,
    TRACKERS,
)


def create_database(path: Path, statements: Iterable[str]) -> Path:
    """Create a SQLite database file and run the given statements in it."""
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as connection:
        for statement in statements:
            connection.execute(text(statement))
    engine.dispose()
    return path


def seed(store: SQLStore, table: str, rows: Iterable[Mapping[str, Any]]) -> None:
    """Insert test rows through a store."""
    for row in rows:
        columns = ", ".join(f'"{column}"' for column in row)
        binds = ", ".join(f":{column}" for column in row)
        store.execute(f'INSERT INTO "{table}" ({columns}) VALUES ({binds})', row)


def rows(store: SQLStore, sql: str, params: Mapping[str, Any] | None = None) -> list[dict]:
    """Return query results as plain dictionaries."""
    return [dict(row) for row in store.select(sql, params)]


@pytest.fixture
def bugzilla_config(tmp_path: Path) -> DatabaseConfig:
    path = create_database(tmp_path / "bugzilla.db", BUGZILLA_SCHEMA)
    return DatabaseConfig(db_type="sqlite", db_path=str(path))


@pytest.fixture
def redmine_config(tmp_path: Path) -> DatabaseConfig:
    path = create_database(tmp_path / "redmine.db", REDMINE_SCHEMA + REDMINE_LOOKUPS)
    return DatabaseConfig(db_type="sqlite", db_path=str(path))


@pytest.fixture
def bugzilla_store(bugzilla_config: DatabaseConfig) -> Generator[SQLStore, None, None]:
    """An open store over an empty Bugzilla database."""
    store = SQLStore.from_config("bugzilla", bugzilla_config).open()
    yield store
    store.close()


@pytest.fixture
def redmine_store(redmine_config: DatabaseConfig) -> Generator[SQLStore, None, None]:
    """An open store over a Redmine database holding only lookup rows."""
    store = SQLStore.from_config("redmine", redmine_config).open()
    yield store
    store.close()


@pytest.fixture
def enumeration_config() -> EnumerationConfig:
    return EnumerationConfig(
        priorities=dict(PRIORITIES),
        trackers=dict(TRACKERS),
        statuses=dict(STATUSES),
        default_tracker_id=1,
    )


@pytest.fixture
def migration_config(tmp_path: Path) -> MigrationConfig:
    return MigrationConfig(
        default_role_id=3,
        default_user_password="changeme",
        attachments_dir=tmp_path / "files",
    )


@pytest.fixture
def app_config(
    bugzilla_config: DatabaseConfig,
    redmine_config: DatabaseConfig,
    enumeration_config: EnumerationConfig,
    migration_config: MigrationConfig,
) -> AppConfig:
    return AppConfig(
        source=bugzilla_config,
        target=redmine_config,
        enumerations=enumeration_config,
        migration=migration_config,
    )
