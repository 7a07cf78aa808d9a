"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Tests for the SQLStore adapter.

These tests run against SQLite files in a temporary directory.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import bindparam, text

from bzred.core.config import DatabaseConfig
from bzred.core.db_manager import SQLStore, open_stores
from bzred.exceptions import StoreIOFailure
from tests.fixtures.stores import create_database

SCHEMA = [
    "CREATE TABLE items (id INTEGER PRIMARY KEY, name VARCHAR(30), payload BLOB)",
    "INSERT INTO items (id, name) VALUES (1, 'one'), (2, 'two'), (3, 'three')",
]


@pytest.fixture
def store_config(tmp_path):
    path = create_database(tmp_path / "items.db", SCHEMA)
    return DatabaseConfig(db_type="sqlite", db_path=str(path))


@pytest.fixture
def store(store_config):
    store = SQLStore.from_config("items", store_config).open()
    yield store
    store.close()


@pytest.mark.unit
@pytest.mark.db
class TestSQLStore:
    """Test cases for the SQLStore class."""

    def test_select_yields_mappings(self, store):
        rows = list(store.select("SELECT id, name FROM items ORDER BY id"))

        assert [row["name"] for row in rows] == ["one", "two", "three"]

    def test_select_is_lazy(self, store):
        rows = store.select("SELECT id FROM items ORDER BY id")
        assert next(rows)["id"] == 1
        rows.close()

    def test_streamed_select(self, store):
        rows = store.select("SELECT id FROM items ORDER BY id", stream=True)

        assert [row["id"] for row in rows] == [1, 2, 3]
        assert store.scalar("SELECT COUNT(*) FROM items") == 3

    def test_query_during_stream_raises(self, store):
        rows = store.select("SELECT id FROM items ORDER BY id", stream=True)
        assert next(rows)["id"] == 1

        with pytest.raises(StoreIOFailure) as excinfo:
            store.scalar("SELECT COUNT(*) FROM items")
        assert "streamed select" in str(excinfo.value)
        with pytest.raises(StoreIOFailure):
            store.execute("DELETE FROM items")

        # The stream itself is unaffected
        assert [row["id"] for row in rows] == [2, 3]

    def test_closing_a_stream_releases_the_store(self, store):
        rows = store.select("SELECT id FROM items ORDER BY id", stream=True)
        next(rows)
        rows.close()

        assert store.scalar("SELECT COUNT(*) FROM items") == 3

    def test_buffered_select_allows_lookups(self, store):
        names = [
            store.scalar("SELECT name FROM items WHERE id = :id", {"id": row["id"]})
            for row in store.select("SELECT id FROM items ORDER BY id")
        ]
        assert names == ["one", "two", "three"]

    def test_select_with_params(self, store):
        rows = store.select_all("SELECT name FROM items WHERE id > :min_id", {"min_id": 1})
        assert len(rows) == 2

    def test_select_expanding_bind(self, store):
        query = text("SELECT id FROM items WHERE name NOT IN :names ORDER BY id").bindparams(
            bindparam("names", expanding=True),
        )
        rows = store.select_all(query, {"names": ["one", "three"]})
        assert [row["id"] for row in rows] == [2]

    def test_scalar(self, store):
        assert store.scalar("SELECT MAX(id) FROM items") == 3
        assert store.scalar("SELECT id FROM items WHERE id = :id", {"id": 99}) is None

    def test_exists(self, store):
        assert store.exists("SELECT id FROM items WHERE id = :id", {"id": 2})
        assert not store.exists("SELECT id FROM items WHERE id = :id", {"id": 99})

    def test_execute_returns_generated_id(self, store):
        new_id = store.execute("INSERT INTO items (name) VALUES (:name)", {"name": "four"})

        assert new_id == 4
        assert store.last_insert_id == 4
        assert store.statement_count == 1

    def test_execute_is_autocommitted(self, store, store_config):
        store.execute("DELETE FROM items WHERE id = :id", {"id": 1})

        with SQLStore.from_config("reader", store_config) as reader:
            assert reader.scalar("SELECT COUNT(*) FROM items") == 2

    def test_delete_has_no_insert_id(self, store):
        assert store.execute("DELETE FROM items") is None
        assert store.last_insert_id is None

    def test_reads_do_not_count_as_statements(self, store):
        store.select_all("SELECT * FROM items")
        store.scalar("SELECT COUNT(*) FROM items")
        assert store.statement_count == 0

    def test_binary_payload(self, store):
        store.execute("UPDATE items SET payload = :data WHERE id = 1", {"data": b"\x00\xff"})
        assert bytes(store.scalar("SELECT payload FROM items WHERE id = 1")) == b"\x00\xff"

    def test_failure_is_wrapped(self, store):
        with pytest.raises(StoreIOFailure) as excinfo:
            store.execute("INSERT INTO missing_table (id) VALUES (1)")

        error = excinfo.value
        assert error.store == "items"
        assert "missing_table" in error.statement
        assert error.__cause__ is not None

    def test_select_failure_is_wrapped(self, store):
        with pytest.raises(StoreIOFailure):
            list(store.select("SELECT nope FROM items"))

    def test_closed_store_raises(self, store_config):
        store = SQLStore.from_config("items", store_config)
        with pytest.raises(StoreIOFailure):
            store.scalar("SELECT 1")

    def test_close_is_idempotent(self, store_config):
        store = SQLStore.from_config("items", store_config).open()
        store.close()
        store.close()


@pytest.mark.unit
@pytest.mark.db
class TestOpenStores:
    """Tests for the open_stores context manager."""

    def test_opens_from_configs(self, store_config):
        with open_stores(store_config, store_config) as (source, target):
            assert source.name == "bugzilla"
            assert target.name == "redmine"
            assert source.scalar("SELECT COUNT(*) FROM items") == 3

    def test_closes_both_on_error(self):
        source, target = MagicMock(spec=SQLStore), MagicMock(spec=SQLStore)

        with pytest.raises(RuntimeError):
            with open_stores(source, target):
                raise RuntimeError("stage failed")

        source.close.assert_called_once()
        target.close.assert_called_once()

    def test_closes_target_when_source_close_fails(self):
        source, target = MagicMock(spec=SQLStore), MagicMock(spec=SQLStore)
        source.close.side_effect = StoreIOFailure("bugzilla", "", "gone")

        with pytest.raises(StoreIOFailure):
            with open_stores(source, target):
                pass

        target.close.assert_called_once()
