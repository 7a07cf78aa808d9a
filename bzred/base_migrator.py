"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Common functionality of the entity migrators.

A migrator owns one family of Redmine tables. ``clear()`` empties the
family and each ``migrate_*`` method streams Bugzilla rows into it,
returning the number of source rows it consumed.
"""

import logging
from collections.abc import Mapping
from typing import Any, ClassVar

from bzred.core.config import MigrationConfig
from bzred.core.db_manager import SQLStore

logger = logging.getLogger("bzred.base_migrator")


class EntityMigrator:
    """Base class for the entity migrators."""

    # Redmine tables emptied by clear(), in statement order
    CLEAR_TABLES: ClassVar[tuple[str, ...]] = ()

    def __init__(self, source: SQLStore, target: SQLStore, config: MigrationConfig):
        """
        Initialize the migrator.

        Args:
            source: The Bugzilla store
            target: The Redmine store
            config: Migration settings

        """
        self.source = source
        self.target = target
        self.config = config

    def clear(self) -> None:
        """Delete every row of the tables this migrator owns."""
        for table in self.CLEAR_TABLES:
            self.delete_all(table)

    def delete_all(self, table: str) -> None:
        logger.info(f"Clearing Redmine table {table}")
        self.target.execute(f"DELETE FROM {table}")

    def insert(self, table: str, values: Mapping[str, Any]) -> int | None:
        """
        Insert one row into a Redmine table.

        Args:
            table: Target table name
            values: Column name -> value

        Returns:
            The id assigned by the database, if any

        """
        columns = ", ".join(values)
        binds = ", ".join(f":{column}" for column in values)
        return self.target.execute(f"INSERT INTO {table} ({columns}) VALUES ({binds})", values)
