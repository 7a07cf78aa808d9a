"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Migration of Bugzilla products, versions and components.

Products become Redmine projects (keeping their ids), product versions
become project versions and components become issue categories.
"""

import logging

from bzred.base_migrator import EntityMigrator
from bzred.core.config import MigrationConfig
from bzred.core.db_manager import SQLStore
from bzred.derived_values import DerivedValueResolver
from bzred.tree_allocator import NestedSetAllocator

logger = logging.getLogger("bzred.project_migrator")

# Classification id of Bugzilla's "Unclassified" bucket
UNCLASSIFIED_ID = 1

PROJECT_STATUS_ACTIVE = 1
PROJECT_STATUS_ARCHIVED = 9

PRODUCTS_SQL = """
    SELECT products.id, products.name, products.description,
           products.classification_id, classifications.name AS classification_name
    FROM products, classifications
    WHERE products.classification_id = classifications.id
    ORDER BY products.name
"""

VERSIONS_SQL = "SELECT id, product_id, value FROM versions"

COMPONENTS_SQL = "SELECT id, name, product_id, initialowner FROM components"


def project_status(classification_id: int) -> int:
    """Return the Redmine project status for a product's classification."""
    return PROJECT_STATUS_ARCHIVED if classification_id == UNCLASSIFIED_ID else PROJECT_STATUS_ACTIVE


class ProjectMigrator(EntityMigrator):
    """Migrates products, versions and components."""

    CLEAR_TABLES = (
        "projects",
        "projects_trackers",
        "enabled_modules",
        "boards",
        "custom_fields_projects",
        "documents",
        "news",
        "queries",
        "repositories",
        "time_entries",
        "wiki_content_versions",
        "wiki_contents",
        "wiki_pages",
        "wiki_redirects",
        "wikis",
    )

    def __init__(
        self,
        source: SQLStore,
        target: SQLStore,
        config: MigrationConfig,
        resolver: DerivedValueResolver,
        allocator: NestedSetAllocator | None = None,
    ):
        super().__init__(source, target, config)
        self.resolver = resolver
        self.allocator = NestedSetAllocator() if allocator is None else allocator

    def migrate_projects(self) -> int:
        """Create one project per product, in product name order."""
        count = 0
        # Read up front, the timestamps are looked up per product on the same connection
        for row in self.source.select_all(PRODUCTS_SQL):
            product_id = row["id"]
            position = self.allocator.allocate()
            logger.info(f"Creating project {row['name']} (id {product_id}) at {tuple(position)}")
            self.insert(
                "projects",
                {
                    "id": product_id,
                    "name": row["name"],
                    "description": row["description"],
                    "is_public": 1,
                    "identifier": row["name"].lower(),
                    "created_on": self.resolver.min_created_at(product_id),
                    "updated_on": self.resolver.max_activity_at(product_id),
                    "status": project_status(row["classification_id"]),
                    "lft": position.lft,
                    "rgt": position.rgt,
                },
            )
            self._insert_project_trackers(product_id)
            self._insert_project_modules(product_id)
            count += 1
        return count

    def _insert_project_trackers(self, project_id: int) -> None:
        for tracker_id in self.config.project_tracker_ids:
            self.insert("projects_trackers", {"project_id": project_id, "tracker_id": tracker_id})

    def _insert_project_modules(self, project_id: int) -> None:
        for module in self.config.enabled_modules:
            self.insert("enabled_modules", {"project_id": project_id, "name": module})

    def migrate_versions(self) -> int:
        self.delete_all("versions")
        count = 0
        for row in self.source.select(VERSIONS_SQL):
            self.insert(
                "versions",
                {"id": row["id"], "project_id": row["product_id"], "name": row["value"]},
            )
            count += 1
        return count

    def migrate_categories(self) -> int:
        self.delete_all("issue_categories")
        count = 0
        for row in self.source.select(COMPONENTS_SQL):
            self.insert(
                "issue_categories",
                {
                    "id": row["id"],
                    "name": row["name"],
                    "project_id": row["product_id"],
                    "assigned_to_id": row["initialowner"],
                },
            )
            count += 1
        return count
