"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Migration of Bugzilla bugs and the records that hang off them.

Bugs are read joined with their comments, ordered by bug and comment time.
The first row of each bug creates the Redmine issue (its comment becomes
the description) and every later row becomes a journal. Work logs, cc
lists and bug relations follow once all issues exist.
"""

import logging

from bzred.base_migrator import EntityMigrator
from bzred.core.config import MigrationConfig
from bzred.core.db_manager import SQLStore
from bzred.derived_values import (
    UNRESOLVED_VERSION_ID,
    DerivedValueResolver,
    coerce_timestamp,
    compute_done_ratio,
    derived_timestamp,
    latest_comment_column,
    time_entry_calendar,
)
from bzred.enumeration_mapping import EnumerationMapper
from bzred.row_grouping import fold_rows
from bzred.tree_allocator import root_position

logger = logging.getLogger("bzred.issue_migrator")

# Id of the custom field receiving bugs.bug_file_loc
URL_CUSTOM_FIELD_ID = 1

# Redmine time entry comments are varchar(255)
COMMENT_LIMIT = 255

ISSUES_SQL = """
    SELECT b.bug_id, b.assigned_to, b.bug_status, b.creation_ts, b.short_desc,
           b.product_id, b.reporter, b.version, b.estimated_time, b.remaining_time,
           b.deadline, b.bug_severity, b.priority, b.component_id, b.bug_file_loc,
           ld.comment_id, ld.thetext, ld.bug_when, ld.who,
           {latest_comment} AS activity_at
    FROM bugs b, longdescs ld
    WHERE b.bug_id = ld.bug_id
    ORDER BY b.bug_id, ld.bug_when, ld.comment_id
""".format(latest_comment=latest_comment_column("b.bug_id"))

WORK_LOG_SQL = """
    SELECT b.product_id, a.who, a.bug_id, a.work_time, a.thetext, a.bug_when
    FROM longdescs a INNER JOIN bugs b ON b.bug_id = a.bug_id
    WHERE a.work_time <> 0
"""

CC_SQL = "SELECT bug_id, who FROM cc"


class IssueMigrator(EntityMigrator):
    """Migrates bugs, comments, work logs, cc lists and relations."""

    def __init__(
        self,
        source: SQLStore,
        target: SQLStore,
        config: MigrationConfig,
        mapper: EnumerationMapper,
        resolver: DerivedValueResolver,
    ):
        super().__init__(source, target, config)
        self.mapper = mapper
        self.resolver = resolver

    def seed_custom_fields(self) -> None:
        """Create the URL custom field and link it to the project trackers."""
        for table in ("custom_fields", "custom_fields_trackers", "custom_values"):
            self.delete_all(table)

        self.insert(
            "custom_fields",
            {
                "id": URL_CUSTOM_FIELD_ID,
                "type": "IssueCustomField",
                "name": "URL",
                "field_format": "string",
                "possible_values": "--- []\n",
                "max_length": 255,
                "is_for_all": 1,
                "is_filter": 1,
                "searchable": 1,
                "default_value": "",
            },
        )
        for tracker_id in self.config.project_tracker_ids:
            self.insert(
                "custom_fields_trackers",
                {"custom_field_id": URL_CUSTOM_FIELD_ID, "tracker_id": tracker_id},
            )

    def migrate_issues(self) -> int:
        """
        Create issues, their URL custom values and their journals.

        Returns:
            Number of issues created

        """
        self.delete_all("issues")
        self.delete_all("journals")
        self.seed_custom_fields()

        issues = 0
        journals = 0
        for action in fold_rows(self.source.select(ISSUES_SQL, stream=True), "bug_id"):
            if action.is_primary:
                self._insert_issue(action.row)
                issues += 1
            else:
                self._insert_journal(action.row)
                journals += 1
        logger.info(f"Created {issues} issues with {journals} journals")
        return issues

    def _insert_issue(self, row) -> None:
        bug_id = row["bug_id"]
        position = root_position()
        version_id = self.resolver.resolve_version_id(row["product_id"], row["version"])
        if version_id == UNRESOLVED_VERSION_ID:
            version_id = None

        self.insert(
            "issues",
            {
                "id": bug_id,
                "project_id": row["product_id"],
                "subject": row["short_desc"],
                "description": row["thetext"],
                "assigned_to_id": row["assigned_to"],
                "author_id": row["reporter"],
                "created_on": coerce_timestamp(row["creation_ts"]),
                "updated_on": derived_timestamp(row["activity_at"]),
                "start_date": coerce_timestamp(row["creation_ts"]),
                "due_date": row["deadline"],
                "done_ratio": compute_done_ratio(row["estimated_time"], row["remaining_time"]),
                "estimated_hours": row["estimated_time"],
                "priority_id": self.mapper.map_priority(row["priority"], bug_id),
                "fixed_version_id": version_id,
                "category_id": row["component_id"],
                "tracker_id": self.mapper.map_tracker(row["bug_severity"], bug_id),
                "status_id": self.mapper.map_status(row["bug_status"], bug_id),
                "root_id": bug_id,
                "lft": position.lft,
                "rgt": position.rgt,
            },
        )
        self.insert(
            "custom_values",
            {
                "customized_type": "Issue",
                "customized_id": bug_id,
                "custom_field_id": URL_CUSTOM_FIELD_ID,
                "value": row["bug_file_loc"],
            },
        )

    def _insert_journal(self, row) -> None:
        self.insert(
            "journals",
            {
                "id": row["comment_id"],
                "journalized_id": row["bug_id"],
                "journalized_type": "Issue",
                "user_id": row["who"],
                "notes": row["thetext"],
                "created_on": coerce_timestamp(row["bug_when"]),
            },
        )

    def migrate_time_entries(self) -> int:
        self.delete_all("time_entries")
        count = 0
        for row in self.source.select(WORK_LOG_SQL, stream=True):
            when = coerce_timestamp(row["bug_when"])
            spent_on, tyear, tmonth, tweek = time_entry_calendar(when)
            self.insert(
                "time_entries",
                {
                    "project_id": row["product_id"],
                    "user_id": row["who"],
                    "issue_id": row["bug_id"],
                    "hours": row["work_time"],
                    "comments": (row["thetext"] or "")[:COMMENT_LIMIT],
                    "activity_id": self.config.time_entry_activity_id,
                    "spent_on": spent_on,
                    "tyear": tyear,
                    "tmonth": tmonth,
                    "tweek": tweek,
                    "created_on": when,
                    "updated_on": when,
                },
            )
            count += 1
        return count

    def migrate_watchers(self) -> int:
        self.delete_all("watchers")
        count = 0
        for row in self.source.select(CC_SQL, stream=True):
            self.insert(
                "watchers",
                {"watchable_type": "Issue", "watchable_id": row["bug_id"], "user_id": row["who"]},
            )
            count += 1
        return count

    def migrate_issue_relations(self) -> int:
        self.delete_all("issue_relations")
        count = 0
        for relation in self.config.relations:
            logger.info(
                f"Migrating {relation.table} as '{relation.relation_type}' relations "
                f"({relation.from_column} -> {relation.to_column})",
            )
            sql = (
                f"SELECT {relation.from_column} AS issue_from_id, "
                f"{relation.to_column} AS issue_to_id FROM {relation.table}"
            )
            for row in self.source.select(sql):
                self.insert(
                    "issue_relations",
                    {
                        "issue_from_id": row["issue_from_id"],
                        "issue_to_id": row["issue_to_id"],
                        "relation_type": relation.relation_type,
                    },
                )
                count += 1
        return count
