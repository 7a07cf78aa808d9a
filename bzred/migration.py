"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Migration driver for moving a Bugzilla database into Redmine.

The run is a strict linear pipeline: the sanity checks first, then one
stage per entity family in foreign-key dependency order. Nothing is
retried and a failing stage aborts the run. Every statement is committed
as it runs, so a failed run leaves Redmine partially migrated and the fix
is to run again from the start.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from bzred.attachment_migrator import AttachmentMigrator
from bzred.core.config import AppConfig
from bzred.core.db_manager import SQLStore
from bzred.core.logging import log_operation
from bzred.derived_values import DerivedValueResolver
from bzred.directory import LdapLoginDirectory, LoginDirectory, NullDirectory
from bzred.enumeration_mapping import EnumerationMapper
from bzred.issue_migrator import IssueMigrator
from bzred.project_migrator import ProjectMigrator
from bzred.sanity_checks import ValidationGate
from bzred.user_migrator import UserMigrator

logger = logging.getLogger("bzred.migration")


class MigrationStage(str, Enum):
    """Stages of a run, in execution order."""

    PROJECTS = "projects"
    VERSIONS = "versions"
    USERS = "users"
    GROUPS = "groups"
    MEMBERS = "members"
    MEMBER_ROLES = "member_roles"
    GROUPS_USERS = "groups_users"
    CATEGORIES = "categories"
    ISSUES = "issues"
    TIME_ENTRIES = "time_entries"
    WATCHERS = "watchers"
    ISSUE_RELATIONS = "issue_relations"
    ATTACHMENTS = "attachments"


class StageStatus(str, Enum):
    NOT_STARTED = "not_started"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class StageResult:
    """Outcome of one stage."""

    stage: MigrationStage
    status: StageStatus = StageStatus.NOT_STARTED
    count: int = 0
    duration: float = 0.0
    error: str | None = None


class BugzillaToRedmineMigration:
    """
    Runs the sanity checks and every migration stage against two open stores.

    The stores must stay open for the lifetime of the migration; see
    :func:`bzred.core.db_manager.open_stores`.
    """

    def __init__(
        self,
        gate: ValidationGate,
        projects: ProjectMigrator,
        users: UserMigrator,
        issues: IssueMigrator,
        attachments: AttachmentMigrator,
        directory: LoginDirectory | None = None,
    ):
        """
        Initialize the migration.

        Args:
            gate: The sanity checks run before any mutation
            projects: Migrator for products, versions and components
            users: Migrator for profiles, groups and memberships
            issues: Migrator for bugs and their dependent records
            attachments: Migrator for attachments
            directory: Login directory used by the user stage

        """
        self.gate = gate
        self.projects = projects
        self.users = users
        self.issues = issues
        self.attachments = attachments
        self.directory = NullDirectory() if directory is None else directory
        self.results: list[StageResult] = []

        self._stages: dict[MigrationStage, Callable[[], int]] = {
            MigrationStage.PROJECTS: self._migrate_projects,
            MigrationStage.VERSIONS: projects.migrate_versions,
            MigrationStage.USERS: self._migrate_users,
            MigrationStage.GROUPS: users.migrate_groups,
            MigrationStage.MEMBERS: users.migrate_members,
            MigrationStage.MEMBER_ROLES: users.migrate_member_roles,
            MigrationStage.GROUPS_USERS: users.migrate_groups_users,
            MigrationStage.CATEGORIES: projects.migrate_categories,
            MigrationStage.ISSUES: issues.migrate_issues,
            MigrationStage.TIME_ENTRIES: issues.migrate_time_entries,
            MigrationStage.WATCHERS: issues.migrate_watchers,
            MigrationStage.ISSUE_RELATIONS: issues.migrate_issue_relations,
            MigrationStage.ATTACHMENTS: attachments.migrate_attachments,
        }

    def check(self) -> None:
        """
        Run the sanity checks only.

        Raises:
            ValidationFailed: If the settings do not cover the source data

        """
        with log_operation(logger, "sanity checks"):
            self.gate.run()

    def run(self) -> list[StageResult]:
        """
        Run the sanity checks and then every stage in order.

        Returns:
            The result of every stage

        Raises:
            MigrationError: The first error raised by the checks or a stage

        """
        self.results = [StageResult(stage) for stage in MigrationStage]
        self.check()

        try:
            for result in self.results:
                self._run_stage(result)
        finally:
            self.directory.close()

        total = sum(result.count for result in self.results)
        logger.info(f"Migration completed: {total} source rows migrated in {len(self.results)} stages")
        return self.results

    def _run_stage(self, result: StageResult) -> None:
        start_time = time.time()
        try:
            with log_operation(logger, f"{result.stage.value} stage"):
                result.count = self._stages[result.stage]()
        except Exception as e:
            result.status = StageStatus.FAILED
            result.error = f"{type(e).__name__}: {e}"
            raise
        else:
            result.status = StageStatus.COMPLETED
            logger.info(f"Migrated {result.count} {result.stage.value}")
        finally:
            result.duration = time.time() - start_time

    def _migrate_projects(self) -> int:
        self.projects.clear()
        return self.projects.migrate_projects()

    def _migrate_users(self) -> int:
        self.users.clear()
        self.directory.open()
        return self.users.migrate_users()


def create_migration(config: AppConfig, source: SQLStore, target: SQLStore) -> BugzillaToRedmineMigration:
    """
    Factory function wiring a migration from the settings and two open stores.

    Args:
        config: The application configuration
        source: The open Bugzilla store
        target: The open Redmine store

    Returns:
        BugzillaToRedmineMigration: A migration ready to check or run

    """
    mapper = EnumerationMapper.from_config(config.enumerations)
    resolver = DerivedValueResolver(source, target)
    settings = config.migration

    if settings.auth_source_id is not None:
        logger.info(f"Directory users enabled with auth source {settings.auth_source_id}")
        directory: LoginDirectory = LdapLoginDirectory(config.ldap)
    else:
        directory = NullDirectory()

    return BugzillaToRedmineMigration(
        gate=ValidationGate(source, target, mapper, default_role_id=settings.default_role_id),
        projects=ProjectMigrator(source, target, settings, resolver),
        users=UserMigrator(source, target, settings, directory),
        issues=IssueMigrator(source, target, settings, mapper, resolver),
        attachments=AttachmentMigrator(source, target, settings),
        directory=directory,
    )
