"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Pre-flight sanity checks for a migration run.

The gate runs before any statement touches Redmine. It looks for every
Bugzilla bug whose priority, status or severity has no mapping, and for
every mapped Redmine id that does not exist in its lookup table. It collects
all violations before failing so the settings can be fixed in one pass.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqlalchemy import bindparam, text

from bzred.core.db_manager import SQLStore
from bzred.enumeration_mapping import EnumerationDomain, EnumerationMapper
from bzred.exceptions import ValidationFailed

logger = logging.getLogger("bzred.sanity_checks")

# Bugzilla column holding each domain's code
SOURCE_COLUMNS = {
    EnumerationDomain.PRIORITY: "priority",
    EnumerationDomain.SEVERITY: "bug_severity",
    EnumerationDomain.STATUS: "bug_status",
}

# Redmine table holding each domain's ids
TARGET_TABLES = {
    EnumerationDomain.PRIORITY: "enumerations",
    EnumerationDomain.SEVERITY: "trackers",
    EnumerationDomain.STATUS: "issue_statuses",
}

# Settings section to edit for each domain, used in log messages
SETTINGS_KEYS = {
    EnumerationDomain.PRIORITY: "priorities",
    EnumerationDomain.SEVERITY: "trackers",
    EnumerationDomain.STATUS: "statuses",
}


class ViolationKind(str, Enum):
    """Kinds of problems found by the gate."""

    UNMAPPED_CODE = "unmapped_code"
    MISSING_TARGET_ID = "missing_target_id"


@dataclass(frozen=True)
class EnumerationViolation:
    """A single problem found by the gate."""

    kind: ViolationKind
    domain: str
    code: Any = None
    entity_id: Any = None
    target_id: int | None = None
    table: str | None = None

    def describe(self) -> str:
        if self.kind is ViolationKind.UNMAPPED_CODE:
            return f"bug {self.entity_id}: unknown bug {self.domain} {self.code!r}"
        return f"cannot find {self.domain} in {self.table} table with id {self.target_id}"


def _unmapped_codes_query(column: str):
    return text(
        f"SELECT bug_id, {column} AS code FROM bugs "
        f"WHERE {column} NOT IN :codes OR {column} IS NULL ORDER BY bug_id",
    ).bindparams(bindparam("codes", expanding=True))


class ValidationGate:
    """Checks that the enumeration settings cover the source data."""

    def __init__(
        self,
        source: SQLStore,
        target: SQLStore,
        mapper: EnumerationMapper,
        default_role_id: int | None = None,
    ):
        """
        Initialize the gate.

        Args:
            source: The Bugzilla store
            target: The Redmine store
            mapper: The enumeration mapper built from the settings
            default_role_id: Role given to members, checked against ``roles``

        """
        self.source = source
        self.target = target
        self.mapper = mapper
        self.default_role_id = default_role_id

    def run(self) -> None:
        """
        Run every check.

        Raises:
            ValidationFailed: If any violation was found

        """
        violations = self.collect_violations()
        if violations:
            logger.error(f"Sanity checks failed with {len(violations)} violation(s)")
            raise ValidationFailed(violations)
        logger.info("Sanity checks passed")

    def collect_violations(self) -> list[EnumerationViolation]:
        """Run every check and return all violations found."""
        violations: list[EnumerationViolation] = []
        for domain in EnumerationDomain:
            violations.extend(self.check_source_codes(domain))
        for domain in EnumerationDomain:
            violations.extend(self.check_target_ids(domain))
        violations.extend(self.check_defaults())
        return violations

    def check_source_codes(self, domain: EnumerationDomain) -> list[EnumerationViolation]:
        """Find the bugs whose code in the domain has no mapping."""
        logger.info(f"Checking bug {domain.value} codes...")
        has_default = self.mapper.has_default(domain)
        query = _unmapped_codes_query(SOURCE_COLUMNS[domain])

        violations = []
        for row in self.source.select(query, {"codes": self.mapper.codes(domain)}):
            if has_default:
                logger.warning(
                    f"bug {row['bug_id']}: unknown bug {domain.value} {row['code']!r}, "
                    f"using default {self.mapper.default_for(domain)}",
                )
                continue
            violation = EnumerationViolation(
                ViolationKind.UNMAPPED_CODE, domain.value, code=row["code"], entity_id=row["bug_id"],
            )
            logger.error(violation.describe())
            violations.append(violation)

        if violations:
            logger.error(
                f"{len(violations)} bug {domain.value} code(s) cannot be mapped, "
                f"please extend '{SETTINGS_KEYS[domain]}' in the settings",
            )
        return violations

    def check_target_ids(self, domain: EnumerationDomain) -> list[EnumerationViolation]:
        """Find mapped Redmine ids that do not exist in their table."""
        table = TARGET_TABLES[domain]
        return [
            self._missing(domain.value, table, target_id)
            for target_id in self.mapper.target_ids(domain)
            if not self._target_exists(table, target_id)
        ]

    def check_defaults(self) -> list[EnumerationViolation]:
        """Check the default tracker and the default member role."""
        violations = []
        default_tracker = self.mapper.default_for(EnumerationDomain.SEVERITY)
        if default_tracker is not None and not self._target_exists("trackers", default_tracker):
            violations.append(self._missing("default tracker", "trackers", default_tracker))
        if self.default_role_id is not None and not self._target_exists("roles", self.default_role_id):
            violations.append(self._missing("default role", "roles", self.default_role_id))
        return violations

    def _target_exists(self, table: str, target_id: int) -> bool:
        return self.target.exists(f"SELECT id FROM {table} WHERE id = :id", {"id": target_id})

    def _missing(self, domain: str, table: str, target_id: int) -> EnumerationViolation:
        violation = EnumerationViolation(
            ViolationKind.MISSING_TARGET_ID, domain, target_id=target_id, table=table,
        )
        logger.error(violation.describe())
        return violation
