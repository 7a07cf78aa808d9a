"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Enumeration mapping between Bugzilla codes and Redmine ids.

Bugzilla stores priorities, severities and statuses as strings; Redmine
stores issue priorities, trackers and issue statuses as rows referenced by
id. The mapper translates one into the other using explicit, finite tables
taken from the settings file.
"""

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from bzred.core.config import EnumerationConfig
from bzred.exceptions import UnmappedEnumeration

logger = logging.getLogger("bzred.enumeration_mapping")


class EnumerationDomain(str, Enum):
    """Enumeration domains that are mapped from Bugzilla to Redmine."""

    PRIORITY = "priority"
    SEVERITY = "severity"  # Bugzilla severity -> Redmine tracker
    STATUS = "status"


class EnumerationMapper:
    """
    Translates Bugzilla enumeration codes into Redmine ids.

    Matching is exact. Only the severity domain may fall back to a default
    tracker; priorities and statuses without a mapping raise
    :class:`UnmappedEnumeration`.
    """

    def __init__(
        self,
        priorities: Mapping[str, int],
        trackers: Mapping[str, int],
        statuses: Mapping[str, int],
        default_tracker_id: int | None = None,
    ):
        """
        Initialize the mapper.

        Args:
            priorities: Bugzilla priority -> Redmine priority id
            trackers: Bugzilla severity -> Redmine tracker id
            statuses: Bugzilla status -> Redmine issue status id
            default_tracker_id: Tracker for unmapped severities, or None

        """
        self._mappings: dict[EnumerationDomain, dict[str, int]] = {
            EnumerationDomain.PRIORITY: dict(priorities),
            EnumerationDomain.SEVERITY: dict(trackers),
            EnumerationDomain.STATUS: dict(statuses),
        }
        self._defaults: dict[EnumerationDomain, int | None] = {
            EnumerationDomain.PRIORITY: None,
            EnumerationDomain.SEVERITY: default_tracker_id,
            EnumerationDomain.STATUS: None,
        }

    @classmethod
    def from_config(cls, config: EnumerationConfig) -> "EnumerationMapper":
        """Create a mapper from the enumeration section of the settings."""
        return cls(
            priorities=config.priorities,
            trackers=config.trackers,
            statuses=config.statuses,
            default_tracker_id=config.default_tracker_id,
        )

    def map(self, domain: EnumerationDomain, code: Any, entity_id: Any = None) -> int:
        """
        Map a Bugzilla code to its Redmine id.

        Args:
            domain: The enumeration domain
            code: The Bugzilla code
            entity_id: Id of the record being migrated, for error context

        Returns:
            The Redmine id

        Raises:
            UnmappedEnumeration: If the code has no mapping and the domain
                has no default

        """
        domain = EnumerationDomain(domain)
        target_id = self._mappings[domain].get(code)
        if target_id is not None:
            return target_id

        default = self._defaults[domain]
        if default is None:
            raise UnmappedEnumeration(domain.value, code, entity_id)

        logger.debug(f"bug {entity_id}: {domain.value} {code!r} has no mapping, using {default}")
        return default

    def map_priority(self, code: Any, entity_id: Any = None) -> int:
        return self.map(EnumerationDomain.PRIORITY, code, entity_id)

    def map_tracker(self, severity: Any, entity_id: Any = None) -> int:
        return self.map(EnumerationDomain.SEVERITY, severity, entity_id)

    def map_status(self, code: Any, entity_id: Any = None) -> int:
        return self.map(EnumerationDomain.STATUS, code, entity_id)

    def codes(self, domain: EnumerationDomain) -> list[str]:
        """Return the Bugzilla codes that have a mapping in the domain."""
        return list(self._mappings[EnumerationDomain(domain)])

    def target_ids(self, domain: EnumerationDomain) -> list[int]:
        """Return the distinct Redmine ids the domain maps to, in first-seen order."""
        return list(dict.fromkeys(self._mappings[EnumerationDomain(domain)].values()))

    def default_for(self, domain: EnumerationDomain) -> int | None:
        """Return the fallback id of the domain, or None when it has none."""
        return self._defaults[EnumerationDomain(domain)]

    def has_default(self, domain: EnumerationDomain) -> bool:
        return self.default_for(domain) is not None
