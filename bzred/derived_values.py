"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Derived values that have no single source column in Bugzilla.

Redmine wants creation and update timestamps on projects, an update
timestamp and a done ratio on issues, a fixed version id resolved by name,
and calendar columns on time entries. This module computes them from the
related Bugzilla rows and the already migrated Redmine rows.
"""

import logging
from datetime import date, datetime
from typing import Any

from bzred.core.db_manager import SQLStore

logger = logging.getLogger("bzred.derived_values")

# Fallback timestamp when no child row carries a real one
SENTINEL_EPOCH = datetime(1970, 1, 1, 10, 22, 25)

# Returned when a version cannot be found by name
UNRESOLVED_VERSION_ID = -1

# Estimates at or below this (including negative ones) give a zero ratio
DONE_RATIO_EPSILON = 1e-3

MIN_CREATED_AT_SQL = """
    SELECT MIN(b.creation_ts) AS ct
    FROM bugs b
    WHERE b.product_id = :product_id
"""

MAX_PRODUCT_ACTIVITY_SQL = """
    SELECT MAX(l.bug_when) AS ct
    FROM bugs b
    JOIN longdescs l ON l.bug_id = b.bug_id
    WHERE b.product_id = :product_id
"""

VERSION_ID_SQL = """
    SELECT id FROM versions
    WHERE project_id = :project_id AND name = :name
"""


def coerce_timestamp(value: Any) -> datetime | None:
    """
    Return a datetime for a driver value.

    MySQL drivers return ``datetime`` objects, SQLite returns ISO strings.

    Args:
        value: The raw column value

    Returns:
        The timestamp, or None for NULL

    """
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value))


def latest_comment_column(bug_column: str) -> str:
    """
    Return a correlated subquery selecting the time of a bug's latest comment.

    Streamed bug queries embed it so that no lookup runs while the stream is
    open. Apply :func:`derived_timestamp` to the selected value.

    Args:
        bug_column: Qualified bug id column of the outer query

    """
    return f"(SELECT MAX(lc.bug_when) FROM longdescs lc WHERE lc.bug_id = {bug_column})"


def derived_timestamp(value: Any) -> datetime:
    """Return the timestamp, or the sentinel epoch when there is none."""
    value = coerce_timestamp(value)
    return SENTINEL_EPOCH if value is None else value


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def compute_done_ratio(estimate: Any, remaining: Any) -> float:
    """
    Compute the percentage of work done from Bugzilla's time tracking fields.

    Args:
        estimate: ``bugs.estimated_time``
        remaining: ``bugs.remaining_time``

    Returns:
        ``(estimate - remaining) / estimate * 100``, or 0.0 when the estimate
        is zero, negative or too small to divide by. Missing or non-numeric
        inputs count as zero.

    """
    estimate = _to_float(estimate)
    remaining = _to_float(remaining)
    if estimate <= DONE_RATIO_EPSILON:
        return 0.0
    return (estimate - remaining) / estimate * 100


def time_entry_calendar(when: Any) -> tuple[date, int, int, int]:
    """
    Derive Redmine's time entry calendar columns from a work log timestamp.

    Returns:
        Tuple of (spent_on, tyear, tmonth, tweek) with an ISO week number

    """
    when = coerce_timestamp(when)
    spent_on = when.date()
    return spent_on, spent_on.year, spent_on.month, spent_on.isocalendar()[1]


class DerivedValueResolver:
    """Looks up values derived from related rows in either store."""

    def __init__(self, source: SQLStore, target: SQLStore):
        """
        Initialize the resolver.

        Args:
            source: The Bugzilla store
            target: The Redmine store

        """
        self.source = source
        self.target = target

    def min_created_at(self, product_id: int) -> datetime:
        """Return the creation time of the product's oldest bug."""
        return derived_timestamp(
            self.source.scalar(MIN_CREATED_AT_SQL, {"product_id": product_id}),
        )

    def max_activity_at(self, product_id: int) -> datetime:
        """Return the time of the latest comment on any of the product's bugs."""
        return derived_timestamp(
            self.source.scalar(MAX_PRODUCT_ACTIVITY_SQL, {"product_id": product_id}),
        )

    def resolve_version_id(self, project_id: int, name: str | None) -> int:
        """
        Find a migrated Redmine version by project and name.

        Not every bug has a version, so a miss is not an error.

        Returns:
            The version id, or ``UNRESOLVED_VERSION_ID``

        """
        if name is None:
            return UNRESOLVED_VERSION_ID
        version_id = self.target.scalar(VERSION_ID_SQL, {"project_id": project_id, "name": name})
        return UNRESOLVED_VERSION_ID if version_id is None else version_id
