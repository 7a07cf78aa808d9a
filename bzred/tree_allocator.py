"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Nested-set coordinates for migrated Redmine trees.

Redmine stores its project and issue hierarchies as nested sets. Migrated
projects are all roots, so each one gets a ``(lft, rgt)`` pair and the next
project starts a fixed step further on. The step leaves room for one nested
child whether or not the project has one, which wastes some of the
coordinate range but keeps positions in creation order.
"""

from typing import NamedTuple

DEFAULT_STEP = 4


class TreePosition(NamedTuple):
    """Nested-set coordinates of one node."""

    lft: int
    rgt: int


class NestedSetAllocator:
    """Hands out disjoint, strictly increasing nested-set positions."""

    def __init__(self, start: int = 1, step: int = DEFAULT_STEP):
        if start < 1:
            raise ValueError("start must be positive")
        if step < 2:
            raise ValueError("step must leave room for lft and rgt")
        self.step = step
        self._next = start

    def allocate(self) -> TreePosition:
        """Return the position of the next created node."""
        position = TreePosition(self._next, self._next + 1)
        self._next += self.step
        return position


def root_position() -> TreePosition:
    """Position of a node that is the only member of its own tree."""
    return NestedSetAllocator().allocate()
