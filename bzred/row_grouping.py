"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Folding of ordered parent/child join streams.

A join between a one-row-per-parent table and a one-row-per-child table
repeats the parent columns on every child row. ``fold_rows`` turns such a
stream into one PRIMARY action per parent followed by one SECONDARY action
per remaining child row, without buffering.

The source query must be ordered by the group key. The fold checks that the
keys never decrease and raises :class:`StreamOrderingViolation` otherwise,
since an interleaved stream would produce duplicate parents and orphaned
children.
"""

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from bzred.exceptions import StreamOrderingViolation


class ActionKind(str, Enum):
    """What a folded row should create."""

    PRIMARY = "primary"
    SECONDARY = "secondary"


@dataclass(frozen=True)
class FoldAction:
    """
    A single create action produced by the fold.

    Attributes:
        kind: Whether the row creates the parent or one of its children
        key: The group key (parent id) of the row
        row: The source row
        position: Zero-based index of the row in the stream

    """

    kind: ActionKind
    key: Any
    row: Mapping[str, Any]
    position: int

    @property
    def is_primary(self) -> bool:
        return self.kind is ActionKind.PRIMARY


def fold_rows(
    rows: Iterable[Mapping[str, Any]],
    key: str | Callable[[Mapping[str, Any]], Any],
) -> Iterator[FoldAction]:
    """
    Fold an ordered join stream into primary and secondary create actions.

    Args:
        rows: Rows ordered by the group key, then by the child order
        key: Column name of the group key, or a function extracting it

    Yields:
        FoldAction: PRIMARY for the first row of each group, SECONDARY for
        the other rows of the group, in input order

    Raises:
        StreamOrderingViolation: If a group key is lower than the previous one

    """
    key_of = (lambda row: row[key]) if isinstance(key, str) else key
    previous = None
    started = False

    for position, row in enumerate(rows):
        current = key_of(row)
        if not started or current != previous:
            if started and current < previous:
                raise StreamOrderingViolation(previous, current, position)
            started = True
            previous = current
            yield FoldAction(ActionKind.PRIMARY, current, row, position)
        else:
            yield FoldAction(ActionKind.SECONDARY, current, row, position)
