"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of BZRED, licensed under the MIT License.
See LICENSE file for details.
"""

"""Unit tests for folding ordered join streams into create actions."""

import pytest

from bzred.exceptions import StreamOrderingViolation
from bzred.row_grouping import ActionKind, fold_rows


def _rows(*pairs):
    return [{"bug_id": bug_id, "comment_id": comment_id} for bug_id, comment_id in pairs]


@pytest.mark.unit
class TestFoldRows:
    """Test cases for fold_rows."""

    def test_one_primary_per_group(self):
        rows = _rows((1, 10), (1, 11), (1, 12), (2, 20), (3, 30), (3, 31))

        actions = list(fold_rows(rows, "bug_id"))

        assert [a.kind for a in actions] == [
            ActionKind.PRIMARY,
            ActionKind.SECONDARY,
            ActionKind.SECONDARY,
            ActionKind.PRIMARY,
            ActionKind.PRIMARY,
            ActionKind.SECONDARY,
        ]
        assert [a.key for a in actions if a.is_primary] == [1, 2, 3]

    def test_secondary_actions_carry_their_parent_key(self):
        rows = _rows((1, 10), (1, 11), (2, 20), (2, 21), (2, 22))

        actions = list(fold_rows(rows, "bug_id"))

        assert [(a.kind, a.key) for a in actions] == [
            (ActionKind.PRIMARY, 1),
            (ActionKind.SECONDARY, 1),
            (ActionKind.PRIMARY, 2),
            (ActionKind.SECONDARY, 2),
            (ActionKind.SECONDARY, 2),
        ]
        assert [a.row["comment_id"] for a in actions] == [10, 11, 20, 21, 22]

    def test_actions_keep_rows_and_positions(self):
        rows = _rows((1, 10), (1, 11))

        actions = list(fold_rows(rows, "bug_id"))

        assert actions[0].row is rows[0]
        assert actions[1].row["comment_id"] == 11
        assert [a.position for a in actions] == [0, 1]

    def test_single_row(self):
        actions = list(fold_rows(_rows((4, 40)), "bug_id"))
        assert len(actions) == 1
        assert actions[0].is_primary

    def test_empty_stream(self):
        assert list(fold_rows([], "bug_id")) == []

    def test_callable_key(self):
        rows = [("a", 1), ("a", 2), ("b", 3)]

        actions = list(fold_rows(rows, lambda row: row[0]))

        assert sum(1 for a in actions if a.is_primary) == 2

    def test_decreasing_key_raises(self):
        rows = _rows((1, 10), (2, 20), (1, 11))

        with pytest.raises(StreamOrderingViolation) as excinfo:
            list(fold_rows(rows, "bug_id"))

        error = excinfo.value
        assert (error.previous, error.current, error.position) == (2, 1, 2)

    def test_fold_is_lazy(self):
        def stream():
            yield {"bug_id": 1}
            yield {"bug_id": 1}
            raise AssertionError("stream read too far")

        actions = fold_rows(stream(), "bug_id")

        assert next(actions).is_primary
        assert not next(actions).is_primary
