from __future__ import annotations

import itertools

import pytest

from diskburn.errors import InsufficientSpaceError, PreconditionError
from diskburn.planner import WorkItem, plan


def test_documented_scenario_yields_three_by_three():
    work = plan(10240, 90, 1024, 3)

    assert work.rows == 3
    assert work.total == 9
    assert [item.relpath for item in work.items] == [
        "1/1", "1/2", "1/3", "2/1", "2/2", "2/3", "3/1", "3/2", "3/3",
    ]


@pytest.mark.parametrize(
    "free_mb, fill, unit_mb, columns",
    list(itertools.product([100, 999, 4096], [10, 50, 100], [1, 7], [1, 2, 5])),
)
def test_plan_covers_every_coordinate_once(free_mb, fill, unit_mb, columns):
    rows = free_mb * fill // 100 // unit_mb // columns
    if rows == 0:
        with pytest.raises(InsufficientSpaceError):
            plan(free_mb, fill, unit_mb, columns)
        return

    work = plan(free_mb, fill, unit_mb, columns)

    assert work.total == rows * columns
    assert len(set(work.items)) == work.total
    assert set(work.items) == {
        WorkItem(r, c) for r in range(1, rows + 1) for c in range(1, columns + 1)
    }


@pytest.mark.parametrize("free_mb, fill", [(0, 90), (2047, 100), (10240, 0), (3000, 10)])
def test_no_full_row_is_insufficient_space(free_mb, fill):
    with pytest.raises(InsufficientSpaceError):
        plan(free_mb, fill, 1024, 3)


def test_insufficient_space_is_a_precondition_error():
    assert issubclass(InsufficientSpaceError, PreconditionError)


def test_plan_is_deterministic():
    assert plan(5000, 75, 100, 4) == plan(5000, 75, 100, 4)


def test_item_path_is_row_then_column(tmp_path):
    item = WorkItem(2, 3)
    assert item.path(str(tmp_path)) == str(tmp_path / "2" / "3")
