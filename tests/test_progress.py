from __future__ import annotations

import io
import random

from diskburn.operations import ItemResult, ItemStatus
from diskburn.planner import plan
from diskburn.progress import ProgressAggregator, RunState


def results_for(work, failing=(), status=ItemStatus.WRITTEN):
    return [
        ItemResult(item, ItemStatus.FAILED if item.relpath in failing else status, "bad")
        for item in work.items
    ]


def test_completed_count_reaches_total_once_in_any_order():
    work = plan(90, 100, 10, 3)
    results = results_for(work)
    random.Random(7).shuffle(results)
    out = io.StringIO()

    agg = ProgressAggregator(RunState(), work.total, "Write", out=out, width=80).consume(results)
    agg.close()

    assert agg.done == work.total
    assert out.getvalue().count("100.00%") == 1
    assert out.getvalue().endswith("\n")
    assert out.getvalue().count("\n") == 1


def test_failures_are_kept_in_arrival_order():
    work = plan(90, 100, 10, 3)
    state = RunState()
    results = results_for(work, failing={"3/1", "1/2"})
    results.reverse()

    ProgressAggregator(state, work.total, "Verify", out=io.StringIO(), width=80).consume(results)

    assert state.failures == ["3/1", "1/2"]
    assert state.failure_details["1/2"] == "bad"


def test_repeated_failure_for_same_path_is_reported_once():
    work = plan(30, 100, 10, 3)
    state = RunState()
    ProgressAggregator(state, work.total, "Write", out=io.StringIO(), width=80).consume(
        results_for(work, failing={"1/2"}))
    ProgressAggregator(state, work.total, "Verify", out=io.StringIO(), width=80).consume(
        results_for(work, failing={"1/2"}, status=ItemStatus.VERIFIED))

    assert state.failures == ["1/2"]
    assert state.repeated_failures == 1
    assert state.completed == 2 * work.total


def test_cancelled_results_are_not_completed():
    work = plan(30, 100, 10, 3)
    state = RunState()
    results = results_for(work, status=ItemStatus.CANCELLED)
    out = io.StringIO()

    agg = ProgressAggregator(state, work.total, "Write", out=out, width=80).consume(results)
    agg.close()

    assert agg.done == 0
    assert state.cancelled == work.total
    assert state.failures == []
    assert out.getvalue() == "\n"


def test_line_fits_terminal_width():
    work = plan(300, 100, 10, 3)
    agg = ProgressAggregator(RunState(), work.total, "Write", out=io.StringIO(), width=40)
    for result in results_for(work, failing={"1/1"}):
        agg.record(result)
        assert len(agg.line()) <= 39
    assert "1 failed" in agg.line()
