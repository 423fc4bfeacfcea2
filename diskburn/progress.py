import shutil
import sys
import time
from dataclasses import dataclass, field
from enum import Enum

from diskburn.operations import ItemStatus


class Phase(Enum):
    INIT = "init"
    REFERENCE = "reference"
    PLANNING = "planning"
    WRITING = "writing"
    VERIFYING = "verifying"
    SUMMARIZING = "summarizing"
    CLEANUP = "cleanup"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class RunState:
    """Counters and failures of one run; only the aggregator records results."""
    phase: Phase = Phase.INIT
    started_at: float = field(default_factory=time.perf_counter)
    completed: int = 0
    cancelled: int = 0
    failures: list = field(default_factory=list)
    failure_details: dict = field(default_factory=dict)
    repeated_failures: int = 0

    def record_failure(self, relpath, detail):
        # First report of a path is kept; later ones only bump the counter.
        if relpath in self.failure_details:
            self.repeated_failures += 1
            return
        self.failures.append(relpath)
        self.failure_details[relpath] = detail


class ProgressAggregator:
    """
    Single consumer of a phase's result stream.

    Every result redraws one carriage-return line sized to the terminal; the
    line for `done == total` is drawn exactly once and ends with a newline.
    """

    def __init__(self, state, total, label, out=None, width=None):
        self.state = state
        self.total = total
        self.label = label
        self.out = out if out is not None else sys.stdout
        self.width = width
        self.done = 0
        self.succeeded = 0
        self.failed = 0
        self.finished = False

    def consume(self, results):
        for result in results:
            self.record(result)
        return self

    def record(self, result):
        if result.status is ItemStatus.CANCELLED:
            self.state.cancelled += 1
            return
        self.done += 1
        self.state.completed += 1
        if result.status is ItemStatus.FAILED:
            self.failed += 1
            self.state.record_failure(result.item.relpath, result.detail)
        else:
            self.succeeded += 1
        self.render()

    def line(self):
        width = self.width or shutil.get_terminal_size((80, 20)).columns
        width = max(20, width - 1)
        pct = (self.done / self.total) * 100 if self.total else 100.0
        text = f"{self.label}: {pct:6.2f}% | {self.done}/{self.total}"
        if self.failed:
            text += f" | {self.failed} failed"
        room = width - len(text) - 3
        if room >= 10:
            filled = int(room * self.done / self.total) if self.total else room
            text += " [" + "#" * filled + "." * (room - filled) + "]"
        return text[:width]

    def render(self):
        if self.finished:
            return
        print("\r" + self.line(), end="", file=self.out, flush=True)
        if self.done == self.total:
            self.finished = True
            print(file=self.out, flush=True)

    def close(self):
        """End the progress line if the phase stopped short of `total`."""
        if not self.finished:
            self.finished = True
            print(file=self.out, flush=True)
