import os
import sys
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from functools import partial

from diskburn import pool
from diskburn.errors import BurnInError, InsufficientSpaceError, PreconditionError, RunInterruptedError
from diskburn.operations import verify_item, write_item
from diskburn.planner import plan
from diskburn.progress import Phase, ProgressAggregator, RunState
from diskburn.reference import digest_path, generate_reference

TRANSITIONS = {
    Phase.INIT: {Phase.REFERENCE},
    Phase.REFERENCE: {Phase.PLANNING},
    Phase.PLANNING: {Phase.WRITING},
    Phase.WRITING: {Phase.VERIFYING},
    Phase.VERIFYING: {Phase.SUMMARIZING},
    Phase.SUMMARIZING: {Phase.CLEANUP},
    Phase.CLEANUP: {Phase.DONE},
}
TERMINAL = {Phase.DONE, Phase.ABORTED}


class Outcome(Enum):
    PASSED = 0
    FAILED = 1
    PRECONDITION = 2
    INTERRUPTED = 130


def human_time(seconds):
    m, s = divmod(max(0.0, seconds), 60)
    return f"{int(m)}m {s:,.2f}s"


@dataclass
class RunSummary:
    outcome: Outcome
    phase: Phase
    failures: list = field(default_factory=list)
    total_mb: int = 0
    elapsed: float = 0.0
    throughput: float = 0.0
    error: str = None
    report_path: str = None

    @property
    def verdict(self):
        return "PASS" if self.outcome is Outcome.PASSED else "FAIL"

    @property
    def exit_code(self):
        return self.outcome.value


class RunController:
    """Drives one burn-in run from reference generation to cleanup."""

    def __init__(self, config, cancel=None, out=None):
        self.config = config
        self.cancel = cancel if cancel is not None else threading.Event()
        self.out = out if out is not None else sys.stdout
        self.state = RunState()
        self.reference = None
        self.plan = None
        self.write_progress = None
        self.write_started = None
        self.verify_finished = None
        self._created_rows = []

    def say(self, text=""):
        print(text, file=self.out, flush=True)

    def transition(self, phase):
        current = self.state.phase
        if phase is Phase.ABORTED:
            if current in TERMINAL:
                raise RuntimeError(f"Cannot abort a run that is already {current.value}")
        elif phase not in TRANSITIONS.get(current, ()):
            raise RuntimeError(f"Illegal transition {current.value} -> {phase.value}")
        self.state.phase = phase

    def check_cancel(self):
        if self.cancel.is_set():
            raise RunInterruptedError(f"Interrupted during {self.state.phase.value}")

    # --------------------------------------------
    # PHASES
    # --------------------------------------------
    def preflight(self):
        """Validate inputs and plan feasibility; touches nothing on disk."""
        cfg = self.config
        cfg.validate()
        if cfg.free_mb < cfg.unit_mb:
            raise InsufficientSpaceError(
                f"{cfg.free_mb} MiB free cannot hold a {cfg.unit_mb} MiB reference blob."
            )
        plan(cfg.free_mb, cfg.fill_percent, cfg.unit_mb, cfg.columns)

    def generate_reference(self):
        cfg = self.config
        self.say(f"\n--- GENERATING REFERENCE ({cfg.unit_mb} MiB) ---")
        self.reference = generate_reference(cfg.reference_path, cfg.unit_mb, cfg.block_size, self.cancel)
        self.say(f"SHA-256 (reference): {self.reference.digest}")

    def make_plan(self):
        cfg = self.config
        self.plan = plan(cfg.free_mb, cfg.fill_percent, cfg.unit_mb, cfg.columns)
        self._created_rows = [d for d in self.plan.row_dirs(cfg.target) if not os.path.exists(d)]
        self.say(f"Plan: {self.plan.rows} row(s) x {self.plan.columns} column(s) = "
                 f"{self.plan.total} file(s) of {cfg.unit_mb} MiB")

    def run_phase(self, aggregator, operation):
        results = pool.run(self.plan.items, self.config.workers, operation, self.cancel)
        try:
            aggregator.consume(results)
        finally:
            results.close()
            aggregator.close()
        return aggregator

    def write_operation(self):
        cfg = self.config
        return partial(write_item, root=cfg.target, reference=self.reference, block_size=cfg.block_size)

    def write(self):
        cfg = self.config
        self.say(f"\n--- WRITE PHASE ({cfg.workers} worker(s)) ---")
        self.write_started = time.perf_counter()
        self.write_progress = ProgressAggregator(self.state, self.plan.total, "Write ", out=self.out)
        self.run_phase(self.write_progress, self.write_operation())

    @property
    def units_written(self):
        """Files copied successfully so far; failed writes do not count."""
        return self.write_progress.succeeded if self.write_progress else 0

    def verify(self):
        cfg = self.config
        self.say(f"\n--- VERIFY PHASE ({cfg.workers} worker(s)) ---")
        op = partial(verify_item, root=cfg.target, block_size=cfg.block_size)
        try:
            self.run_phase(ProgressAggregator(self.state, self.plan.total, "Verify", out=self.out), op)
        finally:
            self.verify_finished = time.perf_counter()

    # --------------------------------------------
    # SUMMARY & CLEANUP
    # --------------------------------------------
    def write_report(self):
        path = self.config.report_path
        with open(path, "w", encoding="utf-8") as f:
            for relpath in self.state.failures:
                f.write(relpath + "\n")
        return path

    def summarize(self, outcome=None, error=None):
        cfg = self.config
        if self.write_started is None:
            elapsed = 0.0
        else:
            elapsed = (self.verify_finished or time.perf_counter()) - self.write_started
        if self.state.phase is Phase.ABORTED:
            units = self.units_written
        else:
            units = self.plan.total if self.plan else 0
        total_mb = units * cfg.unit_mb
        if outcome is None:
            outcome = Outcome.FAILED if self.state.failures else Outcome.PASSED

        summary = RunSummary(
            outcome=outcome,
            phase=self.state.phase,
            failures=list(self.state.failures),
            total_mb=total_mb,
            elapsed=elapsed,
            throughput=total_mb / elapsed if elapsed > 0 else 0.0,
            error=error,
        )
        if summary.failures:
            try:
                summary.report_path = self.write_report()
            except OSError as e:
                self.say(f"Warning: could not write failure report: {e}")

        self.say("\n=== Summary ===")
        if summary.outcome is Outcome.PASSED:
            self.say("Verdict:                PASS")
        else:
            self.say(f"Verdict:                FAIL ({len(summary.failures)} failure(s))")
        if error:
            self.say(f"Aborted:                {error}")
        self.say(f"Data size:              {summary.total_mb:,} MiB")
        self.say(f"Elapsed:                {human_time(summary.elapsed)}")
        self.say(f"Average throughput:     {summary.throughput:,.2f} MiB/s")
        if summary.report_path:
            self.say(f"Failure report:         {summary.report_path}")
        return summary

    def artifacts(self):
        """Every path this run may have created, files before directories."""
        cfg = self.config
        paths = []
        if self.plan is not None:
            for item in self.plan.items:
                p = item.path(cfg.target)
                paths += [p, digest_path(p)]
        paths += [cfg.reference_path, digest_path(cfg.reference_path)]
        return paths, list(self._created_rows)

    def cleanup(self):
        if self.config.retain:
            self.say("\nGenerated data retained (--keep).")
            return
        files, dirs = self.artifacts()
        removed = 0
        for path in files:
            try:
                os.remove(path)
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                self.say(f"Warning: could not delete {path}: {e}")
        for d in dirs:
            try:
                os.rmdir(d)
            except FileNotFoundError:
                continue
            except OSError as e:
                self.say(f"Warning: could not remove directory {d}: {e}")
        self.say(f"\nTemporary files deleted: {removed}")

    # --------------------------------------------
    # MAIN SEQUENCE
    # --------------------------------------------
    def abort(self, outcome, error):
        self.transition(Phase.ABORTED)
        self.say(f"\nERROR: {error}" if outcome is not Outcome.INTERRUPTED else f"\nInterrupted: {error}")
        summary = self.summarize(outcome, error)
        self.cleanup()
        return summary

    def run(self):
        cfg = self.config
        self.say("=== Burn-in configuration ===")
        self.say(f"Target:       {cfg.target}")
        self.say(f"Free space:   {cfg.free_mb:,} MiB")
        self.say(f"Fill:         {cfg.fill_percent:g}%")
        self.say(f"Unit size:    {cfg.unit_mb} MiB")
        self.say(f"Block size:   {cfg.block_size:,} bytes")
        self.say(f"Columns:      {cfg.columns}")
        self.say(f"Workers:      {cfg.workers}")
        self.say("=============================")

        try:
            self.preflight()
        except PreconditionError as e:
            # Nothing was created yet, so there is nothing to clean up.
            self.transition(Phase.ABORTED)
            self.say(f"ERROR: {e}")
            return self.summarize(Outcome.PRECONDITION, str(e))

        try:
            self.transition(Phase.REFERENCE)
            self.generate_reference()
            self.check_cancel()
            self.transition(Phase.PLANNING)
            self.make_plan()
            self.check_cancel()
            self.transition(Phase.WRITING)
            self.write()
            self.check_cancel()
            self.transition(Phase.VERIFYING)
            self.verify()
            self.check_cancel()
        except (RunInterruptedError, KeyboardInterrupt) as e:
            self.cancel.set()
            return self.abort(Outcome.INTERRUPTED, str(e) or "keyboard interrupt")
        except BurnInError as e:
            return self.abort(Outcome.FAILED, str(e))

        self.transition(Phase.SUMMARIZING)
        summary = self.summarize()
        self.transition(Phase.CLEANUP)
        self.cleanup()
        self.transition(Phase.DONE)
        summary.phase = Phase.DONE
        return summary
