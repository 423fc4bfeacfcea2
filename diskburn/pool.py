"""
Bounded pool of worker processes applying one per-item operation to a plan.

Items are handed out in plan order, never more than `concurrency` at a time,
and every dispatched item comes back as exactly one ItemResult on a single
result queue.  Results are yielded in arrival order.
"""

import multiprocessing
import queue
import signal

from diskburn.errors import DeviceIOError
from diskburn.operations import ItemResult, ItemStatus

POLL_INTERVAL = 0.25


# --------------------------------------------
# WORKER PROCESS
# --------------------------------------------
def _worker(operation, tasks, results, stop):
    """Pull items until the None sentinel arrives; push one result per item."""
    # Ctrl+C is handled once, by the parent, through the stop event.
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    for item in iter(tasks.get, None):
        try:
            result = operation(item, cancel=stop)
        except Exception as e:
            result = ItemResult(item, ItemStatus.FAILED, f"{type(e).__name__}: {e}")
        results.put(result)


# --------------------------------------------
# SPAWN & MANAGE PROCESSES
# --------------------------------------------
def start_workers(count, operation, tasks, results, stop):
    processes = []
    for _ in range(count):
        p = multiprocessing.Process(target=_worker, args=(operation, tasks, results, stop))
        p.daemon = True
        p.start()
        processes.append(p)
    return processes


def stop_workers(processes, tasks, timeout=5):
    for _ in processes:
        tasks.put(None)
    for p in processes:
        p.join(timeout=timeout)
    for p in processes:
        if p.is_alive():
            p.terminate()
            p.join(timeout=1)


# --------------------------------------------
# DISPATCH LOOP
# --------------------------------------------
def run(items, concurrency, operation, cancel=None):
    """
    Apply `operation(item, cancel=...)` to every item and yield the results.

    `operation` must be picklable (a module-level function or a
    functools.partial of one).  When `cancel` is set, no further items are
    dispatched and in-flight items finish or come back CANCELLED.  A FATAL
    result stops dispatch the same way and, once the in-flight items have
    drained, raises DeviceIOError.
    """
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")
    items = list(items)
    if not items:
        return

    tasks = multiprocessing.Queue()
    results = multiprocessing.Queue()
    stop = multiprocessing.Event()
    processes = start_workers(min(concurrency, len(items)), operation, tasks, results, stop)

    pending = iter(items)
    in_flight = 0
    fatal = None

    def dispatch():
        nonlocal in_flight
        if cancel is not None and cancel.is_set():
            stop.set()
        if stop.is_set():
            return False
        item = next(pending, None)
        if item is None:
            return False
        tasks.put(item)
        in_flight += 1
        return True

    try:
        for _ in range(concurrency):
            if not dispatch():
                break
        while in_flight:
            try:
                result = results.get(timeout=POLL_INTERVAL)
            except queue.Empty:
                if cancel is not None and cancel.is_set():
                    stop.set()
                dead = [p for p in processes if p.exitcode is not None]
                if dead:
                    raise DeviceIOError(
                        f"{len(dead)} worker(s) exited with {in_flight} item(s) outstanding"
                    )
                continue
            in_flight -= 1
            if cancel is not None and cancel.is_set():
                stop.set()
            if result.status is ItemStatus.FATAL:
                if fatal is None:
                    fatal = result
                stop.set()
                continue
            yield result
            dispatch()
    finally:
        stop.set()
        stop_workers(processes, tasks)

    if fatal is not None:
        raise DeviceIOError(f"Fatal device error on {fatal.item.relpath}: {fatal.detail}")
