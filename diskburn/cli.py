import argparse
import signal
import sys
import threading

from diskburn.config import (
    DEFAULT_BLOCK_SIZE,
    DEFAULT_COLUMNS,
    DEFAULT_FILL,
    DEFAULT_UNIT_MB,
    BurnInConfig,
    default_workers,
    free_space_mb,
    measure_disk,
)
from diskburn.controller import RunController


def build_parser():
    parser = argparse.ArgumentParser(
        prog="diskburn",
        description="Burn in a storage volume: fill a share of its free space with copies of a "
                    "random reference file, then verify every copy by SHA-256.",
    )
    parser.add_argument("target", help="Directory on the volume to test")
    parser.add_argument("--fill", type=float, default=DEFAULT_FILL,
                        help=f"Percentage of free space to fill, 0–100 (default: {DEFAULT_FILL:g})")
    parser.add_argument("--unit-mb", type=int, default=DEFAULT_UNIT_MB,
                        help=f"Size of the reference file and of every copy, in MiB (default: {DEFAULT_UNIT_MB})")
    parser.add_argument("--block-size", type=int, default=DEFAULT_BLOCK_SIZE,
                        help=f"Bytes per read/write transfer (default: {DEFAULT_BLOCK_SIZE})")
    parser.add_argument("--columns", type=int, default=DEFAULT_COLUMNS,
                        help=f"Files per row directory (default: {DEFAULT_COLUMNS})")
    parser.add_argument("--workers", type=int, default=None,
                        help="Concurrent workers (default: CPU count minus one)")
    parser.add_argument("--free-mb", type=int, default=None,
                        help="Override the detected free space, in MiB")
    parser.add_argument("--report", default=None,
                        help="Where to write the list of failing files (default: inside target)")
    parser.add_argument("--keep", action="store_true", help="Do not delete generated data at the end.")
    parser.add_argument("--allow-root", action="store_true",
                        help="Allow a target on the root filesystem.")
    return parser


def install_signal_handlers(cancel):
    """Turn SIGINT/SIGTERM into a cancellation request."""
    def handler(signum, frame):
        if not cancel.is_set():
            print(f"\nReceived {signal.Signals(signum).name}, stopping after in-flight transfers...",
                  flush=True)
        cancel.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def report_disk(label, target):
    """measure_disk for a target that may not exist; preflight reports the real error."""
    try:
        measure_disk(label, target)
    except OSError as e:
        print(f"Disk {label}: unavailable ({e.strerror or e})", flush=True)


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        free_mb = args.free_mb if args.free_mb is not None else free_space_mb(args.target)
    except OSError as e:
        print(f"ERROR: Cannot inspect {args.target}: {e}")
        return 2

    config = BurnInConfig(
        target=args.target,
        free_mb=free_mb,
        fill_percent=args.fill,
        unit_mb=args.unit_mb,
        block_size=args.block_size,
        columns=args.columns,
        workers=args.workers if args.workers is not None else default_workers(),
        retain=args.keep,
        allow_root_mount=args.allow_root,
        report_path=args.report,
    )

    cancel = threading.Event()
    install_signal_handlers(cancel)

    report_disk("before", config.target)
    summary = RunController(config, cancel=cancel).run()
    report_disk("after", config.target)
    return summary.exit_code


if __name__ == "__main__":
    # Requires psutil: pip install psutil
    sys.exit(main())
