import os
from dataclasses import dataclass

import psutil

from diskburn.errors import PreconditionError

DEFAULT_UNIT_MB     = 1024
DEFAULT_BLOCK_SIZE  = 1024 * 1024
DEFAULT_COLUMNS     = 3
DEFAULT_FILL        = 90.0
REPORT_NAME         = "diskburn-failures.txt"


# --------------------------------------------
# HOST PROBES
# --------------------------------------------
def free_space_mb(path):
    """Return free space, in whole MiB, of the filesystem containing `path`."""
    return psutil.disk_usage(path).free // (1024 ** 2)


def default_workers():
    """One worker per core, leaving one core for the controller."""
    cores = psutil.cpu_count(logical=True) or 1
    return max(1, cores - 1)


def mount_point_for(path):
    """Return the mount point of the deepest partition containing `path`."""
    path = os.path.realpath(path)
    best = None
    for part in psutil.disk_partitions(all=True):
        mp = part.mountpoint
        if path == mp or path.startswith(mp.rstrip(os.sep) + os.sep):
            if best is None or len(mp) > len(best):
                best = mp
    return best or os.sep


def is_root_mount(path):
    """True when `path` lives on the filesystem mounted at the root directory."""
    return mount_point_for(path) == os.sep


def measure_disk(label, path, out=None):
    """Report total and used disk space for the filesystem containing `path`."""
    usage = psutil.disk_usage(path)
    used_gb = usage.used / (1024 ** 3)
    total_gb = usage.total / (1024 ** 3)
    print(f"Disk {label}: {used_gb:.2f} GB used / {total_gb:.2f} GB total ({usage.percent:.2f}%)",
          file=out, flush=True)
    return usage


# --------------------------------------------
# RUN CONFIGURATION
# --------------------------------------------
@dataclass
class BurnInConfig:
    target: str
    free_mb: int
    fill_percent: float = DEFAULT_FILL
    unit_mb: int = DEFAULT_UNIT_MB
    block_size: int = DEFAULT_BLOCK_SIZE
    columns: int = DEFAULT_COLUMNS
    workers: int = 1
    retain: bool = False
    allow_root_mount: bool = False
    report_path: str = None

    def __post_init__(self):
        self.target = os.path.abspath(self.target)
        if self.report_path is None:
            self.report_path = os.path.join(self.target, REPORT_NAME)

    @property
    def reference_path(self):
        return os.path.join(self.target, "reference.bin")

    def validate(self):
        """Raise PreconditionError for any input the run cannot work with."""
        if not (0 <= self.fill_percent <= 100):
            raise PreconditionError("Fill percentage must be between 0 and 100.")
        for name in ("unit_mb", "block_size", "columns", "workers"):
            if getattr(self, name) < 1:
                raise PreconditionError(f"{name} must be at least 1, got {getattr(self, name)}.")
        if self.free_mb < 0:
            raise PreconditionError("Free space cannot be negative.")
        if not os.path.isdir(self.target):
            raise PreconditionError(f"Invalid directory: {self.target}")
        if not os.access(self.target, os.W_OK | os.X_OK):
            raise PreconditionError(f"Target is not writable: {self.target}")
        if not self.allow_root_mount and is_root_mount(self.target):
            raise PreconditionError(
                f"Refusing to fill the root filesystem at {self.target} (use --allow-root to override)."
            )
