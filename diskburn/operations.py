import errno
import os
from dataclasses import dataclass
from enum import Enum

from diskburn.errors import IntegrityMismatchError, RunInterruptedError
from diskburn.reference import digest_path, file_digest, read_digest, write_digest

# The device itself is out of room or read-only: no later item can succeed.
FATAL_ERRNOS = {getattr(errno, name) for name in ("ENOSPC", "EDQUOT", "EROFS") if hasattr(errno, name)}


class ItemStatus(Enum):
    WRITTEN = "written"
    VERIFIED = "verified"
    FAILED = "failed"
    CANCELLED = "cancelled"
    FATAL = "fatal"


@dataclass(frozen=True)
class ItemResult:
    item: object
    status: ItemStatus
    detail: str = ""

    @property
    def failed(self):
        return self.status is ItemStatus.FAILED


def _io_failure(item, e):
    status = ItemStatus.FATAL if e.errno in FATAL_ERRNOS else ItemStatus.FAILED
    return ItemResult(item, status, f"{e.strerror or e}")


# --------------------------------------------
# WRITE-AND-HASH
# --------------------------------------------
def write_item(item, root, reference, block_size, cancel=None):
    """Copy the reference blob to the item's path, then record the copy's digest."""
    dest = item.path(root)
    try:
        os.makedirs(os.path.dirname(dest), exist_ok=True)
        with open(reference.path, "rb") as src, open(dest, "wb") as dst:
            for block in iter(lambda: src.read(block_size), b""):
                if cancel is not None and cancel.is_set():
                    return ItemResult(item, ItemStatus.CANCELLED)
                if dst.write(block) != len(block):
                    raise OSError(errno.EIO, "Incomplete write.")
            dst.flush()
            os.fsync(dst.fileno())
        digest = file_digest(dest, block_size, cancel)
        write_digest(dest, digest)
        if digest != reference.digest:
            raise IntegrityMismatchError(item.relpath, reference.digest, digest)
    except RunInterruptedError:
        return ItemResult(item, ItemStatus.CANCELLED)
    except IntegrityMismatchError as e:
        return ItemResult(item, ItemStatus.FAILED, f"read-back mismatch: {e}")
    except OSError as e:
        return _io_failure(item, e)
    return ItemResult(item, ItemStatus.WRITTEN)


# --------------------------------------------
# VERIFY
# --------------------------------------------
def verify_item(item, root, block_size, cancel=None):
    """Recompute the item's digest and compare it with its sidecar."""
    path = item.path(root)
    if cancel is not None and cancel.is_set():
        return ItemResult(item, ItemStatus.CANCELLED)
    if not os.path.isfile(path):
        return ItemResult(item, ItemStatus.FAILED, "missing file")
    if not os.path.isfile(digest_path(path)):
        return ItemResult(item, ItemStatus.FAILED, "missing digest")
    try:
        expected = read_digest(path)
        actual = file_digest(path, block_size, cancel)
        if actual != expected:
            raise IntegrityMismatchError(item.relpath, expected, actual)
    except RunInterruptedError:
        return ItemResult(item, ItemStatus.CANCELLED)
    except IntegrityMismatchError as e:
        return ItemResult(item, ItemStatus.FAILED, f"digest mismatch: {e}")
    except ValueError as e:
        return ItemResult(item, ItemStatus.FAILED, str(e))
    except OSError as e:
        return _io_failure(item, e)
    return ItemResult(item, ItemStatus.VERIFIED)
