import hashlib
import os

from diskburn.errors import DeviceIOError, RunInterruptedError

DIGEST_SUFFIX = ".sha256"
MIB = 1024 ** 2


# --------------------------------------------
# DIGEST SIDECARS
# --------------------------------------------
def digest_path(path):
    return path + DIGEST_SUFFIX


def file_digest(path, block_size=MIB, cancel=None):
    """SHA-256 hex digest of the file at `path`, read in `block_size` pieces."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(block_size), b""):
            if cancel is not None and cancel.is_set():
                raise RunInterruptedError(f"Interrupted while hashing {path}")
            h.update(block)
    return h.hexdigest()


def write_digest(path, digest):
    """Persist `digest` next to `path` in sha256sum format."""
    with open(digest_path(path), "w", encoding="ascii") as f:
        f.write(f"{digest}  {os.path.basename(path)}\n")


def read_digest(path):
    with open(digest_path(path), encoding="ascii") as f:
        fields = f.read().split()
    if not fields:
        raise ValueError(f"Empty digest sidecar for {path}")
    return fields[0]


# --------------------------------------------
# REFERENCE BLOB
# --------------------------------------------
class ReferenceBlob:
    """The random-content file every generated file is copied from."""

    def __init__(self, path, size, digest):
        self.path = path
        self.size = size
        self.digest = digest

    def artifacts(self):
        return [self.path, digest_path(self.path)]


def generate_reference(path, unit_mb, block_size=MIB, cancel=None):
    """
    Write `unit_mb` MiB of os.urandom bytes to `path` and store its digest.

    Raises DeviceIOError if the device rejects the write and
    RunInterruptedError if `cancel` is set before the blob is complete.
    Partial files are left on disk for the caller's cleanup.
    """
    total = unit_mb * MIB
    h = hashlib.sha256()
    written = 0
    try:
        with open(path, "wb") as f:
            while written < total:
                if cancel is not None and cancel.is_set():
                    raise RunInterruptedError("Interrupted while generating the reference blob.")
                buf = os.urandom(min(block_size, total - written))
                n = f.write(buf)
                if n != len(buf):
                    raise OSError("Incomplete write.")
                h.update(buf)
                written += n
            f.flush()
            os.fsync(f.fileno())
        digest = h.hexdigest()
        write_digest(path, digest)
    except OSError as e:
        raise DeviceIOError(f"Could not write reference blob {path}: {e}") from e
    return ReferenceBlob(path, total, digest)
