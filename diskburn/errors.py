class BurnInError(Exception):
    """Base class for every error raised by a burn-in run."""


class PreconditionError(BurnInError):
    """The run cannot start: bad configuration, unwritable target, no space."""


class InsufficientSpaceError(PreconditionError):
    """Not even one full unit fits into the requested share of free space."""


class DeviceIOError(BurnInError):
    """The device failed in a way that makes continuing the run pointless."""


class IntegrityMismatchError(BurnInError):
    """A file's content digest does not match the digest recorded for it."""

    def __init__(self, path, expected, actual):
        super().__init__(f"{path}: expected {expected}, got {actual}")
        self.path = path
        self.expected = expected
        self.actual = actual


class RunInterruptedError(BurnInError):
    """Cancellation was requested while the run was in progress."""
