import os
from dataclasses import dataclass

from diskburn.errors import InsufficientSpaceError


@dataclass(frozen=True)
class WorkItem:
    """One planned file, addressed by its (row, column) coordinate."""
    row: int
    column: int

    @property
    def relpath(self):
        return f"{self.row}/{self.column}"

    def path(self, root):
        return os.path.join(root, str(self.row), str(self.column))


@dataclass(frozen=True)
class WorkPlan:
    rows: int
    columns: int
    items: tuple

    @property
    def total(self):
        return len(self.items)

    def row_dirs(self, root):
        return [os.path.join(root, str(r)) for r in range(1, self.rows + 1)]


def plan(free_mb, fill_percent, unit_mb, columns):
    """
    Derive the list of files to create from the free space on the target.

    rows = floor(free_mb * fill_percent / 100 / unit_mb / columns); items are
    numbered from 1 and enumerated row-major.
    """
    if unit_mb < 1 or columns < 1:
        raise ValueError("unit_mb and columns must be positive")
    rows = int(free_mb * fill_percent // (100 * unit_mb * columns))
    if rows * columns == 0:
        raise InsufficientSpaceError(
            f"{fill_percent}% of {free_mb} MiB does not fit a single row of "
            f"{columns} x {unit_mb} MiB files."
        )
    items = tuple(WorkItem(r, c) for r in range(1, rows + 1) for c in range(1, columns + 1))
    return WorkPlan(rows, columns, items)
