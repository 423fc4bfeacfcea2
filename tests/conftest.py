from __future__ import annotations

import io

import pytest

from diskburn.config import BurnInConfig

KIB = 1024


@pytest.fixture
def small_config(tmp_path):
    """Scaled-down run: 9 files of 1 MiB in a 3 x 3 grid."""
    return BurnInConfig(
        target=str(tmp_path),
        free_mb=10,
        fill_percent=90,
        unit_mb=1,
        block_size=64 * KIB,
        columns=3,
        workers=2,
        allow_root_mount=True,
    )


@pytest.fixture
def out():
    return io.StringIO()
