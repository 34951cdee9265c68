"""Backend test fixtures -- parameterized for conformance testing."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from unistore import Operator
from unistore.backends import FsBackend, MemoryBackend

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(params=["memory", "fs"])
def backend_op(request: pytest.FixtureRequest, tmp_path: Path) -> Operator:
    """Operator over each reference backend. Add new backends here."""
    if request.param == "memory":
        return Operator(MemoryBackend(page_size=3))
    return Operator(FsBackend(str(tmp_path / "root")))
