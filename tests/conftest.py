"""Shared test fixtures."""

from __future__ import annotations

import pytest

from unistore import Operator
from unistore.backends import MemoryBackend


@pytest.fixture
def anyio_backend() -> str:
    """Run async tests on asyncio only; the library is asyncio based."""
    return "asyncio"


@pytest.fixture
def memory() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def op(memory: MemoryBackend) -> Operator:
    return Operator(memory)
