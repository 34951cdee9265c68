"""Type aliases used throughout unistore."""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable
from typing import Union

BytesLike = Union[bytes, bytearray, memoryview]
WritableContent = Union[BytesLike, Iterable[BytesLike], AsyncIterable[BytesLike]]
Options = dict[str, object]
