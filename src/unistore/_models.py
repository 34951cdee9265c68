"""Immutable metadata and entry models."""

from __future__ import annotations

import dataclasses
import enum
import re
from types import MappingProxyType
from typing import TYPE_CHECKING, Optional

from unistore._errors import InvalidArgument, RangeNotSatisfiable
from unistore._path import get_basename

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime


class EntryMode(enum.Enum):
    """Kind of thing a path points at."""

    FILE = "file"
    DIR = "dir"
    UNKNOWN = "unknown"


@dataclasses.dataclass(frozen=True)
class BytesRange:
    """A byte range of an object.

    ``offset`` and ``size`` both set select ``[offset, offset + size)``;
    ``offset`` alone reads to the end; ``size`` alone selects the last
    ``size`` bytes; neither selects the whole object.

    :param offset: First byte to read.
    :param size: Number of bytes to read.
    :raises InvalidArgument: If either bound is negative.
    """

    offset: Optional[int] = None
    size: Optional[int] = None

    def __post_init__(self) -> None:
        if self.offset is not None and self.offset < 0:
            raise InvalidArgument(f"Range offset must be >= 0, got {self.offset}")
        if self.size is not None and self.size < 0:
            raise InvalidArgument(f"Range size must be >= 0, got {self.size}")

    @classmethod
    def from_bounds(cls, start: int, end: Optional[int] = None) -> BytesRange:
        """Build the half-open range ``[start, end)``."""
        if end is None:
            return cls(offset=start)
        if end < start:
            raise InvalidArgument(f"Range end {end} is before start {start}")
        return cls(offset=start, size=end - start)

    @property
    def is_full(self) -> bool:
        """``True`` if the range selects the whole object."""
        return (self.offset is None or self.offset == 0) and self.size is None

    def resolve(self, total: int) -> tuple[int, int]:
        """Clamp against an object of ``total`` bytes and return ``(start, end)``.

        :raises RangeNotSatisfiable: If the range starts past the end of a non-empty object.
        """
        if self.offset is None:
            if self.size is None:
                return 0, total
            return max(total - self.size, 0), total
        if self.offset > total or (self.offset == total and total > 0 and self.size != 0):
            raise RangeNotSatisfiable(f"Range {self.to_header()} is outside an object of {total} bytes")
        end = total if self.size is None else min(self.offset + self.size, total)
        return self.offset, end

    def advance(self, consumed: int) -> BytesRange:
        """The range that remains after ``consumed`` bytes were read from this one."""
        if consumed == 0:
            return self
        if self.offset is None:
            if self.size is None:
                return BytesRange(offset=consumed)
            return BytesRange(offset=None, size=self.size - consumed)
        size = None if self.size is None else self.size - consumed
        return BytesRange(offset=self.offset + consumed, size=size)

    def to_header(self) -> str:
        """Render as an HTTP ``Range`` header value."""
        if self.offset is None:
            return f"bytes=-{self.size}" if self.size is not None else "bytes=0-"
        if self.size is None:
            return f"bytes={self.offset}-"
        return f"bytes={self.offset}-{self.offset + self.size - 1}"

    def __str__(self) -> str:
        return self.to_header()


_CONTENT_RANGE = re.compile(r"^bytes (\d+)-(\d+)/(\d+|\*)$")


@dataclasses.dataclass(frozen=True)
class ContentRange:
    """The byte range actually returned by a ranged read (inclusive ``end``).

    :param start: First byte returned.
    :param end: Last byte returned (inclusive).
    :param total: Total object size, if the backend reported it.
    """

    start: int
    end: int
    total: Optional[int] = None

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    @classmethod
    def from_header(cls, value: str) -> ContentRange:
        """Parse an HTTP ``Content-Range`` value such as ``bytes 0-9/100``.

        :raises InvalidArgument: If the value is malformed.
        """
        match = _CONTENT_RANGE.match(value.strip())
        if match is None:
            raise InvalidArgument(f"Malformed Content-Range: {value!r}")
        start, end, total = match.groups()
        return cls(int(start), int(end), None if total == "*" else int(total))

    def to_header(self) -> str:
        total = "*" if self.total is None else str(self.total)
        return f"bytes {self.start}-{self.end}/{total}"


@dataclasses.dataclass(frozen=True)
class Metadata:
    """Immutable snapshot of an entry's metadata.

    Backends may leave any optional field unset, listings in particular
    rarely report everything.

    :param mode: File, directory or unknown.
    :param content_length: Size in bytes.
    :param last_modified: Last modification time.
    :param etag: Entity tag.
    :param content_type: MIME type.
    :param content_md5: Hex or base64 MD5 as reported by the backend.
    :param content_range: Range returned by a ranged read.
    """

    mode: EntryMode
    content_length: Optional[int] = None
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    content_type: Optional[str] = None
    content_md5: Optional[str] = None
    content_range: Optional[ContentRange] = None

    @property
    def is_file(self) -> bool:
        return self.mode is EntryMode.FILE

    @property
    def is_dir(self) -> bool:
        return self.mode is EntryMode.DIR

    def for_range(self, range: BytesRange, start: int, end: int) -> Metadata:  # noqa: A002
        """Metadata describing the bytes ``[start, end)`` served for ``range``.

        ``content_length`` becomes the served size; ``content_range`` is set
        unless ``range`` selects the whole object.
        """
        content_range = None
        if not range.is_full and end > start:
            content_range = ContentRange(start, end - 1, self.content_length)
        return dataclasses.replace(self, content_length=end - start, content_range=content_range)


@dataclasses.dataclass(frozen=True)
class Entry:
    """A path together with a metadata snapshot, as produced by listings.

    :param path: Normalized path relative to the backend root.
    :param metadata: Metadata known at listing time.
    """

    path: str
    metadata: Metadata

    @property
    def name(self) -> str:
        """Final path component (directories keep their trailing ``/``)."""
        return get_basename(self.path)


@dataclasses.dataclass(frozen=True)
class PresignedRequest:
    """A request a third party can issue without credentials.

    :param method: HTTP method.
    :param url: Signed URL.
    :param headers: Headers that must accompany the request.
    :param expires_at: When the signature stops being valid.
    """

    method: str
    url: str
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)
    expires_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
