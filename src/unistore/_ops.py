"""Immutable per-operation argument structs."""

from __future__ import annotations

import dataclasses
from datetime import timedelta
from typing import TYPE_CHECKING, Optional, Union

from unistore._errors import InvalidArgument
from unistore._models import BytesRange

if TYPE_CHECKING:
    from datetime import datetime


def _require_aware(name: str, value: Optional[datetime]) -> None:
    # Backends report timezone-aware times; a naive value cannot be ordered against them.
    if value is not None and value.utcoffset() is None:
        raise InvalidArgument(f"{name} must be timezone-aware, got {value.isoformat()}")


@dataclasses.dataclass(frozen=True)
class OpStat:
    """Arguments for ``stat``.

    :param if_match: Only succeed if the current etag matches.
    :param if_none_match: Only succeed if the current etag differs.
    :param if_modified_since: Only succeed if modified after this time.
    """

    if_match: Optional[str] = None
    if_none_match: Optional[str] = None
    if_modified_since: Optional[datetime] = None

    def __post_init__(self) -> None:
        _require_aware("if_modified_since", self.if_modified_since)


@dataclasses.dataclass(frozen=True)
class OpRead:
    """Arguments for ``read``.

    :param range: Byte range to read; the whole object by default.
    :param if_match: Only succeed if the current etag matches.
    :param if_none_match: Only succeed if the current etag differs.
    :param if_modified_since: Only succeed if modified after this time.
    """

    range: BytesRange = dataclasses.field(default_factory=BytesRange)
    if_match: Optional[str] = None
    if_none_match: Optional[str] = None
    if_modified_since: Optional[datetime] = None

    def __post_init__(self) -> None:
        _require_aware("if_modified_since", self.if_modified_since)

    def with_range(self, range: BytesRange) -> OpRead:  # noqa: A002
        return dataclasses.replace(self, range=range)


@dataclasses.dataclass(frozen=True)
class OpWrite:
    """Arguments for ``write``.

    ``if_none_match="*"`` refuses to replace an existing object.

    :param content_length: Total size, when known up front.
    :param content_type: MIME type stored with the object.
    :param cache_control: Cache-Control value stored with the object.
    :param if_match: Only replace an object whose etag matches.
    :param if_none_match: Only write if the current etag differs (``"*"``: if absent).
    """

    content_length: Optional[int] = None
    content_type: Optional[str] = None
    cache_control: Optional[str] = None
    if_match: Optional[str] = None
    if_none_match: Optional[str] = None

    def __post_init__(self) -> None:
        if self.content_length is not None and self.content_length < 0:
            raise InvalidArgument(f"content_length must be >= 0, got {self.content_length}")


@dataclasses.dataclass(frozen=True)
class OpList:
    """Arguments for ``list``.

    :param limit: Page size hint for the backend.
    :param start_after: Only return entries whose path sorts after this one.
    :param recursive: List every descendant instead of the direct children.
    """

    limit: Optional[int] = None
    start_after: Optional[str] = None
    recursive: bool = False

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit <= 0:
            raise InvalidArgument(f"limit must be > 0, got {self.limit}")


@dataclasses.dataclass(frozen=True)
class OpDelete:
    """Arguments for ``delete``."""


@dataclasses.dataclass(frozen=True)
class OpCreateDir:
    """Arguments for ``create_dir``."""


@dataclasses.dataclass(frozen=True)
class OpCopy:
    """Arguments for ``copy``.

    :param overwrite: Replace an existing destination.
    """

    overwrite: bool = True


@dataclasses.dataclass(frozen=True)
class OpRename:
    """Arguments for ``rename``.

    :param overwrite: Replace an existing destination.
    """

    overwrite: bool = True


PresignOperation = Union[OpStat, OpRead, OpWrite]


@dataclasses.dataclass(frozen=True)
class OpPresign:
    """Arguments for ``presign``.

    :param operation: The operation the signed request performs.
    :param expire: How long the signature stays valid.
    """

    operation: PresignOperation
    expire: timedelta

    def __post_init__(self) -> None:
        if not isinstance(self.operation, (OpStat, OpRead, OpWrite)):
            raise InvalidArgument(f"Cannot presign {type(self.operation).__name__}")
        if self.expire <= timedelta(0):
            raise InvalidArgument(f"expire must be positive, got {self.expire}")
