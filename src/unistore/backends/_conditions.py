"""Conditional-request checks shared by the reference backends."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from unistore._errors import ConditionNotMatch

if TYPE_CHECKING:
    from datetime import datetime

    from unistore._models import Metadata


def check_read_conditions(
    path: str,
    metadata: Metadata,
    *,
    backend: str,
    if_match: Optional[str] = None,
    if_none_match: Optional[str] = None,
    if_modified_since: Optional[datetime] = None,
) -> None:
    """Evaluate ``If-Match``, ``If-None-Match`` and ``If-Modified-Since`` against ``metadata``.

    :raises ConditionNotMatch: If a condition does not hold.
    """
    if if_match is not None and if_match != "*" and if_match != metadata.etag:
        raise ConditionNotMatch(f"etag {metadata.etag} does not match {if_match}", path=path, backend=backend)
    if if_none_match is not None and (if_none_match == "*" or if_none_match == metadata.etag):
        raise ConditionNotMatch(f"etag {metadata.etag} matches {if_none_match}", path=path, backend=backend)
    if (
        if_modified_since is not None
        and metadata.last_modified is not None
        and metadata.last_modified <= if_modified_since
    ):
        raise ConditionNotMatch(f"Not modified since {if_modified_since.isoformat()}", path=path, backend=backend)


def check_write_conditions(
    path: str,
    current: Optional[Metadata],
    *,
    backend: str,
    if_match: Optional[str] = None,
    if_none_match: Optional[str] = None,
) -> None:
    """Evaluate write preconditions against the object currently at ``path``.

    ``current`` is ``None`` when nothing exists yet.

    :raises ConditionNotMatch: If a condition does not hold.
    """
    if if_match is not None:
        if current is None or (if_match != "*" and if_match != current.etag):
            raise ConditionNotMatch(f"If-Match {if_match} failed", path=path, backend=backend)
    if if_none_match is not None and current is not None:
        if if_none_match == "*" or if_none_match == current.etag:
            raise ConditionNotMatch(f"If-None-Match {if_none_match} failed", path=path, backend=backend)
