"""Capability enum and CapabilitySet."""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Optional

from unistore._errors import Unsupported

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class Capability(enum.Enum):
    """Operations an accessor may support."""

    STAT = "stat"
    READ = "read"
    WRITE = "write"
    MULTIPART_WRITE = "multipart_write"
    CREATE_DIR = "create_dir"
    DELETE = "delete"
    LIST = "list"
    LIST_RECURSIVE = "list_recursive"
    COPY = "copy"
    RENAME = "rename"
    PRESIGN = "presign"


class CapabilitySet:
    """Immutable set of capabilities declared by an accessor.

    :param capabilities: The supported capabilities.
    :param max_write_size: Largest object a single write may produce, if bounded.
    :param max_list_page_size: Largest page a listing may request, if bounded.
    """

    __slots__ = ("_caps", "_max_list_page_size", "_max_write_size")
    _caps: frozenset[Capability]
    _max_write_size: Optional[int]
    _max_list_page_size: Optional[int]

    def __init__(
        self,
        capabilities: Iterable[Capability],
        *,
        max_write_size: Optional[int] = None,
        max_list_page_size: Optional[int] = None,
    ) -> None:
        object.__setattr__(self, "_caps", frozenset(capabilities))
        object.__setattr__(self, "_max_write_size", max_write_size)
        object.__setattr__(self, "_max_list_page_size", max_list_page_size)

    @property
    def max_write_size(self) -> Optional[int]:
        return self._max_write_size

    @property
    def max_list_page_size(self) -> Optional[int]:
        return self._max_list_page_size

    def supports(self, cap: Capability) -> bool:
        """Check whether a capability is supported."""
        return cap in self._caps

    def require(
        self,
        cap: Capability,
        *,
        backend: str = "",
        operation: Optional[str] = None,
        path: Optional[str] = None,
    ) -> None:
        """Raise if a capability is not supported.

        :raises Unsupported: If the capability is missing.
        """
        if cap not in self._caps:
            raise Unsupported(
                f"Capability '{cap.value}' is not supported",
                capability=cap.value,
                backend=backend or None,
                operation=operation,
                path=path,
            )

    def with_capabilities(self, *caps: Capability) -> CapabilitySet:
        """Return a copy that also advertises ``caps`` (used by emulating layers)."""
        return CapabilitySet(
            self._caps | set(caps),
            max_write_size=self._max_write_size,
            max_list_page_size=self._max_list_page_size,
        )

    def without(self, *caps: Capability) -> CapabilitySet:
        """Return a copy that no longer advertises ``caps`` (used by restricting layers)."""
        return CapabilitySet(
            self._caps - set(caps),
            max_write_size=self._max_write_size,
            max_list_page_size=self._max_list_page_size,
        )

    def __contains__(self, cap: object) -> bool:
        return cap in self._caps

    def __iter__(self) -> Iterator[Capability]:
        return iter(self._caps)

    def __len__(self) -> int:
        return len(self._caps)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CapabilitySet):
            return (self._caps, self._max_write_size, self._max_list_page_size) == (
                other._caps,
                other._max_write_size,
                other._max_list_page_size,
            )
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self._caps, self._max_write_size, self._max_list_page_size))

    def __repr__(self) -> str:
        names = sorted(c.name for c in self._caps)
        limits = ""
        if self._max_write_size is not None:
            limits += f", max_write_size={self._max_write_size}"
        if self._max_list_page_size is not None:
            limits += f", max_list_page_size={self._max_list_page_size}"
        return f"CapabilitySet({{{', '.join(names)}}}{limits})"

    def __setattr__(self, name: str, value: object) -> None:
        raise AttributeError("CapabilitySet is immutable")

    def __delattr__(self, name: str) -> None:
        raise AttributeError("CapabilitySet is immutable")
