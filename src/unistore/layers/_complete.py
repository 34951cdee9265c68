"""CompleteLayer — emulates operations the inner accessor lacks."""

from __future__ import annotations

import collections
import dataclasses
from typing import TYPE_CHECKING, Optional

from unistore._capabilities import Capability
from unistore._errors import AlreadyExists, NotFound
from unistore._io import Lister
from unistore._layer import Layer, LayeredAccessor
from unistore._ops import OpCopy, OpDelete, OpList, OpStat

if TYPE_CHECKING:
    from unistore._accessor import Accessor, AccessorInfo
    from unistore._models import Entry
    from unistore._ops import OpRename


class CompleteLayer(Layer):
    """Fill capability gaps with emulations built from other operations.

    - ``rename`` becomes ``copy`` followed by ``delete`` of the source when
      the inner accessor can copy and delete but not rename. The emulation
      is not atomic: a failed delete leaves both objects in place.
    - Recursive listing becomes a breadth-first walk over non-recursive
      listings when the inner accessor can list but not recursively.

    Only the emulated capabilities are added; everything else passes
    through unchanged.
    """

    def layer(self, inner: Accessor) -> Accessor:
        return CompleteAccessor(inner)


class CompleteAccessor(LayeredAccessor):
    def __init__(self, inner: Accessor) -> None:
        super().__init__(inner)
        caps = inner.info.capabilities
        self._emulate_rename = (
            not caps.supports(Capability.RENAME) and caps.supports(Capability.COPY) and caps.supports(Capability.DELETE)
        )
        self._emulate_recursive = not caps.supports(Capability.LIST_RECURSIVE) and caps.supports(Capability.LIST)
        emulated = []
        if self._emulate_rename:
            emulated.append(Capability.RENAME)
        if self._emulate_recursive:
            emulated.append(Capability.LIST_RECURSIVE)
        self._info = dataclasses.replace(inner.info, capabilities=caps.with_capabilities(*emulated))

    @property
    def info(self) -> AccessorInfo:
        return self._info

    async def _rename(self, src: str, dst: str, args: OpRename) -> None:
        if not self._emulate_rename:
            await self._inner.rename(src, dst, args)
            return
        if not args.overwrite and self._inner.info.capabilities.supports(Capability.STAT):
            try:
                await self._inner.stat(dst, OpStat())
            except NotFound:
                pass
            else:
                raise AlreadyExists(f"Rename target already exists: {dst}", path=dst)
        await self._inner.copy(src, dst, OpCopy(overwrite=args.overwrite))
        await self._inner.delete(src, OpDelete())

    async def _list(self, path: str, args: OpList) -> Lister:
        if args.recursive and self._emulate_recursive:
            return WalkLister(self._inner, path, args)
        return await self._inner.list(path, args)


class WalkLister(Lister):
    """Breadth-first recursive listing built from non-recursive listings.

    Directories are listed in the order they are discovered; ``start_after``
    filters entries whose path does not sort after it.
    """

    def __init__(self, accessor: Accessor, path: str, args: OpList) -> None:
        super().__init__()
        self._accessor = accessor
        self._args = args
        self._pending: collections.deque[str] = collections.deque([path])
        self._current: Optional[Lister] = None
        self._current_dir = path

    async def _next_page(self) -> Optional[list[Entry]]:
        while True:
            if self._current is None:
                if not self._pending:
                    return None
                self._current_dir = self._pending.popleft()
                self._current = await self._accessor.list(self._current_dir, OpList(limit=self._args.limit))
            page = await self._current.next_page()
            if page is None:
                await self._current.close()
                self._current = None
                continue
            for entry in page:
                if entry.metadata.is_dir and entry.path != self._current_dir:
                    self._pending.append(entry.path)
            start_after = self._args.start_after
            entries = [e for e in page if e.path != self._current_dir and (start_after is None or e.path > start_after)]
            if entries:
                return entries

    async def _close(self) -> None:
        self._pending.clear()
        if self._current is not None:
            await self._current.close()
            self._current = None
