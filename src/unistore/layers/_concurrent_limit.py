"""ConcurrentLimitLayer — bounds the number of in-flight backend calls."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Optional

from unistore._layer import Layer, LayeredAccessor, LayeredLister, LayeredReader, LayeredWriter

if TYPE_CHECKING:
    from unistore._accessor import Accessor
    from unistore._io import Lister, Reader, Writer
    from unistore._models import Entry, Metadata, PresignedRequest
    from unistore._ops import OpCopy, OpCreateDir, OpDelete, OpList, OpPresign, OpRead, OpRename, OpStat, OpWrite


class ConcurrentLimitLayer(Layer):
    """Allow at most ``permits`` calls to reach the inner accessor at once.

    Excess calls wait, in arrival order, for a permit instead of failing.
    A permit covers a single call: opening a stream and every chunk read,
    chunk write, close and page fetch take and return their own permit, so
    an idle stream never pins one. Aborting a writer takes no permit.
    Permits are returned on success, failure and cancellation alike.

    The semaphore is created per layered accessor and shared by every
    caller of that accessor.

    :param permits: Maximum number of concurrent calls.
    """

    def __init__(self, permits: int) -> None:
        if permits < 1:
            raise ValueError("permits must be >= 1")
        self.permits = permits

    def __repr__(self) -> str:
        return f"ConcurrentLimitLayer(permits={self.permits})"

    def layer(self, inner: Accessor) -> Accessor:
        return ConcurrentLimitAccessor(inner, asyncio.Semaphore(self.permits))


class ConcurrentLimitAccessor(LayeredAccessor):
    def __init__(self, inner: Accessor, semaphore: asyncio.Semaphore) -> None:
        super().__init__(inner)
        self._semaphore = semaphore

    async def _stat(self, path: str, args: OpStat) -> Metadata:
        async with self._semaphore:
            return await self._inner.stat(path, args)

    async def _read(self, path: str, args: OpRead) -> Reader:
        async with self._semaphore:
            reader = await self._inner.read(path, args)
        return ConcurrentLimitReader(reader, self._semaphore)

    async def _write(self, path: str, args: OpWrite) -> Writer:
        async with self._semaphore:
            writer = await self._inner.write(path, args)
        return ConcurrentLimitWriter(writer, self._semaphore)

    async def _delete(self, path: str, args: OpDelete) -> None:
        async with self._semaphore:
            await self._inner.delete(path, args)

    async def _create_dir(self, path: str, args: OpCreateDir) -> None:
        async with self._semaphore:
            await self._inner.create_dir(path, args)

    async def _list(self, path: str, args: OpList) -> Lister:
        async with self._semaphore:
            lister = await self._inner.list(path, args)
        return ConcurrentLimitLister(lister, self._semaphore)

    async def _copy(self, src: str, dst: str, args: OpCopy) -> None:
        async with self._semaphore:
            await self._inner.copy(src, dst, args)

    async def _rename(self, src: str, dst: str, args: OpRename) -> None:
        async with self._semaphore:
            await self._inner.rename(src, dst, args)

    async def _presign(self, path: str, args: OpPresign) -> PresignedRequest:
        async with self._semaphore:
            return await self._inner.presign(path, args)


class ConcurrentLimitReader(LayeredReader):
    def __init__(self, inner: Reader, semaphore: asyncio.Semaphore) -> None:
        super().__init__(inner)
        self._semaphore = semaphore

    async def _read(self, size: int) -> bytes:
        async with self._semaphore:
            return await self._inner.read(size)

    async def _seek(self, offset: int, whence: int) -> int:
        async with self._semaphore:
            return await self._inner.seek(offset, whence)


class ConcurrentLimitWriter(LayeredWriter):
    def __init__(self, inner: Writer, semaphore: asyncio.Semaphore) -> None:
        super().__init__(inner)
        self._semaphore = semaphore

    async def _write(self, data: bytes) -> None:
        async with self._semaphore:
            await self._inner.write(data)

    async def _close(self) -> None:
        async with self._semaphore:
            await self._inner.close()

    async def _abort(self) -> None:
        # Runs on cancellation too, so it must not queue behind other calls.
        await self._inner.abort()


class ConcurrentLimitLister(LayeredLister):
    def __init__(self, inner: Lister, semaphore: asyncio.Semaphore) -> None:
        super().__init__(inner)
        self._semaphore = semaphore

    async def _next_page(self) -> Optional[list[Entry]]:
        async with self._semaphore:
            return await self._inner.next_page()
