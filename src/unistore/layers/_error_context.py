"""ErrorContextLayer — normalizes every failure leaving an accessor stack."""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from typing import TYPE_CHECKING, Optional

from unistore._errors import Cancelled, Unexpected, UnistoreError
from unistore._layer import Layer, LayeredAccessor, LayeredLister, LayeredReader, LayeredWriter

if TYPE_CHECKING:
    from collections.abc import Iterator
    from contextlib import AbstractContextManager

    from unistore._accessor import Accessor
    from unistore._io import Lister, Reader, Writer
    from unistore._models import Entry, Metadata, PresignedRequest
    from unistore._ops import OpCopy, OpCreateDir, OpDelete, OpList, OpPresign, OpRead, OpRename, OpStat, OpWrite


@contextmanager
def _error_context(scheme: str, operation: str, path: str) -> Iterator[None]:
    """Tag errors with operation, path and backend; convert strays and cancellation."""
    try:
        yield
    except UnistoreError as exc:
        annotated = exc.with_operation(operation).with_path(path).with_backend(scheme)
        if annotated is exc:
            raise
        raise annotated.with_traceback(exc.__traceback__) from exc.__cause__
    except asyncio.CancelledError as exc:
        raise Cancelled("Operation was cancelled", operation=operation, path=path, backend=scheme) from exc
    except Exception as exc:
        raise Unexpected(
            f"{type(exc).__name__}: {exc}", operation=operation, path=path, backend=scheme
        ) from exc


class ErrorContextLayer(Layer):
    """Guarantees that only :class:`~unistore.UnistoreError` leaves the stack.

    Errors get the operation name, path and backend scheme attached when they
    lack them, stray exceptions become :class:`~unistore.Unexpected`, and
    asyncio cancellation surfaces as :class:`~unistore.Cancelled`. The
    operator always installs this layer outermost.
    """

    def layer(self, inner: Accessor) -> Accessor:
        return ErrorContextAccessor(inner)


class ErrorContextAccessor(LayeredAccessor):
    def _context(self, operation: str, path: str) -> AbstractContextManager[None]:
        return _error_context(self.info.scheme, operation, path)

    async def _stat(self, path: str, args: OpStat) -> Metadata:
        with self._context("stat", path):
            return await self._inner.stat(path, args)

    async def _read(self, path: str, args: OpRead) -> Reader:
        with self._context("read", path):
            reader = await self._inner.read(path, args)
        return ErrorContextReader(reader, self.info.scheme, path)

    async def _write(self, path: str, args: OpWrite) -> Writer:
        with self._context("write", path):
            writer = await self._inner.write(path, args)
        return ErrorContextWriter(writer, self.info.scheme, path)

    async def _delete(self, path: str, args: OpDelete) -> None:
        with self._context("delete", path):
            await self._inner.delete(path, args)

    async def _create_dir(self, path: str, args: OpCreateDir) -> None:
        with self._context("create_dir", path):
            await self._inner.create_dir(path, args)

    async def _list(self, path: str, args: OpList) -> Lister:
        with self._context("list", path):
            lister = await self._inner.list(path, args)
        return ErrorContextLister(lister, self.info.scheme, path)

    async def _copy(self, src: str, dst: str, args: OpCopy) -> None:
        with self._context("copy", src):
            await self._inner.copy(src, dst, args)

    async def _rename(self, src: str, dst: str, args: OpRename) -> None:
        with self._context("rename", src):
            await self._inner.rename(src, dst, args)

    async def _presign(self, path: str, args: OpPresign) -> PresignedRequest:
        with self._context("presign", path):
            return await self._inner.presign(path, args)


class ErrorContextReader(LayeredReader):
    def __init__(self, inner: Reader, scheme: str, path: str) -> None:
        super().__init__(inner)
        self._scheme = scheme
        self._path = path

    async def _read(self, size: int) -> bytes:
        with _error_context(self._scheme, "reader.read", self._path):
            return await self._inner.read(size)

    async def _seek(self, offset: int, whence: int) -> int:
        with _error_context(self._scheme, "reader.seek", self._path):
            return await self._inner.seek(offset, whence)

    async def _close(self) -> None:
        with _error_context(self._scheme, "reader.close", self._path):
            await self._inner.close()


class ErrorContextWriter(LayeredWriter):
    def __init__(self, inner: Writer, scheme: str, path: str) -> None:
        super().__init__(inner)
        self._scheme = scheme
        self._path = path

    async def _write(self, data: bytes) -> None:
        with _error_context(self._scheme, "writer.write", self._path):
            await self._inner.write(data)

    async def _close(self) -> None:
        with _error_context(self._scheme, "writer.close", self._path):
            await self._inner.close()

    async def _abort(self) -> None:
        with _error_context(self._scheme, "writer.abort", self._path):
            await self._inner.abort()


class ErrorContextLister(LayeredLister):
    def __init__(self, inner: Lister, scheme: str, path: str) -> None:
        super().__init__(inner)
        self._scheme = scheme
        self._path = path

    async def _next_page(self) -> Optional[list[Entry]]:
        with _error_context(self._scheme, "lister.next_page", self._path):
            return await self._inner.next_page()

    async def _close(self) -> None:
        with _error_context(self._scheme, "lister.close", self._path):
            await self._inner.close()
