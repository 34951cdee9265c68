"""Shared plumbing of the logging, metrics and tracing layers.

An observing accessor opens a :class:`Recording` per operation and finishes it
with the outcome. Streams keep their recording open until the reader hits end
of stream, the writer is closed or aborted, or the lister is exhausted, so one
recording covers the whole transfer and carries its byte or entry count.

Recorders must never influence the call they observe: every recorder
callback runs under :func:`_safely`, which logs and drops its exceptions.
"""

from __future__ import annotations

import abc
import asyncio
import contextlib
import logging
import time
from typing import TYPE_CHECKING, Optional

from unistore._errors import UnistoreError
from unistore._layer import LayeredAccessor, LayeredLister, LayeredReader, LayeredWriter

if TYPE_CHECKING:
    from collections.abc import Iterator
    from contextlib import AbstractContextManager

    from unistore._io import Lister, Reader, Writer
    from unistore._models import Entry, Metadata, PresignedRequest
    from unistore._ops import OpCopy, OpCreateDir, OpDelete, OpList, OpPresign, OpRead, OpRename, OpStat, OpWrite

log = logging.getLogger(__name__)


def error_kind(exc: BaseException) -> str:
    """Error kind label used by all observability layers."""
    if isinstance(exc, UnistoreError):
        return exc.kind.value
    if isinstance(exc, asyncio.CancelledError):
        return "cancelled"
    return "unexpected"


@contextlib.contextmanager
def _safely(what: str) -> Iterator[None]:
    try:
        yield
    except Exception:
        log.debug("Ignoring failure while %s", what, exc_info=True)


class Recording:
    """One observed operation.

    Subclasses override :meth:`_finish` (and optionally :meth:`activate`).
    ``transferred`` counts bytes for readers and writers and entries for
    listers.

    :param scheme: Backend scheme of the observed accessor.
    :param operation: Operation name, e.g. ``"read"``.
    :param path: Path the operation targets.
    :param target: Destination path of ``copy`` and ``rename``.
    """

    def __init__(self, scheme: str, operation: str, path: str, target: Optional[str] = None) -> None:
        self.scheme = scheme
        self.operation = operation
        self.path = path
        self.target = target
        self.transferred = 0
        self.started = time.perf_counter()
        self.finished = False

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self.started

    def activate(self) -> AbstractContextManager[object]:
        """Context active while the inner call runs."""
        return contextlib.nullcontext()

    def finish(self, error: Optional[BaseException] = None, *, aborted: bool = False) -> None:
        """Record the outcome once; later calls are ignored."""
        if self.finished:
            return
        self.finished = True
        with _safely(f"recording {self.operation}"):
            self._finish(error, aborted)

    def _finish(self, error: Optional[BaseException], aborted: bool) -> None:  # noqa: B027
        """Emit the outcome."""


class ObservingAccessor(LayeredAccessor):
    """Accessor that records every operation through :meth:`_begin`."""

    @abc.abstractmethod
    def _begin(self, operation: str, path: str, target: Optional[str] = None) -> Recording:
        """Start recording ``operation``."""

    def _start(self, operation: str, path: str, target: Optional[str] = None) -> Recording:
        recording: Optional[Recording] = None
        with _safely(f"starting to record {operation}"):
            recording = self._begin(operation, path, target)
        return recording or Recording(self.info.scheme, operation, path, target)

    @contextlib.contextmanager
    def _observe(self, operation: str, path: str, target: Optional[str] = None) -> Iterator[Recording]:
        recording = self._start(operation, path, target)
        try:
            with recording.activate():
                yield recording
        except BaseException as exc:
            recording.finish(exc)
            raise
        recording.finish()

    @contextlib.contextmanager
    def _observe_open(self, operation: str, path: str) -> Iterator[Recording]:
        """Like :meth:`_observe`, but success leaves the recording to the stream."""
        recording = self._start(operation, path)
        try:
            with recording.activate():
                yield recording
        except BaseException as exc:
            recording.finish(exc)
            raise

    async def _stat(self, path: str, args: OpStat) -> Metadata:
        with self._observe("stat", path):
            return await self._inner.stat(path, args)

    async def _read(self, path: str, args: OpRead) -> Reader:
        with self._observe_open("read", path) as recording:
            reader = await self._inner.read(path, args)
        return ObservingReader(reader, recording)

    async def _write(self, path: str, args: OpWrite) -> Writer:
        with self._observe_open("write", path) as recording:
            writer = await self._inner.write(path, args)
        return ObservingWriter(writer, recording)

    async def _delete(self, path: str, args: OpDelete) -> None:
        with self._observe("delete", path):
            await self._inner.delete(path, args)

    async def _create_dir(self, path: str, args: OpCreateDir) -> None:
        with self._observe("create_dir", path):
            await self._inner.create_dir(path, args)

    async def _list(self, path: str, args: OpList) -> Lister:
        with self._observe_open("list", path) as recording:
            lister = await self._inner.list(path, args)
        return ObservingLister(lister, recording)

    async def _copy(self, src: str, dst: str, args: OpCopy) -> None:
        with self._observe("copy", src, dst):
            await self._inner.copy(src, dst, args)

    async def _rename(self, src: str, dst: str, args: OpRename) -> None:
        with self._observe("rename", src, dst):
            await self._inner.rename(src, dst, args)

    async def _presign(self, path: str, args: OpPresign) -> PresignedRequest:
        with self._observe("presign", path):
            return await self._inner.presign(path, args)


class ObservingReader(LayeredReader):
    def __init__(self, inner: Reader, recording: Recording) -> None:
        super().__init__(inner)
        self._recording = recording

    async def _read(self, size: int) -> bytes:
        try:
            data = await self._inner.read(size)
        except BaseException as exc:
            self._recording.finish(exc)
            raise
        if data:
            self._recording.transferred += len(data)
        else:
            self._recording.finish()
        return data

    async def _close(self) -> None:
        try:
            await self._inner.close()
        finally:
            self._recording.finish()


class ObservingWriter(LayeredWriter):
    def __init__(self, inner: Writer, recording: Recording) -> None:
        super().__init__(inner)
        self._recording = recording

    async def _write(self, data: bytes) -> None:
        try:
            await self._inner.write(data)
        except BaseException as exc:
            self._recording.finish(exc)
            raise
        self._recording.transferred += len(data)

    async def _close(self) -> None:
        try:
            await self._inner.close()
        except BaseException as exc:
            self._recording.finish(exc)
            raise
        self._recording.finish()

    async def _abort(self) -> None:
        try:
            await self._inner.abort()
        finally:
            self._recording.finish(aborted=True)


class ObservingLister(LayeredLister):
    def __init__(self, inner: Lister, recording: Recording) -> None:
        super().__init__(inner)
        self._recording = recording

    async def _next_page(self) -> Optional[list[Entry]]:
        try:
            page = await self._inner.next_page()
        except BaseException as exc:
            self._recording.finish(exc)
            raise
        if page is None:
            self._recording.finish()
        else:
            self._recording.transferred += len(page)
        return page

    async def _close(self) -> None:
        try:
            await self._inner.close()
        finally:
            self._recording.finish()
