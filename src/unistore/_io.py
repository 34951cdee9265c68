"""Streaming contracts: Reader, Writer and Lister.

All three are asynchronous and single-use. Every chunk is a suspension
point, so cancelling the awaiting task interrupts the stream wherever it is.
"""

from __future__ import annotations

import abc
import asyncio
import collections
import dataclasses
import enum
import logging
import os
from typing import TYPE_CHECKING, Optional

from unistore._errors import AlreadyClosed, InvalidArgument, Unexpected, UnistoreError, Unsupported

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence
    from types import TracebackType

    from unistore._models import Entry, Metadata

log = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


# region: Reader
class Reader(abc.ABC):
    """A lazy, finite stream of bytes produced by one ``read`` call.

    Subclasses implement :meth:`_read`; seekable readers also set
    ``seekable = True`` and implement :meth:`_seek`. A reader cannot be
    restarted: reading again needs a new ``read`` call.

    :param chunk_size: Chunk size used for iteration and unsized reads.
    :param metadata: What the backend reported when the read was opened.
    """

    seekable: bool = False

    def __init__(self, *, chunk_size: int = DEFAULT_CHUNK_SIZE, metadata: Optional[Metadata] = None) -> None:
        self._chunk_size = chunk_size
        self._metadata = metadata
        self._pos = 0
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def metadata(self) -> Optional[Metadata]:
        """Metadata of the object being read.

        ``content_length`` is the size of the requested range and
        ``content_range`` is set for ranged reads. ``None`` if the backend
        reported nothing.
        """
        return self._metadata

    def tell(self) -> int:
        """Number of bytes consumed relative to the start of the requested range."""
        return self._pos

    async def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes; a negative size reads to the end.

        Returns ``b""`` at end of stream.

        :raises AlreadyClosed: If the reader was closed.
        """
        self._ensure_open()
        if size == 0:
            return b""
        if size > 0:
            data = await self._read(size)
            self._pos += len(data)
            return data
        chunks = []
        while True:
            data = await self._read(self._chunk_size)
            if not data:
                break
            self._pos += len(data)
            chunks.append(data)
        return b"".join(chunks)

    async def read_all(self) -> bytes:
        """Drain the reader and close it."""
        try:
            return await self.read()
        finally:
            await self.close()

    async def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        """Move within the requested range and return the new position.

        :raises Unsupported: If the reader is forward-only.
        """
        self._ensure_open()
        if not self.seekable:
            raise Unsupported("Reader is not seekable", capability="seek")
        self._pos = await self._seek(offset, whence)
        return self._pos

    async def close(self) -> None:
        """Release the underlying resource. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        await self._close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise AlreadyClosed("Reader is closed")

    @abc.abstractmethod
    async def _read(self, size: int) -> bytes:
        """Return at most ``size`` (> 0) bytes, ``b""`` at end of stream."""

    async def _seek(self, offset: int, whence: int) -> int:
        raise Unsupported("Reader is not seekable", capability="seek")

    async def _close(self) -> None:  # noqa: B027
        """Release resources. Default is a no-op."""

    def __aiter__(self) -> Reader:
        return self

    async def __anext__(self) -> bytes:
        data = await self.read(self._chunk_size)
        if not data:
            raise StopAsyncIteration
        return data

    async def __aenter__(self) -> Reader:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


class BytesReader(Reader):
    """Seekable reader over an in-memory buffer.

    :param data: The bytes to serve.
    :param chunk_size: Chunk size used for iteration.
    :param metadata: Metadata reported for the read.
    """

    seekable = True

    def __init__(
        self, data: bytes, *, chunk_size: int = DEFAULT_CHUNK_SIZE, metadata: Optional[Metadata] = None
    ) -> None:
        super().__init__(chunk_size=chunk_size, metadata=metadata)
        self._data = memoryview(data)

    async def _read(self, size: int) -> bytes:
        return bytes(self._data[self._pos : self._pos + size])

    async def _seek(self, offset: int, whence: int) -> int:
        return _resolve_seek(self._pos, len(self._data), offset, whence)


def _resolve_seek(current: int, length: int, offset: int, whence: int) -> int:
    if whence == os.SEEK_SET:
        target = offset
    elif whence == os.SEEK_CUR:
        target = current + offset
    elif whence == os.SEEK_END:
        target = length + offset
    else:
        raise InvalidArgument(f"Invalid whence: {whence}")
    if target < 0:
        raise InvalidArgument(f"Cannot seek before the start of the range (target {target})")
    return min(target, length)


# endregion


# region: Writer
class WriterState(enum.Enum):
    """Lifecycle of a writer."""

    OPEN = "open"
    CLOSED = "closed"
    ABORTED = "aborted"


class Writer(abc.ABC):
    """Accepts a stream of chunks and commits them on :meth:`close`.

    Nothing becomes visible before :meth:`close` succeeds; :meth:`abort`
    releases any partial state. A cancellation observed while writing or
    closing aborts the writer before the cancellation propagates.
    """

    def __init__(self) -> None:
        self._state = WriterState.OPEN
        self._bytes_written = 0

    @property
    def state(self) -> WriterState:
        return self._state

    @property
    def bytes_written(self) -> int:
        return self._bytes_written

    async def write(self, data: bytes | bytearray | memoryview) -> None:
        """Append a chunk.

        :raises AlreadyClosed: If the writer was closed or aborted.
        """
        self._ensure_open()
        if not data:
            return
        chunk = bytes(data)
        try:
            await self._write(chunk)
        except asyncio.CancelledError:
            await self._abort_after_cancel()
            raise
        self._bytes_written += len(chunk)

    async def close(self) -> None:
        """Finalize the object.

        A failed close leaves the writer open so the caller may retry or abort.

        :raises AlreadyClosed: If the writer was closed or aborted.
        """
        self._ensure_open()
        try:
            await self._close()
        except asyncio.CancelledError:
            await self._abort_after_cancel()
            raise
        self._state = WriterState.CLOSED

    async def abort(self) -> None:
        """Discard everything written so far. Aborting twice is a no-op.

        :raises AlreadyClosed: If the writer was already closed.
        """
        if self._state is WriterState.CLOSED:
            raise AlreadyClosed("Writer is already closed")
        if self._state is WriterState.ABORTED:
            return
        self._state = WriterState.ABORTED
        await self._abort()

    async def _abort_after_cancel(self) -> None:
        if self._state is not WriterState.OPEN:
            return
        self._state = WriterState.ABORTED
        try:
            await self._abort()
        except UnistoreError:
            log.warning("Failed to abort writer after cancellation", exc_info=True)

    def _ensure_open(self) -> None:
        if self._state is not WriterState.OPEN:
            raise AlreadyClosed(f"Writer is already {self._state.value}")

    @abc.abstractmethod
    async def _write(self, data: bytes) -> None:
        """Accept one non-empty chunk."""

    @abc.abstractmethod
    async def _close(self) -> None:
        """Commit the object."""

    @abc.abstractmethod
    async def _abort(self) -> None:
        """Release partial state."""

    async def __aenter__(self) -> Writer:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._state is not WriterState.OPEN:
            return
        if exc_type is None:
            try:
                await self.close()
            except UnistoreError as exc:
                await self._abort_quietly(type(exc))
                raise
            return
        await self._abort_quietly(exc_type)

    async def _abort_quietly(self, cause: type[BaseException]) -> None:
        if self._state is not WriterState.OPEN:
            return
        try:
            await self.abort()
        except UnistoreError:
            log.warning("Failed to abort writer after %s", cause.__name__, exc_info=True)


class BufferedWriter(Writer):
    """Writer for backends without streaming upload.

    Chunks are gathered in memory and handed to ``commit`` in one piece on
    close, so an abandoned or aborted writer never leaves anything behind.

    :param commit: Coroutine function persisting the full payload.
    :param max_size: Reject payloads larger than this many bytes.
    """

    def __init__(self, commit: Callable[[bytes], Awaitable[None]], *, max_size: Optional[int] = None) -> None:
        super().__init__()
        self._commit = commit
        self._max_size = max_size
        self._buffer = bytearray()

    async def _write(self, data: bytes) -> None:
        if self._max_size is not None and len(self._buffer) + len(data) > self._max_size:
            raise InvalidArgument(f"Write exceeds max_write_size of {self._max_size} bytes")
        self._buffer.extend(data)

    async def _close(self) -> None:
        await self._commit(bytes(self._buffer))
        self._buffer = bytearray()

    async def _abort(self) -> None:
        self._buffer = bytearray()


# endregion


# region: Lister
@dataclasses.dataclass(frozen=True)
class Page:
    """One page of a listing.

    :param entries: Entries of this page.
    :param next_token: Opaque continuation token; ``None`` ends the listing.
    """

    entries: Sequence[Entry]
    next_token: Optional[str] = None


class Lister(abc.ABC):
    """A lazy sequence of entries, fetched page by page.

    Iterate with ``async for``; :meth:`next_page` exposes the raw pages.
    Dropping a partially consumed lister is safe.
    """

    def __init__(self) -> None:
        self._buffer: collections.deque[Entry] = collections.deque()
        self._done = False
        self._closed = False

    async def next_page(self) -> Optional[list[Entry]]:
        """Fetch the next page, or ``None`` once the listing is exhausted.

        :raises AlreadyClosed: If the lister was closed.
        """
        if self._closed:
            raise AlreadyClosed("Lister is closed")
        if self._done:
            return None
        page = await self._next_page()
        if page is None:
            self._done = True
        return page

    async def close(self) -> None:
        """Release the underlying resource. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        self._buffer.clear()
        await self._close()

    @abc.abstractmethod
    async def _next_page(self) -> Optional[list[Entry]]:
        """Return the next page of entries, or ``None`` at the end."""

    async def _close(self) -> None:  # noqa: B027
        """Release resources. Default is a no-op."""

    def __aiter__(self) -> Lister:
        return self

    async def __anext__(self) -> Entry:
        while not self._buffer:
            page = await self.next_page()
            if page is None:
                raise StopAsyncIteration
            self._buffer.extend(page)
        return self._buffer.popleft()

    async def __aenter__(self) -> Lister:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


class PageLister(Lister):
    """Lister driven by continuation tokens.

    A token returned twice raises :class:`~unistore.Unexpected`, so a
    backend that cycles cannot make the listing endless.

    :param fetch_page: Coroutine function returning the page that follows
        ``token`` (``None`` for the first page).
    """

    def __init__(self, fetch_page: Callable[[Optional[str]], Awaitable[Page]]) -> None:
        super().__init__()
        self._fetch_page = fetch_page
        self._token: Optional[str] = None
        self._seen_tokens: set[str] = set()
        self._last_page = False

    async def _next_page(self) -> Optional[list[Entry]]:
        if self._last_page:
            return None
        page = await self._fetch_page(self._token)
        if page.next_token is None:
            self._last_page = True
        elif page.next_token in self._seen_tokens:
            raise Unexpected(f"Backend returned continuation token {page.next_token!r} twice")
        else:
            self._seen_tokens.add(page.next_token)
        self._token = page.next_token
        return list(page.entries)


# endregion
