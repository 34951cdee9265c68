"""Tests for the Reader, Writer and Lister contracts."""

from __future__ import annotations

import asyncio
import os
from typing import Optional

import pytest

from unistore import (
    AlreadyClosed,
    BufferedWriter,
    BytesReader,
    Entry,
    EntryMode,
    InvalidArgument,
    Metadata,
    Page,
    PageLister,
    Unexpected,
    Unsupported,
    WriterState,
)
from unistore._io import Reader

pytestmark = pytest.mark.anyio


class ForwardReader(Reader):
    def __init__(self, data: bytes) -> None:
        super().__init__(chunk_size=3)
        self._data = data

    async def _read(self, size: int) -> bytes:
        return self._data[self._pos : self._pos + size]


class Sink:
    def __init__(self) -> None:
        self.committed: list[bytes] = []

    async def commit(self, data: bytes) -> None:
        self.committed.append(data)


class TestReader:
    async def test_read_all(self) -> None:
        reader = BytesReader(b"hello world", chunk_size=4)
        assert await reader.read_all() == b"hello world"
        assert reader.closed

    async def test_sized_reads_and_tell(self) -> None:
        reader = BytesReader(b"abcdef")
        assert await reader.read(2) == b"ab"
        assert reader.tell() == 2
        assert await reader.read(10) == b"cdef"
        assert await reader.read(1) == b""
        assert await reader.read(0) == b""

    async def test_iterates_chunks(self) -> None:
        reader = BytesReader(b"abcdefgh", chunk_size=3)
        chunks = [chunk async for chunk in reader]
        assert chunks == [b"abc", b"def", b"gh"]

    async def test_read_after_close(self) -> None:
        reader = BytesReader(b"abc")
        await reader.close()
        await reader.close()
        with pytest.raises(AlreadyClosed):
            await reader.read()

    async def test_context_manager_closes(self) -> None:
        async with BytesReader(b"abc") as reader:
            await reader.read(1)
        assert reader.closed

    async def test_seek(self) -> None:
        reader = BytesReader(b"0123456789")
        assert await reader.seek(5) == 5
        assert await reader.read(2) == b"56"
        assert await reader.seek(-3, os.SEEK_END) == 7
        assert await reader.read() == b"789"
        assert await reader.seek(-2, os.SEEK_CUR) == 8
        assert await reader.seek(50) == 10

    async def test_seek_before_start(self) -> None:
        with pytest.raises(InvalidArgument):
            await BytesReader(b"abc").seek(-1)

    async def test_forward_only_reader_cannot_seek(self) -> None:
        reader = ForwardReader(b"abcdef")
        assert not reader.seekable
        with pytest.raises(Unsupported):
            await reader.seek(0)
        assert await reader.read() == b"abcdef"


class TestWriter:
    async def test_close_commits_once(self) -> None:
        sink = Sink()
        writer = BufferedWriter(sink.commit)
        await writer.write(b"abc")
        await writer.write(bytearray(b"def"))
        await writer.write(b"")
        assert sink.committed == []
        await writer.close()
        assert sink.committed == [b"abcdef"]
        assert writer.state is WriterState.CLOSED
        assert writer.bytes_written == 6

    async def test_abort_discards(self) -> None:
        sink = Sink()
        writer = BufferedWriter(sink.commit)
        await writer.write(b"abc")
        await writer.abort()
        await writer.abort()
        assert writer.state is WriterState.ABORTED
        assert sink.committed == []

    async def test_use_after_finalize(self) -> None:
        writer = BufferedWriter(Sink().commit)
        await writer.close()
        with pytest.raises(AlreadyClosed):
            await writer.write(b"x")
        with pytest.raises(AlreadyClosed):
            await writer.close()
        with pytest.raises(AlreadyClosed):
            await writer.abort()

    async def test_write_after_abort(self) -> None:
        writer = BufferedWriter(Sink().commit)
        await writer.abort()
        with pytest.raises(AlreadyClosed):
            await writer.write(b"x")

    async def test_context_manager_aborts_on_error(self) -> None:
        sink = Sink()
        writer = BufferedWriter(sink.commit)
        with pytest.raises(RuntimeError):
            async with writer:
                await writer.write(b"abc")
                raise RuntimeError("boom")
        assert writer.state is WriterState.ABORTED
        assert sink.committed == []

    async def test_context_manager_closes_on_success(self) -> None:
        sink = Sink()
        async with BufferedWriter(sink.commit) as writer:
            await writer.write(b"abc")
        assert sink.committed == [b"abc"]

    async def test_max_size(self) -> None:
        writer = BufferedWriter(Sink().commit, max_size=4)
        await writer.write(b"abcd")
        with pytest.raises(InvalidArgument):
            await writer.write(b"e")
        assert writer.bytes_written == 4

    async def test_failed_close_leaves_writer_open(self) -> None:
        async def failing_commit(data: bytes) -> None:
            raise Unexpected("commit failed")

        writer = BufferedWriter(failing_commit)
        with pytest.raises(Unexpected):
            await writer.close()
        assert writer.state is WriterState.OPEN
        await writer.abort()

    async def test_context_manager_aborts_after_failed_close(self) -> None:
        async def failing_commit(data: bytes) -> None:
            raise Unexpected("commit failed")

        with pytest.raises(Unexpected):
            async with BufferedWriter(failing_commit) as writer:
                await writer.write(b"abc")
        assert writer.state is WriterState.ABORTED

    async def test_cancellation_aborts(self) -> None:
        started = asyncio.Event()

        async def hanging_commit(data: bytes) -> None:
            started.set()
            await asyncio.Event().wait()

        writer = BufferedWriter(hanging_commit)
        await writer.write(b"abc")
        task = asyncio.create_task(writer.close())
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert writer.state is WriterState.ABORTED


def entries(count: int) -> list[Entry]:
    return [Entry(f"f{i:03d}", Metadata(EntryMode.FILE)) for i in range(count)]


def paged(items: list[Entry], page_size: int):  # type: ignore[no-untyped-def]
    async def fetch_page(token: Optional[str]) -> Page:
        offset = int(token) if token is not None else 0
        end = offset + page_size
        return Page(items[offset:end], str(end) if end < len(items) else None)

    return fetch_page


class TestLister:
    @pytest.mark.parametrize(("count", "page_size"), [(0, 3), (1, 3), (9, 3), (10, 3), (10, 100), (25, 1)])
    async def test_yields_every_entry_once(self, count: int, page_size: int) -> None:
        items = entries(count)
        lister = PageLister(paged(items, page_size))
        seen = [entry async for entry in lister]
        assert seen == items

    async def test_pages(self) -> None:
        lister = PageLister(paged(entries(5), 2))
        sizes = []
        while (page := await lister.next_page()) is not None:
            sizes.append(len(page))
        assert sizes == [2, 2, 1]
        assert await lister.next_page() is None

    async def test_repeated_token_is_unexpected(self) -> None:
        async def stuck(token: Optional[str]) -> Page:
            return Page(entries(1), "same")

        lister = PageLister(stuck)
        await lister.next_page()
        with pytest.raises(Unexpected):
            await lister.next_page()

    async def test_cycling_tokens_are_unexpected(self) -> None:
        cycle = {None: "t1", "t1": "t2", "t2": "t1"}

        async def cycling(token: Optional[str]) -> Page:
            return Page(entries(1), cycle[token])

        seen: list[Entry] = []
        with pytest.raises(Unexpected):
            async for entry in PageLister(cycling):
                seen.append(entry)
        assert len(seen) == 2

    async def test_closed_lister(self) -> None:
        lister = PageLister(paged(entries(5), 2))
        async with lister:
            await lister.next_page()
        with pytest.raises(AlreadyClosed):
            await lister.next_page()
