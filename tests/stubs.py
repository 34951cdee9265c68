"""Stub accessors for exercising layers without a real backend."""

from __future__ import annotations

import asyncio
import collections
import zlib
from typing import Optional

from unistore import (
    Accessor,
    AccessorInfo,
    BufferedWriter,
    BytesReader,
    Capability,
    CapabilitySet,
    ConditionNotMatch,
    Entry,
    EntryMode,
    Lister,
    Metadata,
    NetworkError,
    OpCopy,
    OpCreateDir,
    OpDelete,
    OpList,
    OpPresign,
    OpRead,
    OpRename,
    OpStat,
    OpWrite,
    Page,
    PageLister,
    PresignedRequest,
    Reader,
    Writer,
)

ALL_CAPABILITIES = CapabilitySet(set(Capability))


def file_entries(count: int, prefix: str = "dir/") -> list[Entry]:
    return [
        Entry(f"{prefix}file-{i:04d}", Metadata(EntryMode.FILE, content_length=i)) for i in range(count)
    ]


class FailingReader(Reader):
    """Serves ``data`` and raises a retryable error after ``fail_after`` bytes."""

    def __init__(
        self, data: bytes, fail_after: int, *, chunk_size: int = 4, metadata: Optional[Metadata] = None
    ) -> None:
        super().__init__(chunk_size=chunk_size, metadata=metadata)
        self._data = data
        self._fail_after = fail_after

    async def _read(self, size: int) -> bytes:
        if self._pos >= self._fail_after:
            raise NetworkError("connection reset while reading")
        end = min(self._pos + size, self._fail_after, len(self._data))
        return self._data[self._pos : end]


class StubAccessor(Accessor):
    """Accessor whose behaviour tests configure directly.

    - ``failures[operation]`` holds exceptions raised by successive calls of
      that operation before it starts succeeding.
    - Calls on a path in ``blocking`` wait for ``gate`` to be set;
      ``active`` and ``peak`` count calls in flight.
    - ``read`` serves ``data``; ``read_failures`` holds byte offsets after
      which successive readers fail with a retryable error.
    - ``list`` serves ``entries`` in pages of ``page_size``.
    - Closed writers store their payload in ``written``.
    """

    def __init__(
        self,
        capabilities: CapabilitySet = ALL_CAPABILITIES,
        *,
        scheme: str = "stub",
        data: bytes = b"",
        entries: Optional[list[Entry]] = None,
        page_size: int = 10,
    ) -> None:
        self._info = AccessorInfo(scheme=scheme, capabilities=capabilities)
        self.data = data
        self.entries = entries or []
        self.page_size = page_size
        self.failures: dict[str, collections.deque[BaseException]] = collections.defaultdict(collections.deque)
        self.read_failures: collections.deque[int] = collections.deque()
        self.blocking: set[str] = set()
        self.gate = asyncio.Event()
        self.calls: list[tuple[str, str]] = []
        self.read_ranges: list[OpRead] = []
        self.written: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.active = 0
        self.peak = 0
        self.closed = False

    @property
    def info(self) -> AccessorInfo:
        return self._info

    @property
    def etag(self) -> str:
        return f'"{zlib.crc32(self.data):08x}"'

    def fail(self, operation: str, *errors: BaseException) -> None:
        self.failures[operation].extend(errors)

    async def _enter(self, operation: str, path: str) -> None:
        self.calls.append((operation, path))
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if path in self.blocking:
                await self.gate.wait()
            if self.failures[operation]:
                raise self.failures[operation].popleft()
        finally:
            self.active -= 1

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)

    async def _stat(self, path: str, args: OpStat) -> Metadata:
        await self._enter("stat", path)
        return Metadata(EntryMode.FILE, content_length=len(self.data))

    async def _read(self, path: str, args: OpRead) -> Reader:
        await self._enter("read", path)
        self.read_ranges.append(args)
        if args.if_match is not None and args.if_match != self.etag:
            raise ConditionNotMatch(f"Etag {self.etag} does not match {args.if_match}", path=path)
        start, end = args.range.resolve(len(self.data))
        metadata = Metadata(EntryMode.FILE, content_length=len(self.data), etag=self.etag)
        metadata = metadata.for_range(args.range, start, end)
        if self.read_failures:
            return FailingReader(self.data[start:end], self.read_failures.popleft(), metadata=metadata)
        return BytesReader(self.data[start:end], chunk_size=4, metadata=metadata)

    async def _write(self, path: str, args: OpWrite) -> Writer:
        await self._enter("write", path)

        async def commit(data: bytes) -> None:
            await self._enter("writer.close", path)
            self.written[path] = data

        return StubWriter(self, path, commit)

    async def _delete(self, path: str, args: OpDelete) -> None:
        await self._enter("delete", path)
        self.deleted.append(path)

    async def _create_dir(self, path: str, args: OpCreateDir) -> None:
        await self._enter("create_dir", path)

    async def _list(self, path: str, args: OpList) -> Lister:
        await self._enter("list", path)
        page_size = args.limit or self.page_size

        async def fetch_page(token: Optional[str]) -> Page:
            await self._enter("lister.next_page", path)
            offset = int(token) if token is not None else 0
            page = self.entries[offset : offset + page_size]
            end = offset + len(page)
            return Page(page, str(end) if end < len(self.entries) else None)

        return PageLister(fetch_page)

    async def _copy(self, src: str, dst: str, args: OpCopy) -> None:
        await self._enter("copy", src)

    async def _rename(self, src: str, dst: str, args: OpRename) -> None:
        await self._enter("rename", src)

    async def _presign(self, path: str, args: OpPresign) -> PresignedRequest:
        await self._enter("presign", path)
        return PresignedRequest("GET", f"https://stub.invalid/{path}")

    async def close(self) -> None:
        self.closed = True


class StubWriter(BufferedWriter):
    """Buffered writer whose chunk writes go through the stub's failure and blocking hooks."""

    def __init__(self, stub: StubAccessor, path: str, commit) -> None:  # type: ignore[no-untyped-def]
        super().__init__(commit)
        self._stub = stub
        self._path = path
        self.aborted = False

    async def _write(self, data: bytes) -> None:
        await self._stub._enter("writer.write", self._path)
        await super()._write(data)

    async def _abort(self) -> None:
        self.aborted = True
        await super()._abort()
