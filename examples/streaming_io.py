"""Streaming I/O — readers, writers and listers for data larger than memory.

Demonstrates:
- Writing chunk by chunk; nothing is visible until close
- Aborting a writer
- Iterating a reader in chunks and seeking within a range
- Paging through a listing
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from collections.abc import AsyncIterator

from unistore import Operator
from unistore.backends import FsBackend


async def produce(count: int) -> AsyncIterator[bytes]:
    for i in range(count):
        yield f"line {i}\n".encode()


async def main() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        op = Operator(FsBackend(tmp))

        # --- Writer: committed atomically on close ---
        async with await op.writer("log.txt") as writer:
            for i in range(1000):
                await writer.write(f"line {i}\n".encode())
            print(f"Visible before close: {await op.is_exist('log.txt')}")
        print(f"Wrote {writer.bytes_written} bytes")

        # --- Writing from an async iterable ---
        size = await op.write("generated.txt", produce(100))
        print(f"Generated {size} bytes")

        # --- Abort discards the partial object ---
        writer = await op.writer("discarded.txt")
        await writer.write(b"never mind")
        await writer.abort()
        print(f"Aborted file exists: {await op.is_exist('discarded.txt')}")

        # --- Reader: chunked iteration and seeking ---
        async with await op.reader("log.txt", offset=100, size=200) as reader:
            first = await reader.read(20)
            await reader.seek(-20, os.SEEK_END)
            last = await reader.read()
            print(f"Range starts with {first!r} and ends with {last!r}")

        total = 0
        async with await op.reader("log.txt") as reader:
            async for chunk in reader:
                total += len(chunk)
        print(f"Streamed {total} bytes")

        # --- Lister: lazy pages ---
        for i in range(10):
            await op.write(f"items/{i:02d}", b"x")
        async with await op.lister("items/", limit=4) as lister:
            while (page := await lister.next_page()) is not None:
                print("Page:", [entry.path for entry in page])


if __name__ == "__main__":
    asyncio.run(main())
