"""Quickstart — write, read, stat and list with an in-memory operator.

Demonstrates:
- Building an Operator over a backend
- Writing and reading a file
- Reading a byte range
- Listing a directory
"""

from __future__ import annotations

import asyncio

from unistore import Operator
from unistore.backends import MemoryBackend


async def main() -> None:
    async with Operator(MemoryBackend()) as op:
        await op.write("greetings/hello.txt", b"Hello, world!", content_type="text/plain")
        print(f"Exists: {await op.is_exist('greetings/hello.txt')}")

        print(f"Content: {await op.read('greetings/hello.txt')!r}")
        print(f"First word: {await op.range_read('greetings/hello.txt', 0, 5)!r}")

        meta = await op.stat("greetings/hello.txt")
        print(f"Size: {meta.content_length} bytes, etag {meta.etag}")

        await op.write("greetings/bye.txt", b"Goodbye!")
        for entry in await op.list("greetings/"):
            print(f"  {entry.path} ({entry.metadata.mode.value})")


if __name__ == "__main__":
    asyncio.run(main())
