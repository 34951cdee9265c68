"""Layering — retry, concurrency limits, logging and emulated operations.

Demonstrates:
- Stacking layers on an operator (the last layer given is outermost)
- Emulating recursive listing with CompleteLayer
- Logging every operation through the standard logging module
"""

from __future__ import annotations

import asyncio
import logging
import tempfile

from unistore import Operator
from unistore.backends import FsBackend
from unistore.layers import CompleteLayer, ConcurrentLimitLayer, LoggingLayer, RetryLayer


async def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    with tempfile.TemporaryDirectory() as tmp:
        op = Operator(
            FsBackend(tmp),
            [
                CompleteLayer(),
                RetryLayer(max_attempts=3),
                ConcurrentLimitLayer(4),
                LoggingLayer("example", level="INFO"),
            ],
        )

        # Sixteen writes, at most four on the disk at a time.
        await asyncio.gather(*(op.write(f"batch/part-{i:02d}.bin", bytes(i)) for i in range(16)))

        entries = await op.list("/", recursive=True)
        print(f"{len(entries)} entries under the root")

        await op.remove_all("batch/")
        print(f"After remove_all: {await op.list('/')}")


if __name__ == "__main__":
    asyncio.run(main())
