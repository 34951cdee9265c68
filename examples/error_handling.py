"""Error handling — one error taxonomy for every backend.

Demonstrates:
- Catching specific error kinds
- Structured attributes: kind, path, operation, backend
- Conditional writes failing with ConditionNotMatch
- Capability checks failing fast with Unsupported
"""

from __future__ import annotations

import asyncio
from datetime import timedelta

from unistore import (
    AlreadyExists,
    ConditionNotMatch,
    ErrorKind,
    InvalidArgument,
    NotFound,
    Operator,
    UnistoreError,
    Unsupported,
)
from unistore.backends import MemoryBackend


async def main() -> None:
    op = Operator(MemoryBackend())

    # --- NotFound ---
    try:
        await op.read("missing.txt")
    except NotFound as exc:
        print(f"NotFound: {exc}")
        print(f"  path={exc.path}, operation={exc.operation}, backend={exc.backend}")

    # --- AlreadyExists ---
    await op.write("a.txt", b"a")
    await op.write("b.txt", b"b")
    try:
        await op.copy("a.txt", "b.txt", overwrite=False)
    except AlreadyExists as exc:
        print(f"\nAlreadyExists: {exc}")

    # --- ConditionNotMatch: create-only write ---
    try:
        await op.write("a.txt", b"replacement", if_none_match="*")
    except ConditionNotMatch as exc:
        print(f"\nConditionNotMatch: {exc}")

    # --- InvalidArgument: paths may not climb above the root ---
    try:
        await op.read("../../etc/passwd")
    except InvalidArgument as exc:
        print(f"\nInvalidArgument: {exc}")

    # --- Unsupported: raised before any backend call ---
    try:
        await op.presign_read("a.txt", timedelta(minutes=5))
    except Unsupported as exc:
        print(f"\nUnsupported: {exc}")

    # --- Catch-all, dispatching on the kind ---
    try:
        await op.stat("nope")
    except UnistoreError as exc:
        if exc.kind is ErrorKind.NOT_FOUND:
            print(f"\nHandled by kind: {exc.kind.value}, temporary={exc.is_temporary()}")
        else:
            raise


if __name__ == "__main__":
    asyncio.run(main())
