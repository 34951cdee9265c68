"""Tests for ErrorContextLayer."""

from __future__ import annotations

import asyncio

import pytest

from unistore import (
    Cancelled,
    NetworkError,
    NotFound,
    Operator,
    OpStat,
    PermissionDenied,
    Unexpected,
    UnistoreError,
)
from unistore.layers import ErrorContextLayer
from tests.stubs import StubAccessor, file_entries

pytestmark = pytest.mark.anyio


class TestAnnotation:
    async def test_operation_path_and_backend(self) -> None:
        stub = StubAccessor()
        stub.fail("delete", PermissionDenied("denied"))
        with pytest.raises(PermissionDenied) as exc_info:
            await Operator(stub).delete("a/b")
        assert exc_info.value.operation == "delete"
        assert exc_info.value.path == "a/b"
        assert exc_info.value.backend == "stub"

    async def test_copy_tagged_with_source(self) -> None:
        stub = StubAccessor()
        stub.fail("copy", NotFound("gone"))
        with pytest.raises(NotFound) as exc_info:
            await Operator(stub).copy("src", "dst")
        assert exc_info.value.operation == "copy"
        assert exc_info.value.path == "src"

    async def test_existing_path_is_kept(self) -> None:
        stub = StubAccessor()
        stub.fail("stat", NotFound("gone", path="bucket/key"))
        with pytest.raises(NotFound) as exc_info:
            await Operator(stub).stat("key")
        assert exc_info.value.path == "bucket/key"

    async def test_lower_operation_kept_as_called(self) -> None:
        stub = StubAccessor()
        stub.fail("stat", NotFound("gone", operation="head_object"))
        with pytest.raises(NotFound) as exc_info:
            await Operator(stub).stat("key")
        assert exc_info.value.operation == "stat"
        assert ("called", "head_object") in exc_info.value.context

    async def test_unchanged_error_is_reraised_as_is(self) -> None:
        error = NotFound("gone", path="p", operation="stat", backend="stub")
        stub = StubAccessor()
        stub.fail("stat", error)
        with pytest.raises(NotFound) as exc_info:
            await ErrorContextLayer().layer(stub).stat("p", OpStat())
        assert exc_info.value is error

    async def test_cause_preserved(self) -> None:
        root = OSError("disk on fire")
        error = NetworkError("reset")
        error.__cause__ = root
        stub = StubAccessor()
        stub.fail("stat", error)
        with pytest.raises(NetworkError) as exc_info:
            await Operator(stub).stat("p")
        assert exc_info.value.source is root


class TestConversion:
    async def test_stray_exception_becomes_unexpected(self) -> None:
        stub = StubAccessor()
        stub.fail("stat", ValueError("boom"))
        with pytest.raises(Unexpected) as exc_info:
            await Operator(stub).stat("p")
        assert exc_info.value.message == "ValueError: boom"
        assert exc_info.value.operation == "stat"
        assert isinstance(exc_info.value.source, ValueError)

    async def test_cancellation_becomes_cancelled(self) -> None:
        stub = StubAccessor()
        stub.blocking.add("slow")
        op = Operator(stub)
        caught: list[UnistoreError] = []

        async def stat() -> None:
            try:
                await op.stat("slow")
            except UnistoreError as exc:
                caught.append(exc)
                raise

        task = asyncio.create_task(stat())
        for _ in range(10):
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert isinstance(caught[0], Cancelled)
        assert caught[0].operation == "stat"
        assert not caught[0].is_temporary()


class TestStreams:
    async def test_reader_failures_tagged(self) -> None:
        stub = StubAccessor(data=bytes(20))
        stub.read_failures.append(4)
        with pytest.raises(NetworkError) as exc_info:
            await Operator(stub).read("f")
        assert exc_info.value.operation == "reader.read"
        assert exc_info.value.path == "f"

    async def test_writer_failures_tagged(self) -> None:
        stub = StubAccessor()
        stub.fail("writer.write", NetworkError("reset"))
        writer = await Operator(stub).writer("f")
        with pytest.raises(NetworkError) as exc_info:
            await writer.write(b"abc")
        assert exc_info.value.operation == "writer.write"
        assert exc_info.value.backend == "stub"

    async def test_writer_close_failures_tagged(self) -> None:
        stub = StubAccessor()
        stub.fail("writer.close", PermissionDenied("read-only"))
        with pytest.raises(PermissionDenied) as exc_info:
            await Operator(stub).write("f", b"abc")
        assert exc_info.value.operation == "writer.close"

    async def test_lister_failures_tagged(self) -> None:
        stub = StubAccessor(entries=file_entries(3))
        stub.fail("lister.next_page", NetworkError("reset"))
        with pytest.raises(NetworkError) as exc_info:
            await Operator(stub).list("dir/")
        assert exc_info.value.operation == "lister.next_page"
        assert exc_info.value.path == "dir/"
