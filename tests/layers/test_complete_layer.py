"""Tests for CompleteLayer."""

from __future__ import annotations

import dataclasses

import pytest

from unistore import (
    AccessorInfo,
    AlreadyExists,
    Capability,
    NotFound,
    Operator,
    Unsupported,
)
from unistore._layer import LayeredAccessor
from unistore.backends import MemoryBackend
from unistore.layers import CompleteLayer
from tests.stubs import ALL_CAPABILITIES, StubAccessor

pytestmark = pytest.mark.anyio


class FlatListing(LayeredAccessor):
    """Memory backend that can neither rename nor list recursively."""

    def __init__(self, page_size: int = 1000) -> None:
        super().__init__(MemoryBackend(page_size=page_size))
        info = self._inner.info
        self._info = dataclasses.replace(
            info, capabilities=info.capabilities.without(Capability.LIST_RECURSIVE, Capability.RENAME)
        )

    @property
    def info(self) -> AccessorInfo:
        return self._info


TREE = ["a/1", "a/b/2", "a/b/c/3", "a/d/4", "e/5", "top"]


async def populate(op: Operator) -> None:
    for path in TREE:
        await op.write(path, path.encode())
    await op.create_dir("empty/")


def no_rename_stub() -> StubAccessor:
    return StubAccessor(ALL_CAPABILITIES.without(Capability.RENAME))


class TestRenameEmulation:
    async def test_copy_then_delete(self) -> None:
        stub = no_rename_stub()
        await Operator(stub, [CompleteLayer()]).rename("src", "dst")
        assert [name for name, _ in stub.calls] == ["copy", "delete"]
        assert stub.deleted == ["src"]

    async def test_no_overwrite_checks_target(self) -> None:
        stub = no_rename_stub()
        with pytest.raises(AlreadyExists) as exc_info:
            await Operator(stub, [CompleteLayer()]).rename("src", "dst", overwrite=False)
        assert exc_info.value.path == "dst"
        assert stub.calls == [("stat", "dst")]

    async def test_no_overwrite_with_free_target(self) -> None:
        stub = no_rename_stub()
        stub.fail("stat", NotFound("free"))
        await Operator(stub, [CompleteLayer()]).rename("src", "dst", overwrite=False)
        assert [name for name, _ in stub.calls] == ["stat", "copy", "delete"]

    async def test_failed_copy_keeps_source(self) -> None:
        stub = no_rename_stub()
        stub.fail("copy", NotFound("no source"))
        with pytest.raises(NotFound):
            await Operator(stub, [CompleteLayer()]).rename("src", "dst")
        assert stub.deleted == []

    async def test_native_rename_passes_through(self) -> None:
        stub = StubAccessor()
        await Operator(stub, [CompleteLayer()]).rename("src", "dst")
        assert [name for name, _ in stub.calls] == ["rename"]

    async def test_on_memory(self) -> None:
        op = Operator(FlatListing(), [CompleteLayer()])
        await op.write("a", b"payload")
        await op.rename("a", "b")
        assert await op.read("b") == b"payload"
        assert not await op.is_exist("a")

    async def test_needs_copy_and_delete(self) -> None:
        stub = StubAccessor(ALL_CAPABILITIES.without(Capability.RENAME, Capability.COPY))
        op = Operator(stub, [CompleteLayer()])
        assert not op.info.capabilities.supports(Capability.RENAME)
        with pytest.raises(Unsupported):
            await op.rename("src", "dst")


class TestRecursiveListingEmulation:
    async def test_unsupported_without_layer(self) -> None:
        op = Operator(FlatListing())
        with pytest.raises(Unsupported) as exc_info:
            await op.list("/", recursive=True)
        assert exc_info.value.operation == "list"

    async def test_walk_matches_native_listing(self) -> None:
        native = Operator(MemoryBackend())
        walked = Operator(FlatListing(), [CompleteLayer()])
        await populate(native)
        await populate(walked)
        expected = [e.path for e in await native.list("/", recursive=True)]
        assert sorted(e.path for e in await walked.list("/", recursive=True)) == expected

    async def test_walk_of_subdirectory(self) -> None:
        op = Operator(FlatListing(), [CompleteLayer()])
        await populate(op)
        listed = sorted(e.path for e in await op.list("a/", recursive=True))
        assert listed == ["a/1", "a/b/", "a/b/2", "a/b/c/", "a/b/c/3", "a/d/", "a/d/4"]

    async def test_breadth_first(self) -> None:
        op = Operator(FlatListing(), [CompleteLayer()])
        await populate(op)
        listed = [e.path for e in await op.list("a/", recursive=True)]
        assert listed.index("a/d/") < listed.index("a/b/2")
        assert listed.index("a/b/2") < listed.index("a/b/c/3")

    @pytest.mark.parametrize("page_size", [1, 2, 1000])
    async def test_complete_for_any_page_size(self, page_size: int) -> None:
        op = Operator(FlatListing(page_size=page_size), [CompleteLayer()])
        await populate(op)
        listed = [e.path for e in await op.list("/", recursive=True, limit=page_size)]
        assert len(listed) == len(set(listed))
        assert {"top", "a/b/c/3", "empty/", "e/5"} <= set(listed)
        assert len(listed) == len(TREE) + 6

    async def test_start_after(self) -> None:
        op = Operator(FlatListing(), [CompleteLayer()])
        await populate(op)
        listed = sorted(e.path for e in await op.list("/", recursive=True, start_after="a/d/"))
        assert listed == ["a/d/4", "e/", "e/5", "empty/", "top"]

    async def test_flat_listing_unchanged(self) -> None:
        op = Operator(FlatListing(), [CompleteLayer()])
        await populate(op)
        assert [e.path for e in await op.list("/")] == ["a/", "e/", "empty/", "top"]

    def test_adds_only_emulated_capabilities(self) -> None:
        inner = FlatListing()
        added = Operator(inner, [CompleteLayer()]).info.capabilities
        assert set(added) - set(inner.info.capabilities) == {Capability.RENAME, Capability.LIST_RECURSIVE}
