"""Tests for the Accessor contract."""

from __future__ import annotations

from datetime import timedelta

import pytest

from unistore import Capability, CapabilitySet, EntryMode, OpList, OpPresign, OpStat, Unsupported
from tests.stubs import StubAccessor, file_entries

pytestmark = pytest.mark.anyio

READ_ONLY = CapabilitySet({Capability.STAT, Capability.READ})


class TestCapabilityFailFast:
    @pytest.mark.parametrize(
        ("operation", "call"),
        [
            ("write", lambda a: a.write("f")),
            ("delete", lambda a: a.delete("f")),
            ("create_dir", lambda a: a.create_dir("d/")),
            ("list", lambda a: a.list("d/")),
            ("copy", lambda a: a.copy("f", "g")),
            ("rename", lambda a: a.rename("f", "g")),
            ("presign", lambda a: a.presign("f", OpPresign(OpStat(), timedelta(minutes=1)))),
        ],
    )
    async def test_unadvertised_operation_never_reaches_backend(self, operation, call) -> None:  # type: ignore[no-untyped-def]
        stub = StubAccessor(READ_ONLY)
        with pytest.raises(Unsupported) as exc_info:
            await call(stub)
        assert exc_info.value.capability == operation
        assert exc_info.value.backend == "stub"
        assert stub.calls == []

    async def test_recursive_list_needs_its_own_capability(self) -> None:
        stub = StubAccessor(CapabilitySet({Capability.LIST}))
        await stub.list("d/")
        with pytest.raises(Unsupported) as exc_info:
            await stub.list("d/", OpList(recursive=True))
        assert exc_info.value.capability == "list_recursive"
        assert stub.count("list") == 1

    async def test_advertised_operation_dispatches(self) -> None:
        stub = StubAccessor(READ_ONLY, data=b"abc")
        metadata = await stub.stat("f")
        assert metadata.mode is EntryMode.FILE
        reader = await stub.read("f")
        assert await reader.read_all() == b"abc"
        assert stub.calls == [("stat", "f"), ("read", "f")]


class TestDefaults:
    async def test_default_args(self) -> None:
        stub = StubAccessor(data=b"0123456789")
        reader = await stub.read("f")
        assert stub.read_ranges[0].range.is_full
        await reader.close()

    async def test_repr(self) -> None:
        assert repr(StubAccessor()) == "StubAccessor(scheme='stub', root='/')"

    async def test_list_limit_lowered_to_max_page_size(self) -> None:
        caps = CapabilitySet({Capability.LIST}, max_list_page_size=3)
        stub = StubAccessor(caps, entries=file_entries(7))
        lister = await stub.list("dir/", OpList(limit=100))
        sizes: list[int] = []
        while (page := await lister.next_page()) is not None:
            sizes.append(len(page))
        assert sizes == [3, 3, 1]

    async def test_list_limit_within_max_page_size_kept(self) -> None:
        caps = CapabilitySet({Capability.LIST}, max_list_page_size=3)
        stub = StubAccessor(caps, entries=file_entries(7))
        lister = await stub.list("dir/", OpList(limit=2))
        page = await lister.next_page()
        assert page is not None
        assert len(page) == 2
