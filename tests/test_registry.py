"""Tests for the registry and its factory tables."""

from __future__ import annotations

from pathlib import Path

import pytest

from unistore import BackendConfig, LayerConfig, Operator, OperatorProfile, Registry, RegistryConfig, unwrap
from unistore import register_backend, register_layer
from unistore.backends import FsBackend, MemoryBackend
from unistore.layers import ConcurrentLimitLayer, RetryLayer
from tests.stubs import StubAccessor

pytestmark = pytest.mark.anyio


def _make_config(root: Path) -> RegistryConfig:
    return RegistryConfig(
        backends={
            "mem": BackendConfig(type="memory", options={"page_size": 10}),
            "disk": BackendConfig(type="fs", options={"root": str(root)}),
        },
        operators={
            "main": OperatorProfile(
                backend="mem",
                layers=(LayerConfig("retry", {"max_attempts": 2}), LayerConfig("concurrent_limit", {"permits": 3})),
            ),
            "plain": OperatorProfile(backend="mem"),
            "files": OperatorProfile(backend="disk", layers=(LayerConfig("logging", {"level": "INFO"}),)),
        },
    )


# -- Construction and validation --


def test_registry_validates_on_construction() -> None:
    bad_config = RegistryConfig(operators={"main": OperatorProfile(backend="nonexistent")})
    with pytest.raises(ValueError, match="nonexistent"):
        Registry(bad_config)


def test_empty_registry() -> None:
    reg = Registry()
    assert repr(reg) == "Registry(operators=[])"


# -- get_operator --


def test_get_operator_builds_layered_stack(tmp_path: Path) -> None:
    reg = Registry(_make_config(tmp_path))
    op = reg.get_operator("main")
    assert isinstance(op, Operator)
    stack = unwrap(op.accessor)
    assert [type(a).__name__ for a in stack] == [
        "ErrorContextAccessor",
        "ConcurrentLimitAccessor",
        "RetryAccessor",
        "MemoryBackend",
    ]


def test_get_operator_is_cached(tmp_path: Path) -> None:
    reg = Registry(_make_config(tmp_path))
    assert reg.get_operator("main") is reg.get_operator("main")


def test_get_operator_unknown_raises(tmp_path: Path) -> None:
    reg = Registry(_make_config(tmp_path))
    with pytest.raises(KeyError, match="unknown_operator"):
        reg.get_operator("unknown_operator")


def test_fs_operator(tmp_path: Path) -> None:
    reg = Registry(_make_config(tmp_path))
    op = reg.get_operator("files")
    assert isinstance(unwrap(op.accessor)[-1], FsBackend)


# -- Lazy instantiation and sharing --


def test_lazy_instantiation(tmp_path: Path) -> None:
    reg = Registry(_make_config(tmp_path))
    assert len(reg._backends) == 0
    reg.get_operator("main")
    assert len(reg._backends) == 1


def test_backend_shared_across_operators(tmp_path: Path) -> None:
    reg = Registry(_make_config(tmp_path))
    main = unwrap(reg.get_operator("main").accessor)[-1]
    plain = unwrap(reg.get_operator("plain").accessor)[-1]
    assert isinstance(main, MemoryBackend)
    assert main is plain


async def test_operators_see_the_same_data(tmp_path: Path) -> None:
    reg = Registry(_make_config(tmp_path))
    await reg.get_operator("main").write("f", b"shared")
    assert await reg.get_operator("plain").read("f") == b"shared"


# -- Misconfiguration --


def test_unknown_backend_type() -> None:
    reg = Registry(
        RegistryConfig(backends={"x": BackendConfig(type="nope")}, operators={"main": OperatorProfile(backend="x")})
    )
    with pytest.raises(ValueError, match="Unknown backend type 'nope'"):
        reg.get_operator("main")


def test_bad_backend_options() -> None:
    reg = Registry(
        RegistryConfig(
            backends={"x": BackendConfig(type="memory", options={"bogus": 1})},
            operators={"main": OperatorProfile(backend="x")},
        )
    )
    with pytest.raises(ValueError, match="bogus"):
        reg.get_operator("main")


def test_unknown_layer_type() -> None:
    reg = Registry(
        RegistryConfig(
            backends={"x": BackendConfig(type="memory")},
            operators={"main": OperatorProfile(backend="x", layers=(LayerConfig("nope"),))},
        )
    )
    with pytest.raises(ValueError, match="Unknown layer type 'nope'"):
        reg.get_operator("main")


def test_bad_layer_options() -> None:
    reg = Registry(
        RegistryConfig(
            backends={"x": BackendConfig(type="memory")},
            operators={"main": OperatorProfile(backend="x", layers=(LayerConfig("retry", {"tries": 3}),))},
        )
    )
    with pytest.raises(ValueError, match="tries"):
        reg.get_operator("main")


# -- close --


async def test_close_closes_backends() -> None:
    stub = StubAccessor()
    register_backend("stub-closing", lambda: stub)
    reg = Registry(
        RegistryConfig(backends={"s": BackendConfig(type="stub-closing")}, operators={"m": OperatorProfile("s")})
    )
    reg.get_operator("m")
    await reg.close()
    assert stub.closed
    assert len(reg._backends) == 0


async def test_context_manager(tmp_path: Path) -> None:
    async with Registry(_make_config(tmp_path)) as reg:
        reg.get_operator("main")
    assert len(reg._backends) == 0


# -- Factory tables --


def test_builtins_registered() -> None:
    from unistore._registry import _BACKEND_FACTORIES, _LAYER_FACTORIES

    Registry()
    assert {"memory", "fs"} <= set(_BACKEND_FACTORIES)
    assert {"retry", "concurrent_limit", "throttle", "logging", "metrics", "tracing", "complete"} <= set(
        _LAYER_FACTORIES
    )


def test_register_custom_layer() -> None:
    names: list[str] = []

    def named_retry(name: str) -> RetryLayer:
        names.append(name)
        return RetryLayer(max_attempts=1)

    register_layer("named_retry", named_retry)
    reg = Registry(
        RegistryConfig(
            backends={"x": BackendConfig(type="memory")},
            operators={"main": OperatorProfile("x", layers=(LayerConfig("named_retry", {"name": "tag"}),))},
        )
    )
    reg.get_operator("main")
    assert names == ["tag"]


def test_custom_registration_survives_builtins() -> None:
    from unistore._registry import _LAYER_FACTORIES

    class WideLimit(ConcurrentLimitLayer):
        pass

    original = _LAYER_FACTORIES.get("concurrent_limit", ConcurrentLimitLayer)
    register_layer("concurrent_limit", WideLimit)
    try:
        Registry()
        assert _LAYER_FACTORIES["concurrent_limit"] is WideLimit
    finally:
        register_layer("concurrent_limit", original)
