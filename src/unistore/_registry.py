"""Registry — backend lifecycle management and operator access."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable

from unistore._config import RegistryConfig
from unistore._operator import Operator

if TYPE_CHECKING:
    from types import TracebackType

    from unistore._accessor import Accessor
    from unistore._config import LayerConfig
    from unistore._layer import Layer

log = logging.getLogger(__name__)

# Global factory registries: map type strings to backend and layer classes.
_BACKEND_FACTORIES: dict[str, Callable[..., Accessor]] = {}
_LAYER_FACTORIES: dict[str, Callable[..., Layer]] = {}


def register_backend(type_name: str, cls: Callable[..., Accessor]) -> None:
    """Register a backend class for a given type string.

    :param type_name: The type identifier (e.g. ``"memory"``).
    :param cls: The backend class (or factory) to instantiate.
    """
    _BACKEND_FACTORIES[type_name] = cls


def register_layer(type_name: str, cls: Callable[..., Layer]) -> None:
    """Register a layer class for a given type string.

    :param type_name: The type identifier (e.g. ``"retry"``).
    :param cls: The layer class (or factory) to instantiate.
    """
    _LAYER_FACTORIES[type_name] = cls


def _register_builtins() -> None:
    """Register the built-in backends and layers."""
    from unistore.backends import FsBackend, MemoryBackend
    from unistore.layers import (
        CompleteLayer,
        ConcurrentLimitLayer,
        LoggingLayer,
        MetricsLayer,
        RetryLayer,
        ThrottleLayer,
        TracingLayer,
    )

    for type_name, backend_cls in (("memory", MemoryBackend), ("fs", FsBackend)):
        _BACKEND_FACTORIES.setdefault(type_name, backend_cls)
    for type_name, layer_cls in (
        ("retry", RetryLayer),
        ("concurrent_limit", ConcurrentLimitLayer),
        ("throttle", ThrottleLayer),
        ("logging", LoggingLayer),
        ("metrics", MetricsLayer),
        ("tracing", TracingLayer),
        ("complete", CompleteLayer),
    ):
        _LAYER_FACTORIES.setdefault(type_name, layer_cls)


class Registry:
    """Manages backend lifecycle and provides access to named operators.

    Backends are instantiated on first use and shared by every operator
    that references them. Operators are built once per name, so stateful
    layers such as concurrency limits are shared by all users of a name.

    :param config: Optional configuration. Validates immediately.
    :raises ValueError: If config is invalid.
    """

    def __init__(self, config: RegistryConfig | None = None) -> None:
        _register_builtins()
        self._config = config or RegistryConfig()
        self._config.validate()
        self._backends: dict[str, Accessor] = {}
        self._operators: dict[str, Operator] = {}

    def __repr__(self) -> str:
        operators = sorted(self._config.operators.keys())
        return f"Registry(operators={operators!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Registry):
            return self._config == other._config
        return NotImplemented

    def __hash__(self) -> int:
        return id(self)

    def get_operator(self, name: str) -> Operator:
        """Get an operator by its profile name.

        :param name: The operator profile name.
        :raises KeyError: If no operator profile with this name exists.
        :raises ValueError: If a backend or layer type is unknown or misconfigured.
        """
        if name not in self._config.operators:
            available = sorted(self._config.operators.keys())
            raise KeyError(f"Unknown operator '{name}'. Available operators: {available}")
        if name not in self._operators:
            profile = self._config.operators[name]
            backend = self._get_backend(profile.backend)
            layers = [self._build_layer(name, cfg) for cfg in profile.layers]
            self._operators[name] = Operator(backend, layers)
            log.debug("Built operator %r on backend %r with %d layers", name, profile.backend, len(layers))
        return self._operators[name]

    def _get_backend(self, name: str) -> Accessor:
        """Lazily instantiate and cache a backend."""
        if name not in self._backends:
            cfg = self._config.backends[name]
            if cfg.type not in _BACKEND_FACTORIES:
                raise ValueError(
                    f"Unknown backend type '{cfg.type}'. Registered types: {sorted(_BACKEND_FACTORIES.keys())}"
                )
            factory = _BACKEND_FACTORIES[cfg.type]
            try:
                self._backends[name] = factory(**cfg.options)
            except TypeError as exc:
                raise ValueError(
                    f"Invalid options for backend '{name}' (type={cfg.type!r}): {exc}. "
                    f"Provided options: {sorted(cfg.options.keys())}"
                ) from exc
        return self._backends[name]

    @staticmethod
    def _build_layer(operator_name: str, cfg: LayerConfig) -> Layer:
        if cfg.type not in _LAYER_FACTORIES:
            raise ValueError(f"Unknown layer type '{cfg.type}'. Registered types: {sorted(_LAYER_FACTORIES.keys())}")
        try:
            return _LAYER_FACTORIES[cfg.type](**cfg.options)
        except TypeError as exc:
            raise ValueError(
                f"Invalid options for layer '{cfg.type}' of operator '{operator_name}': {exc}. "
                f"Provided options: {sorted(cfg.options.keys())}"
            ) from exc

    async def close(self) -> None:
        """Close all instantiated backends."""
        for backend in self._backends.values():
            await backend.close()
        self._backends.clear()
        self._operators.clear()

    async def __aenter__(self) -> Registry:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
