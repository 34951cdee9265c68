"""Configuration model — immutable data containers describing backends and operators."""

from __future__ import annotations

import dataclasses

from unistore._types import Options


@dataclasses.dataclass(frozen=True)
class BackendConfig:
    """Describes a backend instance.

    :param type: Backend type identifier (e.g. ``"memory"``, ``"fs"``).
    :param options: Keyword arguments for the backend constructor.
    """

    type: str
    options: Options = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class LayerConfig:
    """Describes one layer of an operator stack.

    :param type: Layer type identifier (e.g. ``"retry"``).
    :param options: Keyword arguments for the layer constructor.
    """

    type: str
    options: Options = dataclasses.field(default_factory=dict)


@dataclasses.dataclass(frozen=True)
class OperatorProfile:
    """Describes a named operator.

    :param backend: Name of the backend config to use.
    :param layers: Layers to apply, innermost first.
    """

    backend: str
    layers: tuple[LayerConfig, ...] = ()


@dataclasses.dataclass(frozen=True)
class RegistryConfig:
    """Top-level configuration container.

    :param backends: Mapping of backend names to their configs.
    :param operators: Mapping of operator names to their profiles.
    """

    backends: dict[str, BackendConfig] = dataclasses.field(default_factory=dict)
    operators: dict[str, OperatorProfile] = dataclasses.field(default_factory=dict)

    def validate(self) -> None:
        """Validate that all operator profiles reference existing backends.

        :raises ValueError: If an operator references a non-existent backend.
        """
        for operator_name, profile in self.operators.items():
            if profile.backend not in self.backends:
                raise ValueError(
                    f"Operator '{operator_name}' references unknown backend '{profile.backend}'. "
                    f"Available backends: {sorted(self.backends.keys())}"
                )

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> RegistryConfig:
        """Construct from a plain dict (e.g. parsed TOML/JSON).

        Layers are given as a list of ``{"type": ..., "options": {...}}``
        dicts, or as bare type strings for layers without options.

        :param data: Dict with ``backends`` and ``operators`` keys.
        """
        raw_backends = data.get("backends", {})
        raw_operators = data.get("operators", {})
        if not isinstance(raw_backends, dict) or not isinstance(raw_operators, dict):
            msg = "Expected 'backends' and 'operators' to be dicts"
            raise TypeError(msg)

        backends: dict[str, BackendConfig] = {}
        for name, cfg in raw_backends.items():
            if not isinstance(cfg, dict):
                msg = f"Backend config for '{name}' must be a dict"
                raise TypeError(msg)
            backends[str(name)] = BackendConfig(
                type=str(cfg["type"]),
                options=dict(cfg.get("options", {})),
            )

        operators: dict[str, OperatorProfile] = {}
        for name, prof in raw_operators.items():
            if not isinstance(prof, dict):
                msg = f"Operator profile for '{name}' must be a dict"
                raise TypeError(msg)
            raw_layers = prof.get("layers", [])
            if not isinstance(raw_layers, list):
                msg = f"Layers of operator '{name}' must be a list"
                raise TypeError(msg)
            operators[str(name)] = OperatorProfile(
                backend=str(prof["backend"]),
                layers=tuple(_layer_from_raw(name, raw) for raw in raw_layers),
            )

        return cls(backends=backends, operators=operators)


def _layer_from_raw(operator_name: str, raw: object) -> LayerConfig:
    if isinstance(raw, str):
        return LayerConfig(type=raw)
    if not isinstance(raw, dict):
        msg = f"Layer config of operator '{operator_name}' must be a dict or a type string"
        raise TypeError(msg)
    return LayerConfig(type=str(raw["type"]), options=dict(raw.get("options", {})))
