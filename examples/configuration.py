"""Configuration — config-as-code, from_dict(), and layered operator profiles.

Demonstrates different ways to create a RegistryConfig and obtain
operators from a Registry.
"""

from __future__ import annotations

import asyncio
import tempfile

from unistore import BackendConfig, LayerConfig, OperatorProfile, Registry, RegistryConfig


async def main() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        # --- Option 1: Config-as-code with Python objects ---
        config = RegistryConfig(
            backends={
                "disk": BackendConfig(type="fs", options={"root": tmp}),
                "scratch": BackendConfig(type="memory"),
            },
            operators={
                "files": OperatorProfile(
                    backend="disk",
                    layers=(LayerConfig("retry", {"max_attempts": 5}), LayerConfig("logging")),
                ),
                "cache": OperatorProfile(backend="scratch"),
            },
        )

        async with Registry(config) as registry:
            files = registry.get_operator("files")
            cache = registry.get_operator("cache")

            await files.write("reports/q4.csv", b"revenue,profit\n100,20\n")
            await cache.write("session", b"token")

            print("Files:", [e.path for e in await files.list("reports/")])
            print("Cache:", [e.path for e in await cache.list("/")])

    # --- Option 2: from_dict(), e.g. loaded from TOML or JSON ---
    raw = {
        "backends": {"mem": {"type": "memory", "options": {"page_size": 100}}},
        "operators": {
            "data": {
                "backend": "mem",
                "layers": [
                    {"type": "concurrent_limit", "options": {"permits": 8}},
                    {"type": "throttle", "options": {"ops_per_second": 100}},
                    "complete",
                ],
            },
        },
    }

    async with Registry(RegistryConfig.from_dict(raw)) as registry:
        data = registry.get_operator("data")
        await data.write("input.csv", b"a,b\n1,2\n")
        print(f"\nfrom_dict() data: {(await data.read('input.csv')).decode().strip()}")
        print(f"Operator: {data!r}")


if __name__ == "__main__":
    asyncio.run(main())
