"""Tests for MetricsLayer."""

from __future__ import annotations

from typing import Any

import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from unistore import NotFound, Operator
from unistore.backends import MemoryBackend
from unistore.layers import MetricsLayer

pytestmark = pytest.mark.anyio


@pytest.fixture
def reader() -> InMemoryMetricReader:
    return InMemoryMetricReader()


@pytest.fixture
def op(reader: InMemoryMetricReader) -> Operator:
    meter = MeterProvider(metric_readers=[reader]).get_meter("tests")
    return Operator(MemoryBackend(), [MetricsLayer(meter)])


def points(reader: InMemoryMetricReader, name: str) -> list[Any]:
    """Data points of metric ``name`` from the latest collection."""
    data = reader.get_metrics_data()
    if data is None:
        return []
    return [
        point
        for resource_metrics in data.resource_metrics
        for scope_metrics in resource_metrics.scope_metrics
        for metric in scope_metrics.metrics
        if metric.name == name
        for point in metric.data.data_points
    ]


def by_operation(reader: InMemoryMetricReader, name: str) -> dict[str, Any]:
    return {point.attributes["operation"]: point for point in points(reader, name)}


class TestCounters:
    async def test_requests_counted_per_operation(self, op: Operator, reader: InMemoryMetricReader) -> None:
        await op.write("a", b"x")
        await op.write("b", b"y")
        await op.stat("a")
        requests = by_operation(reader, "unistore.operation.requests")
        assert requests["write"].value == 2
        assert requests["stat"].value == 1
        assert dict(requests["stat"].attributes) == {"scheme": "memory", "operation": "stat"}

    async def test_errors_carry_kind(self, op: Operator, reader: InMemoryMetricReader) -> None:
        with pytest.raises(NotFound):
            await op.stat("missing")
        (error,) = points(reader, "unistore.operation.errors")
        assert error.value == 1
        assert error.attributes["error.kind"] == "not_found"
        assert by_operation(reader, "unistore.operation.requests")["stat"].value == 1

    async def test_bytes_counted_for_streams(self, op: Operator, reader: InMemoryMetricReader) -> None:
        await op.write("f", b"0123456789")
        assert await op.read("f") == b"0123456789"
        await op.create_dir("d/")
        transferred = by_operation(reader, "unistore.operation.bytes")
        assert transferred["write"].value == 10
        assert transferred["read"].value == 10
        assert "create_dir" not in transferred

    async def test_no_errors_on_success(self, op: Operator, reader: InMemoryMetricReader) -> None:
        await op.create_dir("d/")
        assert points(reader, "unistore.operation.errors") == []


class TestDuration:
    async def test_histogram(self, op: Operator, reader: InMemoryMetricReader) -> None:
        await op.create_dir("d/")
        await op.create_dir("e/")
        histogram = by_operation(reader, "unistore.operation.duration")["create_dir"]
        assert histogram.count == 2
        assert histogram.sum >= 0

    async def test_stream_recorded_once_drained(self, op: Operator, reader: InMemoryMetricReader) -> None:
        await op.write("f", b"abc")
        stream = await op.reader("f")
        assert "read" not in by_operation(reader, "unistore.operation.duration")
        await stream.read_all()
        assert by_operation(reader, "unistore.operation.duration")["read"].count == 1


class TestDefaults:
    async def test_global_meter(self) -> None:
        # The global provider is a no-op unless configured.
        op = Operator(MemoryBackend(), [MetricsLayer()])
        await op.write("f", b"x")
        assert await op.read("f") == b"x"
