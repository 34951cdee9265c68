"""MetricsLayer — OpenTelemetry counters and histograms per operation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from opentelemetry import metrics

from unistore._layer import Layer
from unistore.layers._observe import ObservingAccessor, Recording, error_kind

if TYPE_CHECKING:
    from opentelemetry.metrics import Meter

    from unistore._accessor import Accessor

METER_NAME = "unistore"


class _Instruments:
    def __init__(self, meter: Meter) -> None:
        self.requests = meter.create_counter(
            "unistore.operation.requests", unit="{operation}", description="Operations dispatched"
        )
        self.errors = meter.create_counter(
            "unistore.operation.errors", unit="{operation}", description="Operations that failed"
        )
        self.duration = meter.create_histogram(
            "unistore.operation.duration", unit="s", description="Operation duration, including streaming"
        )
        self.bytes = meter.create_counter(
            "unistore.operation.bytes", unit="By", description="Bytes read or written"
        )


class MetricsLayer(Layer):
    """Record every operation with the OpenTelemetry metrics API.

    Instruments, all with ``scheme`` and ``operation`` attributes:

    - ``unistore.operation.requests``: counter of finished operations
    - ``unistore.operation.errors``: counter of failures, with ``error.kind``
    - ``unistore.operation.duration``: histogram in seconds
    - ``unistore.operation.bytes``: counter of bytes moved by readers and writers

    :param meter: Meter to use; defaults to the global meter provider's.
    """

    def __init__(self, meter: Optional[Meter] = None) -> None:
        self.meter = meter

    def layer(self, inner: Accessor) -> Accessor:
        return MetricsAccessor(inner, _Instruments(self.meter or metrics.get_meter(METER_NAME)))


class MetricsAccessor(ObservingAccessor):
    def __init__(self, inner: Accessor, instruments: _Instruments) -> None:
        super().__init__(inner)
        self._instruments = instruments

    def _begin(self, operation: str, path: str, target: Optional[str] = None) -> Recording:
        return MetricsRecording(self._instruments, self.info.scheme, operation, path, target)


class MetricsRecording(Recording):
    def __init__(
        self,
        instruments: _Instruments,
        scheme: str,
        operation: str,
        path: str,
        target: Optional[str] = None,
    ) -> None:
        super().__init__(scheme, operation, path, target)
        self._instruments = instruments

    def _finish(self, error: Optional[BaseException], aborted: bool) -> None:
        attributes = {"scheme": self.scheme, "operation": self.operation}
        self._instruments.requests.add(1, attributes)
        self._instruments.duration.record(self.elapsed, attributes)
        if self.transferred and self.operation in ("read", "write"):
            self._instruments.bytes.add(self.transferred, attributes)
        if error is not None:
            self._instruments.errors.add(1, {**attributes, "error.kind": error_kind(error)})
