"""TracingLayer — one OpenTelemetry span per operation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

from unistore._layer import Layer
from unistore.layers._observe import ObservingAccessor, Recording, error_kind

if TYPE_CHECKING:
    from contextlib import AbstractContextManager

    from opentelemetry.trace import Span, Tracer

    from unistore._accessor import Accessor

TRACER_NAME = "unistore"


class TracingLayer(Layer):
    """Emit a span named ``unistore.<operation>`` for every operation.

    Spans carry the scheme, operation and path; stream spans stay open
    until the transfer ends and record ``unistore.bytes`` (``unistore.entries``
    for listings). Failed operations get an error status and an
    ``error.kind`` attribute. The span is current while the inner call runs,
    so spans emitted by a backend client nest below it.

    :param tracer: Tracer to use; defaults to the global tracer provider's.
    """

    def __init__(self, tracer: Optional[Tracer] = None) -> None:
        self.tracer = tracer

    def layer(self, inner: Accessor) -> Accessor:
        return TracingAccessor(inner, self.tracer or trace.get_tracer(TRACER_NAME))


class TracingAccessor(ObservingAccessor):
    def __init__(self, inner: Accessor, tracer: Tracer) -> None:
        super().__init__(inner)
        self._tracer = tracer

    def _begin(self, operation: str, path: str, target: Optional[str] = None) -> Recording:
        attributes = {
            "unistore.scheme": self.info.scheme,
            "unistore.operation": operation,
            "unistore.path": path,
        }
        if target is not None:
            attributes["unistore.target"] = target
        span = self._tracer.start_span(f"unistore.{operation}", kind=SpanKind.CLIENT, attributes=attributes)
        return SpanRecording(span, self.info.scheme, operation, path, target)


class SpanRecording(Recording):
    def __init__(self, span: Span, scheme: str, operation: str, path: str, target: Optional[str] = None) -> None:
        super().__init__(scheme, operation, path, target)
        self.span = span

    def activate(self) -> AbstractContextManager[object]:
        return trace.use_span(self.span, end_on_exit=False, record_exception=False, set_status_on_exception=False)

    def _finish(self, error: Optional[BaseException], aborted: bool) -> None:
        try:
            if self.operation in ("read", "write"):
                self.span.set_attribute("unistore.bytes", self.transferred)
            elif self.operation == "list":
                self.span.set_attribute("unistore.entries", self.transferred)
            if aborted:
                self.span.set_attribute("unistore.aborted", True)
            if error is not None:
                self.span.set_attribute("error.kind", error_kind(error))
                self.span.record_exception(error)
                self.span.set_status(Status(StatusCode.ERROR, str(error)))
        finally:
            self.span.end()
