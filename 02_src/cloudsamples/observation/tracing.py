"""OpenTelemetry spans for observations, exported into the tracker."""

from typing import Any

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import Status, StatusCode, format_span_id, format_trace_id

from ..tracker import ITracker
from .context import MethodContext
from .registry import BaseObservationHandler


class Tracer:
    """Tracer provider of one service; finished spans stay in memory until drained."""

    def __init__(self, service_name: str = "application"):
        self.exporter = InMemorySpanExporter()
        self.provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
        self.provider.add_span_processor(SimpleSpanProcessor(self.exporter))
        self._tracer = self.provider.get_tracer(__name__)

    def start_span(
        self,
        name: str,
        parent: trace.Span | None = None,
        attributes: dict[str, str] | None = None,
    ) -> trace.Span:
        """Start a span under ``parent``, or under the current span when None."""
        parent_context = trace.set_span_in_context(parent) if parent is not None else None
        return self._tracer.start_span(name, context=parent_context, attributes=attributes)

    def activate(self, span: trace.Span) -> object:
        """Make ``span`` current; returns the token for ``end``."""
        return otel_context.attach(trace.set_span_in_context(span))

    def end(self, span: trace.Span, token: object | None = None) -> None:
        span.end()
        if token is not None:
            otel_context.detach(token)

    @property
    def current_span(self) -> trace.Span | None:
        span = trace.get_current_span()
        return span if span.get_span_context().is_valid else None

    @property
    def finished(self) -> tuple[ReadableSpan, ...]:
        return self.exporter.get_finished_spans()

    def drain(self) -> list[ReadableSpan]:
        spans = list(self.exporter.get_finished_spans())
        self.exporter.clear()
        return spans

    def shutdown(self) -> None:
        self.provider.shutdown()


def span_to_dict(span: ReadableSpan) -> dict[str, Any]:
    error = None
    if span.status.status_code is StatusCode.ERROR:
        error = span.status.description
    duration = None
    if span.end_time is not None and span.start_time is not None:
        duration = (span.end_time - span.start_time) / 1e9
    return {
        "name": span.name,
        "trace_id": format_trace_id(span.context.trace_id),
        "span_id": format_span_id(span.context.span_id),
        "parent_id": format_span_id(span.parent.span_id) if span.parent else None,
        "tags": dict(span.attributes or {}),
        "duration": duration,
        "error": error,
    }


class TracingObservationHandler(BaseObservationHandler):
    """Outer span for the observed method, child span for its scoped call."""

    context_type = MethodContext

    def __init__(self, tracer: Tracer):
        self._tracer = tracer

    @property
    def tracer(self) -> Tracer:
        return self._tracer

    def on_start(self, context: MethodContext) -> None:
        attributes = dict(context.low_cardinality_key_values)
        if context.note is not None:
            attributes["note"] = context.note
        span = self._tracer.start_span(context.method_name, attributes=attributes)
        context.put("out_scope", self._tracer.activate(span))
        context.put("out_span", span)

    def on_error(self, context: MethodContext) -> None:
        span = context.get("out_span")
        if span is not None and context.error is not None:
            span.record_exception(context.error)
            span.set_status(Status(StatusCode.ERROR, repr(context.error)))

    def on_scope_opened(self, context: MethodContext) -> None:
        out_span = context.get("out_span")
        scope = context.get("scope")
        in_span = self._tracer.start_span(
            getattr(scope, "__name__", "scope"),
            parent=out_span,
            attributes={"note": "inner call"},
        )
        context.put("in_scope", self._tracer.activate(in_span))
        context.put("in_span", in_span)

    def on_scope_closed(self, context: MethodContext) -> None:
        in_span = context.remove("in_span")
        if in_span is not None:
            self._tracer.end(in_span, context.remove("in_scope"))

    def on_stop(self, context: MethodContext) -> None:
        out_span = context.remove("out_span")
        if out_span is not None:
            self._tracer.end(out_span, context.remove("out_scope"))


async def export_spans(tracer: Tracer, tracker: ITracker) -> int:
    """Record every finished span as a ``span_finished`` trace event."""
    spans = tracer.drain()
    for span in spans:
        await tracker.track(event_type="span_finished", actor="tracer", data=span_to_dict(span))
    return len(spans)
