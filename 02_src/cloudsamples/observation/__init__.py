"""Observation module."""

from .context import METRIC_PREFIX, MethodContext, ObservationContext
from .convention import (
    CALL_METHOD_KEY,
    CONTEXTUAL_NAME,
    NOTE_KEY,
    OBSERVATION_NAME,
    MethodObservationConvention,
    ObservationConvention,
)
from .meters import MeterObservationHandler, MeterRegistry, prometheus_name
from .registry import (
    NOOP_REGISTRY,
    BaseObservationHandler,
    Observation,
    ObservationHandler,
    ObservationRegistry,
)
from .target import DemoTarget
from .tracing import Tracer, TracingObservationHandler, export_spans, span_to_dict

__all__ = [
    "BaseObservationHandler",
    "CALL_METHOD_KEY",
    "CONTEXTUAL_NAME",
    "DemoTarget",
    "METRIC_PREFIX",
    "MeterObservationHandler",
    "MeterRegistry",
    "MethodContext",
    "MethodObservationConvention",
    "NOOP_REGISTRY",
    "NOTE_KEY",
    "OBSERVATION_NAME",
    "Observation",
    "ObservationContext",
    "ObservationConvention",
    "ObservationHandler",
    "ObservationRegistry",
    "Tracer",
    "TracingObservationHandler",
    "export_spans",
    "prometheus_name",
    "span_to_dict",
]
