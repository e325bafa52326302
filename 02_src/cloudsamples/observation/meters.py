"""Prometheus meters and the observation handler feeding them."""

import re
import time

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from ..logging_config import get_logger
from .context import METRIC_PREFIX, MethodContext, ObservationContext
from .registry import BaseObservationHandler

logger = get_logger(__name__)

TIMER_BUCKETS = [0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]


def prometheus_name(name: str) -> str:
    """``demo.method_a.count`` -> ``demo_method_a_count``."""
    return re.sub(r"[^a-zA-Z0-9_]", "_", name)


class MeterRegistry:
    """Counters and timers under dotted meter names, kept in one CollectorRegistry.

    Label names are fixed by the first tags a meter is created with. Later
    tags missing a label get an empty value.
    """

    def __init__(self):
        self.registry = CollectorRegistry()
        self._meters: dict[str, tuple[str, Counter | Histogram, tuple[str, ...]]] = {}

    def _labels(self, labelnames: tuple[str, ...], tags: dict[str, str] | None) -> dict[str, str]:
        labels = {prometheus_name(key): str(value) for key, value in (tags or {}).items()}
        unknown = set(labels) - set(labelnames)
        if unknown:
            logger.warning("Dropping unregistered tags %s", sorted(unknown))
        return {label: labels.get(label, "") for label in labelnames}

    def _meter(self, kind: str, name: str, tags: dict[str, str] | None, description: str):
        if name not in self._meters:
            labelnames = tuple(sorted(prometheus_name(key) for key in tags or {}))
            if kind == "counter":
                meter = Counter(
                    prometheus_name(name),
                    description or name,
                    labelnames,
                    registry=self.registry,
                )
            else:
                meter = Histogram(
                    f"{prometheus_name(name)}_seconds",
                    description or name,
                    labelnames,
                    registry=self.registry,
                    buckets=TIMER_BUCKETS,
                )
            self._meters[name] = (kind, meter, labelnames)

        registered_kind, meter, labelnames = self._meters[name]
        if registered_kind != kind:
            raise ValueError(f"Meter '{name}' is a {registered_kind}, not a {kind}")
        if not labelnames:
            return meter
        return meter.labels(**self._labels(labelnames, tags))

    def counter(self, name: str, tags: dict[str, str] | None = None, description: str = ""):
        """Counter child for ``tags``; call ``inc()`` on it."""
        return self._meter("counter", name, tags, description)

    def timer(self, name: str, tags: dict[str, str] | None = None, description: str = ""):
        """Histogram child for ``tags``; call ``observe(seconds)`` on it."""
        return self._meter("timer", name, tags, description)

    def count(self, name: str, tags: dict[str, str] | None = None) -> float:
        """Counter value, or number of timer recordings."""
        if name not in self._meters:
            return 0.0
        kind, meter, labelnames = self._meters[name]
        suffix = "_total" if kind == "counter" else "_seconds_count"
        value = self.registry.get_sample_value(
            f"{prometheus_name(name)}{suffix}", self._labels(labelnames, tags)
        )
        return value or 0.0

    def total_time(self, name: str, tags: dict[str, str] | None = None) -> float:
        """Sum of the seconds recorded by a timer."""
        if name not in self._meters:
            return 0.0
        _, _, labelnames = self._meters[name]
        value = self.registry.get_sample_value(
            f"{prometheus_name(name)}_seconds_sum", self._labels(labelnames, tags)
        )
        return value or 0.0

    @property
    def names(self) -> list[str]:
        return sorted(self._meters)

    def snapshot(self) -> list[dict]:
        """Counter totals and timer count/sum samples as plain dicts."""
        samples = []
        for name, (kind, meter, _) in self._meters.items():
            for family in meter.collect():
                for sample in family.samples:
                    if sample.name.endswith(("_created", "_bucket")):
                        continue
                    samples.append(
                        {
                            "name": name,
                            "type": kind,
                            "sample": sample.name,
                            "labels": dict(sample.labels),
                            "value": sample.value,
                        }
                    )
        return samples

    def scrape(self) -> bytes:
        """Prometheus text exposition of every meter."""
        return generate_latest(self.registry)

    def clear(self) -> None:
        for _, meter, _ in self._meters.values():
            self.registry.unregister(meter)
        self._meters.clear()


class MeterObservationHandler(BaseObservationHandler):
    """Counts calls and times the observed method and its scoped call."""

    context_type = MethodContext

    def __init__(self, meter_registry: MeterRegistry):
        self._meters = meter_registry

    def on_start(self, context: MethodContext) -> None:
        name = context.method_name
        self._meters.counter(
            f"{METRIC_PREFIX}{name}.count",
            context.low_cardinality_key_values,
            description=f"call {name} method times",
        ).inc()
        context.put("sample", time.perf_counter())

    def on_error(self, context: ObservationContext) -> None:
        logger.error("onError: %r", context.error)

    def on_scope_opened(self, context: MethodContext) -> None:
        context.put("scope_sample", time.perf_counter())

    def on_scope_closed(self, context: MethodContext) -> None:
        started = context.remove("scope_sample")
        scope = context.get("scope")
        if started is None or scope is None:
            return
        scope_name = getattr(scope, "__name__", "scope")
        self._meters.timer(
            f"{METRIC_PREFIX}{scope_name}.time",
            context.low_cardinality_key_values,
            description=f"call {scope_name} method used time",
        ).observe(time.perf_counter() - started)

    def on_stop(self, context: MethodContext) -> None:
        started = context.get("sample")
        if started is None:
            return
        name = context.method_name
        self._meters.timer(
            f"{METRIC_PREFIX}{name}.time",
            context.low_cardinality_key_values,
            description=f"call {name} method used time",
        ).observe(time.perf_counter() - started)
