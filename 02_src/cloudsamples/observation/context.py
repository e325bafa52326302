"""Observation contexts."""

from typing import Any, Callable

METRIC_PREFIX = "demo."


class ObservationContext:
    """Mutable state shared by the handlers of one observation."""

    def __init__(self):
        self.name: str | None = None
        self.contextual_name: str | None = None
        self.error: BaseException | None = None
        self.low_cardinality_key_values: dict[str, str] = {}
        self._store: dict[str, Any] = {}

    def put(self, key: str, value: Any) -> None:
        self._store[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        return self._store.get(key, default)

    def remove(self, key: str) -> Any:
        return self._store.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._store


class MethodContext(ObservationContext):
    """Context of an observed method call with an optional note."""

    def __init__(self, method: Callable, note: str | None = None):
        super().__init__()
        self.method = method
        self.note = note

    @property
    def method_name(self) -> str:
        return getattr(self.method, "__name__", repr(self.method))
