"""Observation lifecycle and the registry of handlers."""

from typing import Callable, Protocol, TypeVar

from ..logging_config import get_logger
from .context import ObservationContext
from .convention import ObservationConvention

logger = get_logger(__name__)

T = TypeVar("T")


class ObservationHandler(Protocol):
    """Reacts to observation lifecycle events for the contexts it supports."""

    def supports_context(self, context: ObservationContext) -> bool: ...

    def on_start(self, context: ObservationContext) -> None: ...

    def on_error(self, context: ObservationContext) -> None: ...

    def on_scope_opened(self, context: ObservationContext) -> None: ...

    def on_scope_closed(self, context: ObservationContext) -> None: ...

    def on_stop(self, context: ObservationContext) -> None: ...


class BaseObservationHandler:
    """No-op defaults so handlers override only what they need."""

    context_type: type[ObservationContext] = ObservationContext

    def supports_context(self, context: ObservationContext) -> bool:
        return isinstance(context, self.context_type)

    def on_start(self, context: ObservationContext) -> None:
        pass

    def on_error(self, context: ObservationContext) -> None:
        pass

    def on_scope_opened(self, context: ObservationContext) -> None:
        pass

    def on_scope_closed(self, context: ObservationContext) -> None:
        pass

    def on_stop(self, context: ObservationContext) -> None:
        pass


class ObservationRegistry:
    """Holds handlers; a registry without handlers observes nothing."""

    def __init__(self, handlers: list[ObservationHandler] | None = None):
        self._handlers: list[ObservationHandler] = list(handlers or [])

    def add_handler(self, handler: ObservationHandler) -> None:
        self._handlers.append(handler)

    @property
    def handlers(self) -> list[ObservationHandler]:
        return list(self._handlers)

    @property
    def is_noop(self) -> bool:
        return not self._handlers


NOOP_REGISTRY = ObservationRegistry()


class Observation:
    """One observed unit of work.

    Usage::

        observation = Observation.create(
            "demo", lambda: MethodContext(fn), registry, convention=convention
        ).start()
        try:
            observation.scoped(inner)
        except Exception as e:
            observation.error(e)
        finally:
            observation.stop()
    """

    def __init__(
        self,
        context: ObservationContext | None,
        handlers: list[ObservationHandler],
        convention: ObservationConvention | None = None,
    ):
        self.context = context
        self._handlers = handlers
        self._convention = convention

    @classmethod
    def create(
        cls,
        name: str,
        context_supplier: Callable[[], ObservationContext],
        registry: ObservationRegistry | None,
        convention: ObservationConvention | None = None,
        default_convention: ObservationConvention | None = None,
        contextual_name: str | None = None,
    ) -> "Observation":
        """Build an observation; the context is only created when observing."""
        if registry is None or registry.is_noop:
            return cls(None, [])

        context = context_supplier()
        context.name = name
        context.contextual_name = contextual_name
        chosen = convention if convention and convention.supports_context(context) else default_convention
        handlers = [h for h in registry.handlers if h.supports_context(context)]
        return cls(context, handlers, chosen)

    @property
    def is_noop(self) -> bool:
        return self.context is None

    def _fire(self, event: str, handlers: list[ObservationHandler]) -> None:
        for handler in handlers:
            try:
                getattr(handler, event)(self.context)
            except Exception:
                logger.exception("Observation handler %r failed in %s", handler, event)

    def start(self) -> "Observation":
        if self.is_noop:
            return self
        if self._convention is not None:
            self.context.low_cardinality_key_values.update(
                self._convention.get_low_cardinality_key_values(self.context)
            )
        self._fire("on_start", self._handlers)
        return self

    def error(self, error: BaseException) -> "Observation":
        if self.is_noop:
            return self
        self.context.error = error
        self._fire("on_error", self._handlers)
        return self

    def stop(self) -> None:
        if self.is_noop:
            return
        self._fire("on_stop", list(reversed(self._handlers)))

    def scoped(self, fn: Callable[[], T]) -> T:
        """Run ``fn`` inside a scope; handlers see it as the ``scope`` entry."""
        if self.is_noop:
            return fn()
        self.context.put("scope", fn)
        self._fire("on_scope_opened", self._handlers)
        try:
            return fn()
        finally:
            self._fire("on_scope_closed", list(reversed(self._handlers)))
            self.context.remove("scope")

    def __enter__(self) -> "Observation":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is not None:
            self.error(exc)
        self.stop()
