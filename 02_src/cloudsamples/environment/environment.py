"""Layered property environment with relaxed names and change events."""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol, TypeVar

from pydantic import ValidationError

from ..logging_config import get_logger

logger = get_logger(__name__)

P = TypeVar("P")


def canonical_name(name: str) -> str:
    """Reduce a property name to the form used for lookups.

    ``order.create-enabled``, ``order.createEnabled`` and
    ``ORDER_CREATE_ENABLED`` all reduce to ``ordercreateenabled``.
    """
    return re.sub(r"[\W_]", "", name).lower()


@dataclass
class EnvironmentChangeEvent:
    """Published after properties changed. ``keys`` may be empty."""

    keys: set[str] = field(default_factory=set)


EnvironmentListener = Callable[[EnvironmentChangeEvent], None]


class PropertyBindingError(ValueError):
    """New property values that registered properties cannot bind."""

    def __init__(self, values: dict[str, Any], failures: dict[type, ValidationError]):
        self.values = values
        self.failures = failures
        details = []
        for properties_type, error in failures.items():
            for err in error.errors():
                location = ".".join(str(part) for part in err["loc"])
                details.append(f"{properties_type.__name__}.{location}: {err['msg']}")
        super().__init__(f"Cannot bind {sorted(values)}: {'; '.join(details)}")


class PropertySource:
    """Named set of properties indexed by canonical name."""

    def __init__(self, name: str, values: Mapping[str, Any] | None = None):
        self.name = name
        self._values: dict[str, tuple[str, Any]] = {}
        for key, value in (values or {}).items():
            self.put(key, value)

    def put(self, key: str, value: Any) -> None:
        self._values[canonical_name(key)] = (key, value)

    def remove(self, key: str) -> None:
        self._values.pop(canonical_name(key), None)

    def get(self, key: str) -> tuple[str, Any] | None:
        return self._values.get(canonical_name(key))

    def items(self):
        return self._values.items()


class IEnvironment(Protocol):
    """Property lookup plus runtime changes."""

    def get_property(self, name: str, default: Any = None) -> Any:
        """Resolve a property through all sources."""
        ...

    def set_properties(self, values: Mapping[str, Any]) -> set[str]:
        """Override properties, return the keys that actually changed."""
        ...

    def refresh(self) -> set[str]:
        """Re-read external sources, return the keys that changed."""
        ...


class Environment:
    """Ordered property sources: overrides, then OS environment, then defaults."""

    def __init__(
        self,
        defaults: Mapping[str, Any] | None = None,
        environ: Mapping[str, str] | None = None,
    ):
        # None means "read os.environ on every refresh"
        self._environ = environ
        self._overrides = PropertySource("overrides")
        self._system = PropertySource("systemEnvironment", self._read_environ())
        self._defaults = PropertySource("defaults", defaults)
        self._listeners: list[EnvironmentListener] = []
        self._bound: dict[type, Any] = {}

    def _read_environ(self) -> Mapping[str, str]:
        return dict(os.environ if self._environ is None else self._environ)

    @property
    def sources(self) -> list[PropertySource]:
        return [self._overrides, self._system, self._defaults]

    def get_property(self, name: str, default: Any = None) -> Any:
        """Resolve a property through all sources."""
        for source in self.sources:
            entry = source.get(name)
            if entry is not None:
                return entry[1]
        return default

    def contains_property(self, name: str) -> bool:
        return any(source.get(name) is not None for source in self.sources)

    def set_properties(self, values: Mapping[str, Any]) -> set[str]:
        """Override properties, return the keys that actually changed.

        Registered properties are rebound against the new values first. When
        any of them fails to bind, the overrides are restored and
        PropertyBindingError is raised; listeners are not notified.
        """
        previous = {key: self._overrides.get(key) for key in values}
        changed = set()
        for key, value in values.items():
            if self.get_property(key) != value:
                changed.add(key)
            self._overrides.put(key, value)

        rebound, failures = self._rebind()
        if failures:
            for key, entry in previous.items():
                if entry is None:
                    self._overrides.remove(key)
                else:
                    self._overrides.put(*entry)
            raise PropertyBindingError(dict(values), failures)

        self._bound.update(rebound)
        self._notify(changed)
        return changed

    def refresh(self) -> set[str]:
        """Re-read the OS environment, return the keys that changed.

        A properties type that no longer binds keeps its last bound instance.
        """
        before = self._snapshot()
        self._system = PropertySource("systemEnvironment", self._read_environ())
        after = self._snapshot()

        changed = {
            after.get(key, before.get(key))[0]
            for key in before.keys() | after.keys()
            if before.get(key, (None, None))[1] != after.get(key, (None, None))[1]
        }
        rebound, failures = self._rebind()
        for properties_type, error in failures.items():
            logger.error(
                "Keeping last bound %s, refreshed values do not bind: %s",
                properties_type.__name__,
                error,
            )
        self._bound.update(rebound)
        self._notify(changed)
        return changed

    def _snapshot(self) -> dict[str, tuple[str, Any]]:
        resolved: dict[str, tuple[str, Any]] = {}
        for source in reversed(self.sources):
            resolved.update(source.items())
        return resolved

    def _rebind(self) -> tuple[dict[type, Any], dict[type, ValidationError]]:
        rebound: dict[type, Any] = {}
        failures: dict[type, ValidationError] = {}
        for properties_type in list(self._bound):
            try:
                rebound[properties_type] = properties_type.bind(self)
            except ValidationError as e:
                failures[properties_type] = e
        return rebound, failures

    # Listeners
    def add_listener(self, listener: EnvironmentListener) -> None:
        """Register a callback for EnvironmentChangeEvent."""
        self._listeners.append(listener)

    def _notify(self, keys: set[str]) -> None:
        event = EnvironmentChangeEvent(keys=set(keys))
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Error in environment listener %r", listener)

    # Bound properties
    def register(self, properties_type: type[P]) -> P:
        """Bind a properties type and keep it current across changes."""
        instance = properties_type.bind(self)
        self._bound[properties_type] = instance
        return instance

    def properties(self, properties_type: type[P]) -> P:
        """Get the current bound instance, binding on first use."""
        if properties_type not in self._bound:
            return self.register(properties_type)
        return self._bound[properties_type]


def log_changed_keys(environment: Environment) -> EnvironmentListener:
    """Listener logging each changed key with its new value."""

    def listener(event: EnvironmentChangeEvent) -> None:
        if not event.keys:
            logger.info("No change keys")
            return
        lines = ["=== Changed Keys ==="]
        for key in sorted(event.keys):
            lines.append(f"{key} --> {environment.get_property(key)}")
        logger.info("\n".join(lines))

    return listener
