"""Environment module."""

from .environment import (
    Environment,
    EnvironmentChangeEvent,
    EnvironmentListener,
    IEnvironment,
    PropertyBindingError,
    PropertySource,
    canonical_name,
    log_changed_keys,
)
from .properties import ConfigurationProperties, OrderProperties

__all__ = [
    "ConfigurationProperties",
    "Environment",
    "EnvironmentChangeEvent",
    "EnvironmentListener",
    "IEnvironment",
    "OrderProperties",
    "PropertyBindingError",
    "PropertySource",
    "canonical_name",
    "log_changed_keys",
]
