"""Typed holders for externally supplied configuration values."""

from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict


class ConfigurationProperties(BaseModel):
    """Base for properties bound from an Environment under ``prefix``."""

    model_config = ConfigDict(frozen=True)

    prefix: ClassVar[str] = ""

    @classmethod
    def bind(cls, environment: Any):
        values = {}
        for name in cls.model_fields:
            key = f"{cls.prefix}.{name}" if cls.prefix else name
            value = environment.get_property(key)
            if value is not None:
                values[name] = value
        return cls(**values)


class OrderProperties(ConfigurationProperties):
    """Order switches, prefix ``order``."""

    prefix: ClassVar[str] = "order"

    # Whether POST /order/create is allowed
    create_enabled: bool = False

    def is_create_enabled(self) -> bool:
        return self.create_enabled
