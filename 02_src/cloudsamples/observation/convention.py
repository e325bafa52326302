"""Naming conventions that turn a context into key values."""

from typing import Protocol

from .context import MethodContext, ObservationContext

OBSERVATION_NAME = "demo"
CONTEXTUAL_NAME = "human.friendly.name.demo"

CALL_METHOD_KEY = "demo.call.method"
NOTE_KEY = "demo.note"


class ObservationConvention(Protocol):
    def supports_context(self, context: ObservationContext) -> bool: ...

    def get_low_cardinality_key_values(self, context: ObservationContext) -> dict[str, str]: ...


class MethodObservationConvention:
    """``demo.call.method`` always, ``demo.note`` only for a non-blank note."""

    def supports_context(self, context: ObservationContext) -> bool:
        return isinstance(context, MethodContext)

    def get_low_cardinality_key_values(self, context: MethodContext) -> dict[str, str]:
        key_values = {CALL_METHOD_KEY: context.method_name}
        if context.note and context.note.strip():
            key_values[NOTE_KEY] = context.note
        return key_values
