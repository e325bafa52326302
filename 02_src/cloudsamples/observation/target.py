"""Observed demo target: method_a observes itself and runs method_b scoped."""

import random
import time
from typing import Callable

from ..logging_config import get_logger
from .context import MethodContext
from .convention import (
    CONTEXTUAL_NAME,
    OBSERVATION_NAME,
    MethodObservationConvention,
    ObservationConvention,
)
from .registry import NOOP_REGISTRY, Observation, ObservationRegistry

logger = get_logger(__name__)

DEFAULT_CONVENTION = MethodObservationConvention()


class DemoTarget:
    """Does some (sleepy) work under observation."""

    def __init__(
        self,
        registry: ObservationRegistry | None = None,
        convention: ObservationConvention | None = None,
        pause: Callable[[float], None] | None = None,
        rng: random.Random | None = None,
    ):
        self._registry = registry or NOOP_REGISTRY
        self._convention = convention
        self._pause = pause or time.sleep
        self._random = rng or random.Random()

    def method_a(self) -> None:
        observation = Observation.create(
            OBSERVATION_NAME,
            lambda: MethodContext(self.method_a, note="caller: method_a"),
            self._registry,
            convention=self._convention,
            default_convention=DEFAULT_CONVENTION,
            contextual_name=CONTEXTUAL_NAME,
        )
        observation.start()
        logger.info("do something in method_a")
        try:
            self._pause(self._random.uniform(0, 0.3))
            observation.scoped(self.method_b)
        except Exception as e:
            logger.exception("error")
            observation.error(e)
        finally:
            observation.stop()

    def method_b(self) -> None:
        logger.info("do something in method_b")
        self._pause(self._random.uniform(0, 0.5))
