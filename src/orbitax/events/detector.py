"""The event detector value type.

A detector is a g-function plus its search settings and action handler.
Phenomena are not subclasses: each one is a factory in
:mod:`orbitax.events.detectors` returning an :class:`EventDetector`.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from typing import TYPE_CHECKING

from orbitax.errors import ConfigurationError
from orbitax.events._types import EventHandler
from orbitax.events.handlers import StopOnEvent

if TYPE_CHECKING:
    from orbitax.propagation.state import SpacecraftState

DEFAULT_MAX_CHECK = 600.0
"""Default maximum interval between two g samples [s]."""

DEFAULT_THRESHOLD = 1e-6
"""Default convergence threshold on the event time [s]."""

DEFAULT_MAX_ITER = 100
"""Default iteration budget of the root search."""

SwitchingFunction = Callable[["SpacecraftState"], float]


@dataclasses.dataclass(frozen=True)
class EventDetector:
    """Switching function with its search settings and action handler.

    The g-function must be continuous and change sign exactly at the
    boundary of the phenomenon.  Events shorter than twice *max_check*
    may be missed.

    Attributes:
        g: Switching function of the spacecraft state.
        handler: Action handler.  Defaults to :class:`StopOnEvent`.
        max_check: Maximum interval between two g samples [s].
        threshold: Convergence threshold on the event time [s].
        max_iter: Iteration budget of the root search.
        name: Label used in logs and event records.

    Raises:
        ConfigurationError: If a setting is not strictly positive.
    """

    g: SwitchingFunction
    handler: EventHandler = dataclasses.field(default_factory=StopOnEvent)
    max_check: float = DEFAULT_MAX_CHECK
    threshold: float = DEFAULT_THRESHOLD
    max_iter: int = DEFAULT_MAX_ITER
    name: str = "event"

    def __post_init__(self) -> None:
        if not callable(self.g):
            raise ConfigurationError("g must be callable")
        if not self.max_check > 0.0:
            raise ConfigurationError(f"max_check must be positive, got {self.max_check}")
        if not self.threshold > 0.0:
            raise ConfigurationError(f"threshold must be positive, got {self.threshold}")
        if int(self.max_iter) < 1:
            raise ConfigurationError(f"max_iter must be at least 1, got {self.max_iter}")

    def with_handler(self, handler: EventHandler) -> EventDetector:
        return dataclasses.replace(self, handler=handler)

    def with_max_check(self, max_check: float) -> EventDetector:
        return dataclasses.replace(self, max_check=max_check)

    def with_threshold(self, threshold: float) -> EventDetector:
        return dataclasses.replace(self, threshold=threshold)

    def with_max_iter(self, max_iter: int) -> EventDetector:
        return dataclasses.replace(self, max_iter=max_iter)

    def with_name(self, name: str) -> EventDetector:
        return dataclasses.replace(self, name=name)
