"""Type definitions shared by the event machinery.

- :class:`Action`: what the propagator does after an event.
- :class:`DetectorPhase`: phase of one detector's per-run state machine.
- :class:`EventHandler`: protocol implemented by every action handler.
- :class:`EventOccurrence`: record of an event applied during a run.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, NamedTuple, Protocol

if TYPE_CHECKING:
    from orbitax.epoch import Epoch
    from orbitax.events.detector import EventDetector
    from orbitax.propagation.state import SpacecraftState


class Action(enum.Enum):
    """Propagator reaction to an event."""

    CONTINUE = "continue"
    STOP = "stop"
    RESET_STATE = "reset_state"
    RESET_DERIVATIVES = "reset_derivatives"


class DetectorPhase(enum.Enum):
    """Phase of an :class:`~orbitax.events.EventState`.

    ``SEARCHING -> BRACKETED`` when a sign change of g is seen inside a
    step, ``BRACKETED -> TRIGGERED`` once the root is refined,
    ``TRIGGERED -> APPLIED`` when the handler has run.  An applied
    detector searches again from the event time.
    """

    SEARCHING = "searching"
    BRACKETED = "bracketed"
    TRIGGERED = "triggered"
    APPLIED = "applied"


class EventHandler(Protocol):
    """Decides the :class:`Action` taken when a detector fires."""

    def event_occurred(
        self, state: SpacecraftState, detector: EventDetector, increasing: bool
    ) -> Action:
        """Action for an event at *state*; *increasing* is the direction of g."""
        ...

    def reset_state(self, detector: EventDetector, state: SpacecraftState) -> SpacecraftState:
        """New state after a RESET_STATE action."""
        ...


class EventOccurrence(NamedTuple):
    """One event applied during a propagation run.

    Attributes:
        epoch: Epoch of the event.
        t: Integrator time of the event [s].
        detector: Detector that fired.
        increasing: ``True`` if g went from negative to positive.
        state: Spacecraft state at the event, before any reset.
        action: Action returned by the handler.
    """

    epoch: Epoch
    t: float
    detector: EventDetector
    increasing: bool
    state: SpacecraftState
    action: Action
