"""Event handlers.

A handler turns a detected event into an :class:`~orbitax.events.Action`:

- :class:`ContinueOnEvent`, :class:`StopOnEvent`: unconditional.
- :class:`StopOnIncreasing`, :class:`StopOnDecreasing`: stop on one
  crossing direction, continue on the other.
- :class:`RecordAndContinue`: keeps every event it sees.
- :class:`ResetDerivativesOnEvent`: restarts the integrator at the event.
- :class:`ImpulseManeuverHandler`: applies an impulsive velocity change.

``reset_state`` is only consulted after a RESET_STATE action and must be
traceable by ``jax.jacfwd`` when sensitivities are propagated.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import jax.numpy as jnp
from jax.typing import ArrayLike

from orbitax.config import get_dtype
from orbitax.constants import G0
from orbitax.errors import ConfigurationError
from orbitax.events._types import Action

if TYPE_CHECKING:
    from orbitax.events.detector import EventDetector
    from orbitax.propagation.state import SpacecraftState


class _Handler:
    def event_occurred(self, state, detector, increasing) -> Action:
        """Decide what the propagator does at a located event.

        Args:
            state: State at the event time.
            detector: Detector that fired.
            increasing: Whether g increased through zero.

        Returns:
            The action the propagator applies.
        """
        raise NotImplementedError

    def reset_state(self, detector: EventDetector, state: SpacecraftState) -> SpacecraftState:
        """State to restart from after a RESET_STATE action, unchanged by default."""
        return state


class ContinueOnEvent(_Handler):
    """Let the propagation continue after every event."""

    def event_occurred(self, state, detector, increasing) -> Action:
        return Action.CONTINUE


class StopOnEvent(_Handler):
    """Stop the propagation at the first event."""

    def event_occurred(self, state, detector, increasing) -> Action:
        return Action.STOP


class StopOnIncreasing(_Handler):
    """Stop when g increases through zero, continue otherwise."""

    def event_occurred(self, state, detector, increasing) -> Action:
        return Action.STOP if increasing else Action.CONTINUE


class StopOnDecreasing(_Handler):
    """Stop when g decreases through zero, continue otherwise."""

    def event_occurred(self, state, detector, increasing) -> Action:
        return Action.CONTINUE if increasing else Action.STOP


class RecordAndContinue(_Handler):
    """Record every event and let the propagation continue.

    Attributes:
        events: ``(state, increasing)`` of each event, in order of
            occurrence.  Not cleared between runs; call :meth:`clear`.
    """

    def __init__(self) -> None:
        self.events: list[tuple[SpacecraftState, bool]] = []

    def event_occurred(self, state, detector, increasing) -> Action:
        self.events.append((state, increasing))
        return Action.CONTINUE

    def clear(self) -> None:
        """Forget the recorded events."""
        self.events.clear()


class ResetDerivativesOnEvent(_Handler):
    """Restart the integrator at the event without changing the state.

    For detectors marking a discontinuity of the force model, such as a
    thruster switching on.
    """

    def event_occurred(self, state, detector, increasing) -> Action:
        return Action.RESET_DERIVATIVES


class ImpulseManeuverHandler(_Handler):
    """Instantaneous velocity increment applied at the event.

    Args:
        delta_v: Velocity increment [m/s], inertial unless *local* is set.
        local: Interpret *delta_v* in the local orbital frame
            ``[radial, along-track, cross-track]``.
        isp: Specific impulse [s].  When given, the mass is reduced by
            the rocket equation.
        direction: Only fire on increasing (``True``) or decreasing
            (``False``) crossings; ``None`` fires on both.

    Examples:
        ```python
        from orbitax.events import ImpulseManeuverHandler, apside_detector
        burn = apside_detector().with_handler(
            ImpulseManeuverHandler([0.0, 10.0, 0.0], local=True, direction=False))
        ```
    """

    def __init__(
        self,
        delta_v: ArrayLike,
        local: bool = False,
        isp: float | None = None,
        direction: bool | None = None,
    ) -> None:
        self.delta_v = jnp.asarray(delta_v, dtype=get_dtype())
        if self.delta_v.shape != (3,):
            raise ConfigurationError(f"delta_v must have shape (3,), got {self.delta_v.shape}")
        if isp is not None and not isp > 0.0:
            raise ConfigurationError(f"isp must be positive, got {isp}")
        self.local = local
        self.isp = isp
        self.direction = direction

    def event_occurred(self, state, detector, increasing) -> Action:
        """Request a state reset on crossings in the configured direction."""
        if self.direction is None or self.direction == increasing:
            return Action.RESET_STATE
        return Action.CONTINUE

    def inertial_delta_v(self, cartesian) -> jnp.ndarray:
        """Velocity increment in the inertial frame for the state *cartesian*."""
        if not self.local:
            return self.delta_v
        r, v = cartesian[:3], cartesian[3:6]
        r_hat = r / jnp.linalg.norm(r)
        h = jnp.cross(r, v)
        n_hat = h / jnp.linalg.norm(h)
        t_hat = jnp.cross(n_hat, r_hat)
        return jnp.stack([r_hat, t_hat, n_hat], axis=1) @ self.delta_v

    def reset_state(self, detector, state):
        """Add the velocity increment and, with *isp* set, burn the propellant."""
        x = state.cartesian
        dv = self.inertial_delta_v(x)
        new_state = state.with_cartesian(x.at[3:6].add(dv))
        if self.isp is not None:
            mass = state.mass * jnp.exp(-jnp.linalg.norm(self.delta_v) / (self.isp * G0))
            new_state = new_state.with_mass(mass)
        return new_state
