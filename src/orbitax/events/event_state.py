"""Per-run state machine of one event detector.

One :class:`EventState` is created for every registered detector at the
start of each propagation run and discarded at its end, so no search
state leaks between runs.

Within an accepted step ``[t0, t1]`` the detector's g is sampled on
``ceil(|t1 - t0| / max_check)`` equal sub-intervals.  The first sample
where g strictly takes the opposite sign brackets an event; the root is
refined with :func:`scipy.optimize.brentq` and the reported event time is
then moved, in steps of ``threshold / 2``, onto the side of the root
where g already has its new sign.  Searching resumes from there, so a
root is never reported twice.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import TYPE_CHECKING

import numpy as np
from scipy.optimize import brentq

from orbitax.errors import EventConvergenceError, OrbitaxError, PropagationError
from orbitax.events._types import Action, DetectorPhase

if TYPE_CHECKING:
    from orbitax.events.detector import EventDetector
    from orbitax.integrators import StepInterpolator
    from orbitax.propagation.state import SpacecraftState

logger = logging.getLogger(__name__)

StateDecoder = Callable[[float, np.ndarray], "SpacecraftState"]


class EventState:
    """Search state of *detector* during one propagation run.

    Args:
        detector: The detector being tracked.
        decode: ``decode(t, y) -> SpacecraftState`` for raw vectors of the
            run, used to evaluate g.
    """

    def __init__(self, detector: EventDetector, decode: StateDecoder) -> None:
        self.detector = detector
        self._decode = decode
        self._phase = DetectorPhase.SEARCHING
        self._t0: float | None = None
        self._g0 = 0.0
        self._g0_positive: bool | None = None
        self._interp: StepInterpolator | None = None
        self._g_end: tuple[float, float] | None = None
        self._event_time: float | None = None
        self._g_event = 0.0
        self._increasing = False

    @property
    def phase(self) -> DetectorPhase:
        return self._phase

    @property
    def pending(self) -> bool:
        """Whether an event is located and waiting for :meth:`apply`."""
        return self._phase is DetectorPhase.TRIGGERED

    @property
    def event_time(self) -> float | None:
        return self._event_time

    @property
    def increasing(self) -> bool:
        return self._increasing

    @property
    def t0(self) -> float | None:
        """Start of the current search interval."""
        return self._t0

    def g(self, t: float, y: np.ndarray) -> float:
        """Value of the switching function for the raw vector *y* at *t*.

        Raises:
            PropagationError: If g raises or returns a non-finite value.
        """
        state = self._decode(t, y)
        try:
            value = float(self.detector.g(state))
        except OrbitaxError:
            raise
        except Exception as exc:
            raise PropagationError(
                f"g-function of detector '{self.detector.name}' failed at t={t}"
            ) from exc
        if not math.isfinite(value):
            raise PropagationError(
                f"g-function of detector '{self.detector.name}' returned {value} at t={t}"
            )
        return value

    def reinitialize(self, t0: float, y0: np.ndarray) -> None:
        """Start searching at *t0*.

        A zero g at *t0* leaves the sign undecided; it is taken from the
        next non-zero sample, which does not count as an event.
        """
        self._t0 = t0
        self._g0 = self.g(t0, y0)
        self._g0_positive = None if self._g0 == 0.0 else self._g0 > 0.0
        self._phase = DetectorPhase.SEARCHING
        self._interp = None
        self._g_end = None
        self._event_time = None

    def evaluate_step(self, interpolator: StepInterpolator) -> bool:
        """Search ``[t0, interpolator.t1]`` for the first sign change of g.

        Returns:
            ``True`` if an event was located; :attr:`event_time` and
            :attr:`increasing` then describe it.

        Raises:
            EventConvergenceError: If the root search does not converge in
                ``max_iter`` iterations.
        """
        if self._phase is DetectorPhase.TRIGGERED and self._interp is interpolator:
            return True
        self._interp = interpolator
        self._phase = DetectorPhase.SEARCHING
        self._event_time = None

        span = interpolator.t1 - self._t0
        if span == 0.0 or (span > 0.0) != interpolator.forward:
            return False

        n = max(1, math.ceil(abs(span) / self.detector.max_check))
        ta = self._t0
        for i in range(1, n + 1):
            tb = interpolator.t1 if i == n else self._t0 + i * span / n
            gb = self.g(tb, interpolator(tb))
            if i == n:
                self._g_end = (tb, gb)
            if gb == 0.0:
                continue
            if self._g0_positive is None:
                self._g0_positive = gb > 0.0
            elif (gb > 0.0) != self._g0_positive:
                self._phase = DetectorPhase.BRACKETED
                self._locate(interpolator, ta, tb, gb)
                return True
            ta = tb
        return False

    def _locate(self, interpolator, ta: float, tb: float, gb: float) -> None:
        detector = self.detector

        def f(t):
            return self.g(t, interpolator(t))

        lo, hi = (ta, tb) if ta < tb else (tb, ta)
        root, info = brentq(f, lo, hi, xtol=0.5 * detector.threshold,
                            maxiter=detector.max_iter, full_output=True, disp=False)
        if not info.converged:
            raise EventConvergenceError(
                f"root search of detector '{detector.name}' did not converge in "
                f"{detector.max_iter} iterations within [{lo}, {hi}]"
            )

        new_positive = not self._g0_positive
        step = 0.5 * detector.threshold * (1.0 if interpolator.forward else -1.0)
        te, ge = root, f(root)
        for _ in range(detector.max_iter):
            if ge != 0.0 and (ge > 0.0) == new_positive:
                break
            te = te + step
            if (te - tb) * step >= 0.0:
                te, ge = tb, gb
                break
            ge = f(te)
        else:
            raise EventConvergenceError(
                f"could not place event of detector '{detector.name}' after its root at t={root}"
            )

        self._event_time = te
        self._g_event = ge
        self._increasing = new_positive
        self._phase = DetectorPhase.TRIGGERED
        logger.debug("Detector '%s' triggered at t=%.9f (%s), %d root iterations",
                     detector.name, te, "increasing" if new_positive else "decreasing",
                     info.iterations)

    def apply(self, state: SpacecraftState) -> tuple[Action, SpacecraftState | None]:
        """Run the handler for the pending event at *state*.

        The search then restarts at the event time with the post-event
        sign of g.

        Returns:
            The handler's action, and the reset state for RESET_STATE
            (``None`` otherwise).

        Raises:
            PropagationError: If the handler raises or returns something
                that is not an :class:`Action`.
        """
        if self._phase is not DetectorPhase.TRIGGERED:
            raise PropagationError(f"detector '{self.detector.name}' has no pending event")

        handler = self.detector.handler
        try:
            action = handler.event_occurred(state, self.detector, self._increasing)
            new_state = None
            if action is Action.RESET_STATE:
                new_state = handler.reset_state(self.detector, state)
        except OrbitaxError:
            raise
        except Exception as exc:
            raise PropagationError(
                f"handler of detector '{self.detector.name}' failed at t={self._event_time}"
            ) from exc
        if not isinstance(action, Action):
            raise PropagationError(
                f"handler of detector '{self.detector.name}' returned {action!r}, not an Action"
            )

        self._phase = DetectorPhase.APPLIED
        self._t0 = self._event_time
        self._g0 = self._g_event
        self._g0_positive = self._increasing
        self._interp = None
        return action, new_state

    def step_accepted(self, t: float, y: np.ndarray) -> None:
        """Move the search start to the end of a fully processed step."""
        if self._g_end is not None and self._g_end[0] == t:
            g = self._g_end[1]
        else:
            g = self.g(t, y)
        self._t0, self._g0 = t, g
        if g != 0.0 and self._g0_positive is None:
            self._g0_positive = g > 0.0
        self._phase = DetectorPhase.SEARCHING
        self._interp = None
        self._g_end = None
        self._event_time = None
