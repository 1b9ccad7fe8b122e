"""Event-aware numerical propagation.

The propagator integrates the raw state vector laid out by
:class:`~orbitax.propagation.StateLayout` in the orbit type of its
:class:`~orbitax.propagation.StateMapper`.  Each accepted DP54 step is
handed to the event states of the registered detectors; the earliest
located event is applied, its action dispatched, and integration resumes
from wherever the action leaves it.

The right-hand side is assembled once per configuration and compiled
with ``jax.jit``:

- element rates are the forward-mode product ``J(x) @ f(x)`` of the
  Cartesian-to-elements Jacobian with the Cartesian dynamics,
- additional equations append their own derivatives,
- the sensitivity block obeys ``Phi' = A Phi`` and ``S' = A S + B`` with
  ``A`` and ``B`` the Jacobians of the element rates with respect to the
  elements and the force-model parameters (``jax.jacfwd``).
"""

from __future__ import annotations

import functools
import logging
import math
from collections.abc import Callable, Sequence
from typing import NamedTuple

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

from orbitax.coordinates import OrbitType, PositionAngle, cartesian_to_elements, elements_to_cartesian
from orbitax.epoch import Epoch
from orbitax.errors import (
    ConfigurationError,
    OrbitaxError,
    PropagationError,
    StepSizeUnderflowError,
)
from orbitax.events import Action, EventDetector, EventOccurrence, EventState
from orbitax.integrators import (
    AdaptiveConfig,
    StepInterpolator,
    StepResult,
    estimate_initial_step,
    make_dp54_stepper,
)
from orbitax.orbit_dynamics import DynamicsModel
from orbitax.propagation.mapper import StateMapper
from orbitax.propagation.state import SpacecraftState, StateLayout

logger = logging.getLogger(__name__)

StepHandler = Callable[[StepInterpolator], None]


class AdditionalEquations(NamedTuple):
    """Extra states integrated alongside the orbit.

    Attributes:
        name: Key of the values in :attr:`SpacecraftState.additional`.
        dimension: Number of components.
        derivative: ``derivative(t, cartesian, values, params)`` returning
            the ``(dimension,)`` rate, with *t* in seconds since the
            mapper's reference epoch.  Must be traceable by JAX.
    """

    name: str
    dimension: int
    derivative: Callable[[Array, Array, Array, Array], Array]


class CompiledDynamics(NamedTuple):
    """Compiled right-hand side of the raw vector and its DP54 step.

    Attributes:
        rhs: ``rhs(t, y, params) -> dy/dt``.
        step: ``step(t, y, dt, params) -> StepResult``.
    """

    rhs: Callable[[float, Array, Array], Array]
    step: Callable[[float, Array, float, Array], StepResult]


@functools.lru_cache(maxsize=64)
def compile_dynamics(
    dynamics: Callable[[Array, Array, Array], Array],
    orbit_type: OrbitType,
    angle_type: PositionAngle,
    mu: float,
    layout: StateLayout,
    additional_equations: tuple[AdditionalEquations, ...] = (),
    config: AdaptiveConfig = AdaptiveConfig(),
    time_offset: float = 0.0,
) -> CompiledDynamics:
    """Build and compile the raw-vector right-hand side.

    Results are cached on the arguments, so propagators sharing a force
    model and a layout share one compiled step.

    Args:
        dynamics: Cartesian force model ``f(t, x, params)``.
        orbit_type: Orbit type of the integrated elements.
        angle_type: Position-angle convention of the integrated elements.
        mu: Gravitational parameter of the element conversions.
        layout: Raw vector layout.
        additional_equations: Equations of the additional states, in
            layout order.
        config: Adaptive step settings of the compiled step.
        time_offset: Force-model time at integrator time zero [s].

    Returns:
        CompiledDynamics: jitted right-hand side and step.
    """
    cartesian = orbit_type is OrbitType.CARTESIAN
    slices = layout.additional_slices()

    def to_elements(x):
        return cartesian_to_elements(x, orbit_type, angle_type, mu)

    def element_rate(t, elements, params):
        if cartesian:
            return dynamics(t + time_offset, elements, params)
        x = elements_to_cartesian(elements, orbit_type, angle_type, mu)
        xdot = dynamics(t + time_offset, x, params)
        _, rate = jax.jvp(to_elements, (x,), (xdot,))
        return rate

    def rhs(t, y, params):
        elements = y[:6]
        parts = [element_rate(t, elements, params), jnp.zeros(1, dtype=y.dtype)]

        if additional_equations:
            x = elements if cartesian else elements_to_cartesian(elements, orbit_type, angle_type, mu)
            for eq in additional_equations:
                rate = eq.derivative(t, x, y[slices[eq.name]], params)
                parts.append(jnp.reshape(rate, (eq.dimension,)))

        if layout.sensitivity:
            A = jax.jacfwd(element_rate, argnums=1)(t, elements, params)
            Phi = y[layout.stm_slice].reshape(6, 6)
            parts.append((A @ Phi).ravel())
            if layout.n_params:
                B = jax.jacfwd(element_rate, argnums=2)(t, elements, params)
                S = y[layout.param_slice].reshape(6, layout.n_params)
                parts.append((A @ S + B).ravel())

        return jnp.concatenate(parts)

    logger.debug("Compiling dynamics for %s/%s, layout size %d",
                 orbit_type.value, angle_type.value, layout.size)
    return CompiledDynamics(jax.jit(rhs), make_dp54_stepper(rhs, config))


def _take_step(compiled, t, y, dt, params, config) -> tuple[bool, StepResult]:
    """Attempt one step of size *dt* from *t*.

    Returns:
        ``(accepted, result)``; a rejected result still carries the
        step size the controller proposes next.

    Raises:
        StepSizeUnderflowError: If the step produced non-finite values, or
            fails the tolerance at the minimum step size.
    """
    result = compiled.step(t, y, dt, params)
    error = float(result.error_estimate)
    dt_used = float(result.dt_used)
    if not (math.isfinite(error) and np.all(np.isfinite(np.asarray(result.state)))):
        raise StepSizeUnderflowError(
            f"non-finite state in step from t={t} with dt={dt_used}"
        )
    if error > 1.0:
        if abs(dt_used) <= config.min_step:
            raise StepSizeUnderflowError(
                f"step from t={t} fails the tolerance (error {error:.3g}) at the "
                f"minimum step {config.min_step}"
            )
        logger.debug("Step from t=%.6f rejected with dt=%.6g (error %.3g)", t, dt_used, error)
        return False, result
    return True, result


class NumericalPropagator:
    """Adaptive-step propagator with event detection and sensitivities.

    Args:
        initial_state: State at the start of every run.
        dynamics: Force model from
            :func:`~orbitax.orbit_dynamics.create_orbit_dynamics`.
        mapper: Conventions of the integrated vector.  Defaults to the
            initial state's epoch, mu, orbit type, angle type and frame.
        integrator: Adaptive step settings.
        parameters: Force-model parameter values, in the order of
            ``dynamics.parameter_names``.  Defaults to the model's values.
        sensitivity: Propagate the state transition matrix and the
            Jacobian with respect to every force-model parameter.
        additional_equations: Extra states to integrate; the initial
            state must carry their initial values.
        step_handler: Called with the interpolator of every accepted step.

    Raises:
        ConfigurationError: On inconsistent parameters, duplicate
            additional states, or an initial state the mapper cannot
            encode.

    Examples:
        ```python
        from orbitax import Epoch
        from orbitax.constants import GM_EARTH
        from orbitax.events import node_detector
        from orbitax.orbit_dynamics import create_orbit_dynamics
        from orbitax.propagation import NumericalPropagator, SpacecraftState
        epoch = Epoch(2024, 1, 1)
        state = SpacecraftState.from_cartesian(
            epoch, [6878e3, 0.0, 0.0, 0.0, 5382.0, 5382.0], GM_EARTH)
        propagator = NumericalPropagator(state, create_orbit_dynamics(epoch))
        propagator.add_event_detector(node_detector())
        final = propagator.propagate(epoch + 86400.0)  # stops at the first node
        ```
    """

    def __init__(
        self,
        initial_state: SpacecraftState,
        dynamics: DynamicsModel,
        mapper: StateMapper | None = None,
        integrator: AdaptiveConfig | None = None,
        parameters: Sequence[float] | None = None,
        sensitivity: bool = False,
        additional_equations: Sequence[AdditionalEquations] = (),
        step_handler: StepHandler | None = None,
    ) -> None:
        if not isinstance(dynamics, DynamicsModel):
            raise ConfigurationError("dynamics must be a DynamicsModel")
        if mapper is None:
            mapper = StateMapper(initial_state.epoch, initial_state.mu, initial_state.orbit_type,
                                 initial_state.angle_type, initial_state.frame)

        values = dynamics.default_values if parameters is None else parameters
        params = np.asarray(values, dtype=np.float64)
        if params.shape != (len(dynamics.parameter_names),):
            raise ConfigurationError(
                f"expected {len(dynamics.parameter_names)} parameters "
                f"{dynamics.parameter_names}, got shape {params.shape}"
            )

        additional_equations = tuple(additional_equations)
        names = [eq.name for eq in additional_equations]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"duplicate additional state names in {names}")
        if any(int(eq.dimension) < 1 for eq in additional_equations):
            raise ConfigurationError("additional states need a positive dimension")

        self._initial_state = initial_state
        self._dynamics = dynamics
        self._mapper = mapper
        self._config = integrator or AdaptiveConfig()
        self._parameters = params
        self._additional_equations = additional_equations
        self._layout = StateLayout(
            additional=tuple((eq.name, int(eq.dimension)) for eq in additional_equations),
            n_params=len(params) if sensitivity else 0,
            sensitivity=sensitivity,
        )
        self._step_handler = step_handler
        self._detectors: list[EventDetector] = []
        self._events: list[EventOccurrence] = []

        mapper.map_state_to_array(initial_state, self._layout)

    @property
    def initial_state(self) -> SpacecraftState:
        """State every run starts from."""
        return self._initial_state

    @property
    def mapper(self) -> StateMapper:
        """Conventions of the integrated vector."""
        return self._mapper

    @property
    def layout(self) -> StateLayout:
        """Slices of the main state, sensitivities and additional states."""
        return self._layout

    @property
    def parameter_names(self) -> tuple[str, ...]:
        """Force-model parameter names, in the order of :attr:`parameters`."""
        return self._dynamics.parameter_names

    @property
    def parameters(self) -> np.ndarray:
        """Copy of the force-model parameter values."""
        return self._parameters.copy()

    @property
    def event_detectors(self) -> tuple[EventDetector, ...]:
        """Registered detectors, in registration (priority) order."""
        return tuple(self._detectors)

    @property
    def events(self) -> tuple[EventOccurrence, ...]:
        """Events applied during the last run, in order of application."""
        return tuple(self._events)

    def add_event_detector(self, detector: EventDetector) -> None:
        """Register *detector*; earlier registrations win exact ties."""
        if not isinstance(detector, EventDetector):
            raise ConfigurationError(f"expected an EventDetector, got {type(detector).__name__}")
        self._detectors.append(detector)

    def clear_event_detectors(self) -> None:
        """Remove every registered detector."""
        self._detectors.clear()

    def compiled(self) -> CompiledDynamics:
        """Compiled right-hand side and step of this propagator's configuration."""
        mapper = self._mapper
        return compile_dynamics(
            self._dynamics.dynamics,
            mapper.orbit_type,
            mapper.angle_type,
            mapper.mu,
            self._layout,
            self._additional_equations,
            self._config,
            float(mapper.reference_epoch - self._dynamics.epoch),
        )

    def propagate(self, target: Epoch) -> SpacecraftState:
        """Propagate from the initial state to *target*.

        Returns:
            The state at *target*, or at the event time if a STOP event
            ends the run first.

        Raises:
            EventConvergenceError: If an event root cannot be refined.
            StepSizeUnderflowError: If the integrator cannot meet its
                tolerance at the minimum step.
            PropagationError: If a g-function, handler or step handler
                raises.
        """
        t_end = self._mapper.map_date_to_double(target)
        _, t, y = self._integrate([t_end])
        return self._mapper.map_array_to_state(
            self._mapper.map_double_to_date(t, expected=target), y, layout=self._layout
        )

    def propagate_to_epochs(self, epochs: Sequence[Epoch]) -> list[SpacecraftState]:
        """States at each of *epochs*, integrated in a single run.

        The integrator lands exactly on every epoch.  The epochs must be
        ordered away from the initial state (all forward or all backward).
        If a STOP event ends the run early, only the states reached before
        it are returned.

        Raises:
            ConfigurationError: If the epochs are not monotone.
        """
        mapper = self._mapper
        times = [mapper.map_date_to_double(epoch) for epoch in epochs]
        if not times:
            return []
        t0 = mapper.map_date_to_double(self._initial_state.epoch)
        steps = np.diff([t0] + times)
        if np.any(steps > 0.0) and np.any(steps < 0.0):
            raise ConfigurationError("epochs must be monotone away from the initial state")

        reached, _, _ = self._integrate(times)
        return [
            mapper.map_array_to_state(mapper.map_double_to_date(t, expected=epoch), y,
                                      layout=self._layout)
            for (t, y), epoch in zip(reached, epochs)
        ]

    # Integration loop

    def _integrate(self, targets: list[float]) -> tuple[list[tuple[float, np.ndarray]], float, np.ndarray]:
        mapper, layout, config = self._mapper, self._layout, self._config
        compiled = self.compiled()
        params = jnp.asarray(self._parameters)

        t = mapper.map_date_to_double(self._initial_state.epoch)
        y = mapper.map_state_to_array(self._initial_state, layout)
        f = np.asarray(compiled.rhs(t, y, params))

        event_layout = StateLayout(additional=layout.additional)

        def decode(tt, yy):
            return mapper.map_array_to_state(tt, yy, layout=event_layout)

        event_states = [EventState(detector, decode) for detector in self._detectors]
        for es in event_states:
            es.reinitialize(t, y)
        self._events = []

        reached = []
        h = None
        for t_end in targets:
            direction = 1.0 if t_end >= t else -1.0
            while t != t_end:
                if h is None or h * direction <= 0.0:
                    h = direction * estimate_initial_step(f, y, config)
                remaining = t_end - t
                dt = remaining if abs(h) >= abs(remaining) else h

                accepted, result = _take_step(compiled, t, y, dt, params, config)
                h = float(result.dt_next)
                if not accepted:
                    continue

                dt_used = float(result.dt_used)
                t_new = t_end if (dt_used == dt and dt == remaining) else t + dt_used
                interp = StepInterpolator(t, t_new, y, np.asarray(result.state), f,
                                          np.asarray(result.derivative_end))

                action, t, y = self._handle_events(interp, event_states, compiled, params)
                if action is None:
                    f = interp.f1
                elif action is Action.STOP:
                    return reached, t, y
                else:
                    for es in event_states:
                        es.reinitialize(t, y)
                    f = np.asarray(compiled.rhs(t, y, params))
                    h = None
            reached.append((t, y))
        return reached, t, y

    def _handle_events(self, interp, event_states, compiled, params):
        mapper, layout = self._mapper, self._layout
        forward = 1.0 if interp.forward else -1.0

        while True:
            pending = [(es.event_time, i) for i, es in enumerate(event_states)
                       if es.evaluate_step(interp)]
            if not pending:
                for es in event_states:
                    es.step_accepted(interp.t1, interp.y1)
                self._notify_step(interp)
                return None, interp.t1, interp.y1

            te, index = min(pending, key=lambda p: (forward * p[0], p[1]))
            es = event_states[index]
            ye = self._integrate_exact(compiled, interp, te, params)
            state = mapper.map_array_to_state(te, ye, layout=layout)
            action, new_state = es.apply(state)
            self._events.append(
                EventOccurrence(state.epoch, te, es.detector, es.increasing, state, action)
            )
            logger.debug("Event '%s' at %s (%s): %s", es.detector.name, state.epoch,
                         "increasing" if es.increasing else "decreasing", action.name)

            match action:
                case Action.CONTINUE:
                    continue
                case Action.STOP:
                    logger.info("Propagation stopped by detector '%s' at %s",
                                es.detector.name, state.epoch)
                case Action.RESET_STATE:
                    logger.debug("State reset by detector '%s' at %s", es.detector.name, state.epoch)
                    ye = self._reset(es.detector, state, new_state)
                case Action.RESET_DERIVATIVES:
                    logger.debug("Derivatives reset by detector '%s' at %s",
                                 es.detector.name, state.epoch)

            if self._step_handler is not None:
                fe = np.asarray(compiled.rhs(te, ye, params))
                self._notify_step(StepInterpolator(interp.t0, te, interp.y0, ye, interp.f0, fe))
            return action, te, ye

    def _integrate_exact(self, compiled, interp, te, params) -> np.ndarray:
        """Raw vector at *te* integrated from the start of the step."""
        if te == interp.t1:
            return interp.y1
        t, y = interp.t0, interp.y0
        h = te - t
        while t != te:
            remaining = te - t
            dt = remaining if abs(h) >= abs(remaining) else h
            accepted, result = _take_step(compiled, t, y, dt, params, self._config)
            h = float(result.dt_next)
            if not accepted:
                continue
            dt_used = float(result.dt_used)
            t = te if (dt_used == dt and dt == remaining) else t + dt_used
            y = np.asarray(result.state)
        return y

    def _reset(self, detector, state, new_state) -> np.ndarray:
        """Encode a reset state, mapping the sensitivity block through the reset."""
        mapper, layout = self._mapper, self._layout
        if layout.sensitivity:
            def reset_elements(elements):
                reset = detector.handler.reset_state(detector, state._replace(elements=elements))
                return mapper.encode_elements(reset)

            try:
                J = jax.jacfwd(reset_elements)(state.elements)
            except OrbitaxError:
                raise
            except Exception as exc:
                raise PropagationError(
                    f"reset of detector '{detector.name}' is not differentiable"
                ) from exc
            new_state = new_state._replace(stm=J @ state.stm,
                                           param_jacobian=J @ state.param_jacobian)
        return mapper.map_state_to_array(new_state, layout)

    def _notify_step(self, interp) -> None:
        if self._step_handler is None:
            return
        try:
            self._step_handler(interp)
        except OrbitaxError:
            raise
        except Exception as exc:
            raise PropagationError(f"step handler failed on step ending at t={interp.t1}") from exc
