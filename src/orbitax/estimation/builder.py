"""Propagator builder: estimable parameters -> fresh propagator.

The builder owns the drivers of one arc: six orbital drivers in the
builder's orbit type and one driver per force-model parameter.  Only the
orbital drivers are selected by default.  :meth:`PropagatorBuilder.build`
turns a parameter snapshot into a new :class:`NumericalPropagator` with
sensitivities enabled, so nothing is shared between estimator
iterations except the compiled dynamics.
"""

from __future__ import annotations

from collections.abc import Sequence

import jax
import jax.numpy as jnp
import numpy as np

from orbitax.coordinates import OrbitType, PositionAngle, cartesian_to_elements
from orbitax.errors import ConfigurationError
from orbitax.events import EventDetector
from orbitax.estimation.parameters import ParameterDriver, ParameterSet
from orbitax.integrators import AdaptiveConfig
from orbitax.orbit_dynamics import DynamicsModel
from orbitax.propagation import NumericalPropagator, SpacecraftState, StateMapper

_ELEMENT_NAMES = {
    OrbitType.CARTESIAN: ("x", "y", "z", "vx", "vy", "vz"),
    OrbitType.KEPLERIAN: ("a", "e", "i", "raan", "argp", "anomaly"),
    OrbitType.CIRCULAR: ("a", "ex", "ey", "i", "raan", "alpha"),
    OrbitType.EQUINOCTIAL: ("a", "ex", "ey", "hx", "hy", "lambda"),
}


def element_names(orbit_type: OrbitType) -> tuple[str, ...]:
    """Driver names of the six elements of *orbit_type*."""
    return _ELEMENT_NAMES[orbit_type]


def element_scales(
    cartesian,
    orbit_type: OrbitType,
    angle_type: PositionAngle,
    mu: float,
    position_scale: float,
) -> np.ndarray:
    """Normalization scales of the elements for a position scale *dP*.

    A velocity scale ``dV = mu dP / (|v| r^2)`` is derived from *dP*; the
    scale of element *i* is ``sum_j |d e_i / d x_j| * (dP or dV)``.
    """
    x = jnp.asarray(cartesian)
    r = float(jnp.linalg.norm(x[:3]))
    v = float(jnp.linalg.norm(x[3:6]))
    dv = mu * position_scale / (v * r * r)
    if orbit_type is OrbitType.CARTESIAN:
        return np.array([position_scale] * 3 + [dv] * 3)
    J = np.asarray(jax.jacfwd(lambda c: cartesian_to_elements(c, orbit_type, angle_type, mu))(x))
    scales = np.abs(J) @ np.array([position_scale] * 3 + [dv] * 3)
    return np.where(scales > 0.0, scales, position_scale)


class PropagatorBuilder:
    """Builds propagators for one arc from parameter snapshots.

    Args:
        initial_state: Initial guess of the arc.
        dynamics: Force model of the arc.
        orbit_type: Orbit type of the estimated elements and of the
            integration.  Defaults to the initial state's.
        angle_type: Position-angle convention of the estimated elements.
        position_scale: Position scale *dP* [m] used to normalize the
            orbital drivers.
        integrator: Adaptive step settings of built propagators.
        estimated_parameters: Force-model parameters to select, e.g.
            ``("cd",)``.

    Raises:
        ConfigurationError: If an estimated parameter is not a parameter
            of *dynamics*.

    Examples:
        ```python
        from orbitax import Epoch
        from orbitax.constants import GM_EARTH
        from orbitax.coordinates import OrbitType, PositionAngle
        from orbitax.estimation import PropagatorBuilder
        from orbitax.orbit_dynamics import create_orbit_dynamics
        from orbitax.propagation import SpacecraftState
        epoch = Epoch(2024, 1, 1)
        guess = SpacecraftState.from_cartesian(
            epoch, [6878e3, 0.0, 0.0, 0.0, 5382.0, 5382.0], GM_EARTH)
        builder = PropagatorBuilder(guess, create_orbit_dynamics(epoch),
                                    OrbitType.EQUINOCTIAL, PositionAngle.TRUE,
                                    position_scale=10.0)
        propagator = builder.build(builder.parameters)
        ```
    """

    def __init__(
        self,
        initial_state: SpacecraftState,
        dynamics: DynamicsModel,
        orbit_type: OrbitType | None = None,
        angle_type: PositionAngle | None = None,
        position_scale: float = 1.0,
        integrator: AdaptiveConfig | None = None,
        estimated_parameters: Sequence[str] = (),
    ) -> None:
        if orbit_type is None:
            orbit_type = initial_state.orbit_type
        if angle_type is None:
            angle_type = initial_state.angle_type
        if not position_scale > 0.0:
            raise ConfigurationError(f"position_scale must be positive, got {position_scale}")
        unknown = set(estimated_parameters) - set(dynamics.parameter_names)
        if unknown:
            raise ConfigurationError(
                f"unknown force-model parameters {sorted(unknown)}; "
                f"available: {dynamics.parameter_names}"
            )

        self._mapper = StateMapper(initial_state.epoch, initial_state.mu, orbit_type, angle_type,
                                   initial_state.frame)
        self._initial_state = initial_state
        self._dynamics = dynamics
        self._integrator = integrator or AdaptiveConfig()
        self._detectors: list[EventDetector] = []

        elements = np.asarray(self._mapper.encode_elements(initial_state))
        scales = element_scales(initial_state.cartesian, orbit_type, angle_type,
                                initial_state.mu, position_scale)
        orbital = [ParameterDriver(name, value, scale=scale)
                   for name, value, scale in zip(element_names(orbit_type), elements, scales)]
        force = [ParameterDriver(name, value, scale=abs(value) if value != 0.0 else 1.0,
                                 selected=name in estimated_parameters)
                 for name, value in zip(dynamics.parameter_names, dynamics.default_values)]
        self._orbital_names = tuple(d.name for d in orbital)
        self._parameters = ParameterSet(orbital + force)

    @property
    def parameters(self) -> ParameterSet:
        """Drivers of the arc: six orbital drivers then the force-model ones."""
        return self._parameters

    @property
    def orbital_names(self) -> tuple[str, ...]:
        return self._orbital_names

    @property
    def force_model_names(self) -> tuple[str, ...]:
        return self._dynamics.parameter_names

    @property
    def mapper(self) -> StateMapper:
        return self._mapper

    @property
    def initial_epoch(self):
        return self._initial_state.epoch

    def select(self, name: str, selected: bool = True) -> None:
        """Select or release a driver of this arc."""
        if name not in self._parameters:
            raise ConfigurationError(f"no parameter named '{name}'")
        self._parameters = self._parameters.with_selected(name, selected)

    def set_driver(self, driver: ParameterDriver) -> None:
        """Replace a driver, e.g. to change its scale or bounds."""
        if driver.name not in self._parameters:
            raise ConfigurationError(f"no parameter named '{driver.name}'")
        self._parameters = self._parameters.with_driver(driver)

    def add_event_detector(self, detector: EventDetector) -> None:
        """Detector registered on every built propagator."""
        self._detectors.append(detector)

    def initial_state(self, parameters: ParameterSet | None = None) -> SpacecraftState:
        """Initial state described by the orbital drivers of *parameters*."""
        if parameters is None:
            parameters = self._parameters
        elements = [parameters.value(name) for name in self._orbital_names]
        mapper = self._mapper
        return SpacecraftState.from_elements(
            self._initial_state.epoch, elements, mapper.orbit_type, mapper.angle_type,
            mapper.mu, mapper.frame, self._initial_state.mass,
        )._replace(additional=self._initial_state.additional)

    def build(self, parameters: ParameterSet | None = None) -> NumericalPropagator:
        """Fresh propagator for the snapshot *parameters*, sensitivities enabled."""
        if parameters is None:
            parameters = self._parameters
        values = [parameters.value(name) for name in self._dynamics.parameter_names]
        propagator = NumericalPropagator(
            self.initial_state(parameters),
            self._dynamics,
            mapper=self._mapper,
            integrator=self._integrator,
            parameters=values,
            sensitivity=True,
        )
        for detector in self._detectors:
            propagator.add_event_detector(detector)
        return propagator
