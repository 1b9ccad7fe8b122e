"""Measurement types.

- :class:`MeasurementKind`: type tag of a measurement.
- :class:`Measurement`: an observation together with the pure model that
  predicts it from spacecraft states.
- :class:`EstimatedMeasurement`: the model evaluated at propagated states,
  with residual, weight and partial derivatives.

Measurement models have the signature ``model(states, params, aux)``:

- ``states``: tuple of inertial Cartesian states ``(6,)``, one per
  involved propagator,
- ``params``: dict of measurement-specific parameter values (biases),
- ``aux``: constant array of model data, e.g. the inertial position and
  velocity of a ground station at the measurement epoch,

and return the ``(m,)`` predicted value.  Partials come from
``jax.jacfwd``; model functions are compiled once and shared by every
measurement of their kind.
"""

from __future__ import annotations

import enum
import functools
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, NamedTuple

import jax
import jax.numpy as jnp
import numpy as np
from jax import Array

if TYPE_CHECKING:
    from orbitax.epoch import Epoch
    from orbitax.estimation.parameters import ParameterDriver
    from orbitax.propagation.state import SpacecraftState

MeasurementModel = Callable[[tuple[Array, ...], dict[str, Array], Array], Array]


class MeasurementKind(enum.Enum):
    PV = "pv"
    POSITION = "position"
    RANGE = "range"
    RANGE_RATE = "range_rate"
    INTER_SATELLITE_RANGE = "inter_satellite_range"


@functools.partial(jax.jit, static_argnums=0)
def _value_and_state_partials(model, states, params, aux):
    value = model(states, params, aux)
    return value, jax.jacfwd(model, argnums=0)(states, params, aux)


@functools.partial(jax.jit, static_argnums=0)
def _value_and_partials(model, states, params, aux):
    value = model(states, params, aux)
    state_partials, param_partials = jax.jacfwd(model, argnums=(0, 1))(states, params, aux)
    return value, state_partials, param_partials


class Measurement(NamedTuple):
    """An immutable observation.

    Attributes:
        kind: Type tag.
        epoch: Epoch of the observation.
        observed: Observed value ``(m,)``.
        sigma: Theoretical standard deviation per component ``(m,)``.
        base_weight: Base weight per component ``(m,)``.
        propagator_indices: Indices of the propagators whose states the
            model consumes, in model order.
        model: Pure prediction function, see module docstring.
        aux: Constant model data.
        parameters: Drivers of the measurement-specific parameters.
        name: Label.
    """

    kind: MeasurementKind
    epoch: Epoch
    observed: np.ndarray
    sigma: np.ndarray
    base_weight: np.ndarray
    propagator_indices: tuple[int, ...]
    model: MeasurementModel
    aux: np.ndarray
    parameters: tuple[ParameterDriver, ...] = ()
    name: str = ""

    @property
    def dimension(self) -> int:
        return self.observed.shape[0]

    @property
    def weight(self) -> np.ndarray:
        """``base_weight / sigma^2`` per component."""
        return self.base_weight / self.sigma**2

    def parameter_values(self, overrides: Mapping[str, float] | None = None) -> dict[str, float]:
        values = {d.name: d.value for d in self.parameters}
        if overrides:
            values.update({k: overrides[k] for k in values if k in overrides})
        return values

    def estimate(
        self,
        states: Sequence[SpacecraftState],
        parameters: Mapping[str, float] | None = None,
        iteration: int = 0,
        evaluation: int = 0,
    ) -> EstimatedMeasurement:
        """Evaluate the model and its partials at *states*.

        Args:
            states: States of the involved propagators at :attr:`epoch`,
                in :attr:`propagator_indices` order.
            parameters: Values overriding the drivers' current values.
            iteration: Estimator iteration, recorded on the result.
            evaluation: Estimator evaluation, recorded on the result.
        """
        carts = tuple(jnp.asarray(s.cartesian) for s in states)
        values = {k: jnp.asarray(v) for k, v in self.parameter_values(parameters).items()}
        aux = jnp.asarray(self.aux)
        if values:
            value, state_partials, param_partials = _value_and_partials(self.model, carts, values, aux)
        else:
            value, state_partials = _value_and_state_partials(self.model, carts, values, aux)
            param_partials = {}
        estimated = np.asarray(value)
        return EstimatedMeasurement(
            measurement=self,
            iteration=iteration,
            evaluation=evaluation,
            states=tuple(states),
            estimated=estimated,
            residual=self.observed - estimated,
            weight=self.weight,
            state_partials=tuple(np.asarray(p) for p in state_partials),
            parameter_partials={k: np.asarray(v) for k, v in param_partials.items()},
        )


class EstimatedMeasurement(NamedTuple):
    """A measurement evaluated at propagated states.

    Attributes:
        measurement: The source measurement.
        iteration: Estimator iteration of the evaluation.
        evaluation: Estimator evaluation counter.
        states: States the model was evaluated at.
        estimated: Predicted value ``(m,)``.
        residual: ``observed - estimated``.
        weight: ``base_weight / sigma^2`` per component.
        state_partials: ``(m, 6)`` partials with respect to each state's
            inertial Cartesian coordinates.
        parameter_partials: ``(m,)`` partials per measurement parameter.
    """

    measurement: Measurement
    iteration: int
    evaluation: int
    states: tuple[SpacecraftState, ...]
    estimated: np.ndarray
    residual: np.ndarray
    weight: np.ndarray
    state_partials: tuple[np.ndarray, ...]
    parameter_partials: dict[str, np.ndarray]

    @property
    def weighted_residual(self) -> np.ndarray:
        return np.sqrt(self.weight) * self.residual


def estimate_measurement(
    measurement: Measurement,
    states: Sequence[SpacecraftState],
    parameters: Mapping[str, float] | None = None,
    iteration: int = 0,
    evaluation: int = 0,
) -> EstimatedMeasurement:
    """Functional form of :meth:`Measurement.estimate`."""
    return measurement.estimate(states, parameters, iteration, evaluation)
