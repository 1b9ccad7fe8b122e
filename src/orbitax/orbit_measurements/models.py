"""Measurement models and constructors.

- :func:`pv_measurement` -- inertial position and velocity (GNSS fix)
- :func:`position_measurement` -- inertial position only
- :func:`range_measurement` -- station-to-spacecraft distance
- :func:`range_rate_measurement` -- line-of-sight velocity seen from a
  station
- :func:`inter_satellite_range_measurement` -- distance between two
  spacecraft

Ranges are geometric and instantaneous: light time is neglected.  Range
and range-rate models add the sum of their bias parameters.
"""

from __future__ import annotations

from collections.abc import Sequence

import jax.numpy as jnp
import numpy as np
from jax.typing import ArrayLike

from orbitax.epoch import Epoch
from orbitax.errors import ConfigurationError
from orbitax.orbit_measurements._types import Measurement, MeasurementKind
from orbitax.orbit_measurements.station import GroundStation


def _bias(params):
    return sum(params.values(), 0.0)


def pv_model(states, params, aux):
    return states[0][:6]


def position_model(states, params, aux):
    return states[0][:3]


def range_model(states, params, aux):
    rho = states[0][:3] - aux[:3]
    return jnp.atleast_1d(jnp.linalg.norm(rho) + _bias(params))


def range_rate_model(states, params, aux):
    rho = states[0][:3] - aux[:3]
    rho_dot = states[0][3:6] - aux[3:6]
    return jnp.atleast_1d(jnp.dot(rho, rho_dot) / jnp.linalg.norm(rho) + _bias(params))


def inter_satellite_range_model(states, params, aux):
    return jnp.atleast_1d(jnp.linalg.norm(states[0][:3] - states[1][:3]) + _bias(params))


def _positive(values, size: int, label: str) -> np.ndarray:
    array = np.broadcast_to(np.asarray(values, dtype=np.float64), (size,)).copy()
    if not np.all(array > 0.0):
        raise ConfigurationError(f"{label} must be positive, got {array}")
    return array


def _measurement(kind, epoch, observed, sigma, base_weight, indices, model, aux, bias, name):
    observed = np.atleast_1d(np.asarray(observed, dtype=np.float64))
    size = observed.shape[0]
    return Measurement(
        kind=kind,
        epoch=epoch,
        observed=observed,
        sigma=_positive(sigma, size, "sigma"),
        base_weight=_positive(base_weight, size, "base_weight"),
        propagator_indices=tuple(int(i) for i in indices),
        model=model,
        aux=np.asarray(aux, dtype=np.float64),
        parameters=() if bias is None else (bias,),
        name=name,
    )


def pv_measurement(
    epoch: Epoch,
    observed: ArrayLike,
    sigma_position: float,
    sigma_velocity: float,
    base_weight: float = 1.0,
    propagator_index: int = 0,
    name: str = "pv",
) -> Measurement:
    """Inertial position/velocity measurement ``[x, y, z, vx, vy, vz]``.

    Examples:
        ```python
        from orbitax import Epoch
        from orbitax.orbit_measurements import pv_measurement
        m = pv_measurement(Epoch(2024, 1, 1), [6878e3, 0, 0, 0, 7612.0, 0], 10.0, 0.01)
        m.weight  # [0.01, 0.01, 0.01, 1e4, 1e4, 1e4]
        ```
    """
    sigma = [sigma_position] * 3 + [sigma_velocity] * 3
    if np.shape(observed) != (6,):
        raise ConfigurationError(f"PV observation must have shape (6,), got {np.shape(observed)}")
    return _measurement(MeasurementKind.PV, epoch, observed, sigma, base_weight,
                        (propagator_index,), pv_model, np.zeros(0), None, name)


def position_measurement(
    epoch: Epoch,
    observed: ArrayLike,
    sigma: float,
    base_weight: float = 1.0,
    propagator_index: int = 0,
    name: str = "position",
) -> Measurement:
    """Inertial position measurement ``[x, y, z]``."""
    if np.shape(observed) != (3,):
        raise ConfigurationError(f"position observation must have shape (3,), got {np.shape(observed)}")
    return _measurement(MeasurementKind.POSITION, epoch, observed, sigma, base_weight,
                        (propagator_index,), position_model, np.zeros(0), None, name)


def range_measurement(
    epoch: Epoch,
    observed: float,
    station: GroundStation,
    sigma: float,
    base_weight: float = 1.0,
    propagator_index: int = 0,
    bias=None,
    name: str | None = None,
) -> Measurement:
    """Range [m] from *station* at *epoch*.

    Args:
        bias: Optional :class:`~orbitax.estimation.ParameterDriver` of a
            range bias [m].
    """
    return _measurement(MeasurementKind.RANGE, epoch, observed, sigma, base_weight,
                        (propagator_index,), range_model, station.pv_inertial(epoch), bias,
                        name or f"range[{station.name}]")


def range_rate_measurement(
    epoch: Epoch,
    observed: float,
    station: GroundStation,
    sigma: float,
    base_weight: float = 1.0,
    propagator_index: int = 0,
    bias=None,
    name: str | None = None,
) -> Measurement:
    """Range rate [m/s] seen from *station* at *epoch*, positive when receding."""
    return _measurement(MeasurementKind.RANGE_RATE, epoch, observed, sigma, base_weight,
                        (propagator_index,), range_rate_model, station.pv_inertial(epoch), bias,
                        name or f"range_rate[{station.name}]")


def inter_satellite_range_measurement(
    epoch: Epoch,
    observed: float,
    sigma: float,
    propagator_indices: Sequence[int] = (0, 1),
    base_weight: float = 1.0,
    bias=None,
    name: str = "inter_satellite_range",
) -> Measurement:
    """Distance [m] between the spacecraft of two propagators."""
    if len(propagator_indices) != 2 or propagator_indices[0] == propagator_indices[1]:
        raise ConfigurationError(
            f"inter-satellite range needs two distinct propagators, got {propagator_indices}"
        )
    return _measurement(MeasurementKind.INTER_SATELLITE_RANGE, epoch, observed, sigma,
                        base_weight, propagator_indices, inter_satellite_range_model,
                        np.zeros(0), bias, name)
