"""Measurement builders and the synthetic measurement generator.

A builder turns the states of all propagators at one epoch into a
:class:`~orbitax.orbit_measurements.Measurement`.  The observed value is
the model prediction plus, when a :class:`numpy.random.Generator` is
supplied, Gaussian noise of the builder's sigma.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from typing import TYPE_CHECKING

import jax.numpy as jnp
import numpy as np

from orbitax.epoch import Epoch
from orbitax.errors import ConfigurationError
from orbitax.orbit_measurements._types import Measurement
from orbitax.orbit_measurements.models import (
    inter_satellite_range_measurement,
    position_measurement,
    pv_measurement,
    range_measurement,
    range_rate_measurement,
)
from orbitax.orbit_measurements.station import GroundStation

if TYPE_CHECKING:
    from orbitax.estimation.parameters import ParameterDriver
    from orbitax.propagation import NumericalPropagator, SpacecraftState

logger = logging.getLogger(__name__)


class _Builder:
    """Shared noise handling."""

    def __init__(self, base_weight: float, rng: np.random.Generator | None) -> None:
        self.base_weight = base_weight
        self.rng = rng

    def visible(self, states: Sequence[SpacecraftState]) -> bool:
        return True

    def _observe(self, measurement: Measurement, states) -> Measurement:
        carts = tuple(jnp.asarray(states[i].cartesian) for i in measurement.propagator_indices)
        values = {d.name: jnp.asarray(d.value) for d in measurement.parameters}
        observed = np.asarray(measurement.model(carts, values, jnp.asarray(measurement.aux)))
        if self.rng is not None:
            observed = observed + self.rng.normal(0.0, measurement.sigma)
        return measurement._replace(observed=np.atleast_1d(observed).astype(np.float64))

    def build(self, states: Sequence[SpacecraftState]) -> Measurement:
        raise NotImplementedError


class PVBuilder(_Builder):
    """Position/velocity fixes of one propagator."""

    def __init__(
        self,
        sigma_position: float,
        sigma_velocity: float,
        base_weight: float = 1.0,
        propagator_index: int = 0,
        rng: np.random.Generator | None = None,
    ) -> None:
        super().__init__(base_weight, rng)
        self.sigma_position = sigma_position
        self.sigma_velocity = sigma_velocity
        self.propagator_index = propagator_index

    def build(self, states):
        state = states[self.propagator_index]
        m = pv_measurement(state.epoch, np.zeros(6), self.sigma_position, self.sigma_velocity,
                           self.base_weight, self.propagator_index)
        return self._observe(m, states)


class PositionBuilder(_Builder):
    """Position fixes of one propagator."""

    def __init__(
        self,
        sigma: float,
        base_weight: float = 1.0,
        propagator_index: int = 0,
        rng: np.random.Generator | None = None,
    ) -> None:
        super().__init__(base_weight, rng)
        self.sigma = sigma
        self.propagator_index = propagator_index

    def build(self, states):
        state = states[self.propagator_index]
        m = position_measurement(state.epoch, np.zeros(3), self.sigma, self.base_weight,
                                 self.propagator_index)
        return self._observe(m, states)


class _StationBuilder(_Builder):
    def __init__(self, station, sigma, base_weight, propagator_index, min_elevation, bias, rng):
        super().__init__(base_weight, rng)
        if not isinstance(station, GroundStation):
            raise ConfigurationError("station must be a GroundStation")
        self.station = station
        self.sigma = sigma
        self.propagator_index = propagator_index
        self.min_elevation = min_elevation
        self.bias = bias

    def visible(self, states) -> bool:
        """Whether the spacecraft is above the elevation mask, if any."""
        if self.min_elevation is None:
            return True
        state = states[self.propagator_index]
        return bool(self.station.elevation(state.epoch, state.position) >= self.min_elevation)


class RangeBuilder(_StationBuilder):
    """Ranges from a ground station.

    Args:
        station: Observing station.
        sigma: Range noise [m].
        min_elevation: Elevation mask [rad]; ``None`` builds measurements
            whatever the geometry.
        bias: Optional range-bias driver included in the observations.
    """

    def __init__(
        self,
        station: GroundStation,
        sigma: float,
        base_weight: float = 1.0,
        propagator_index: int = 0,
        min_elevation: float | None = None,
        bias: ParameterDriver | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        super().__init__(station, sigma, base_weight, propagator_index, min_elevation, bias, rng)

    def build(self, states):
        state = states[self.propagator_index]
        m = range_measurement(state.epoch, 0.0, self.station, self.sigma, self.base_weight,
                              self.propagator_index, self.bias)
        return self._observe(m, states)


class RangeRateBuilder(_StationBuilder):
    """Range rates from a ground station; see :class:`RangeBuilder`."""

    def __init__(
        self,
        station: GroundStation,
        sigma: float,
        base_weight: float = 1.0,
        propagator_index: int = 0,
        min_elevation: float | None = None,
        bias: ParameterDriver | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        super().__init__(station, sigma, base_weight, propagator_index, min_elevation, bias, rng)

    def build(self, states):
        state = states[self.propagator_index]
        m = range_rate_measurement(state.epoch, 0.0, self.station, self.sigma, self.base_weight,
                                   self.propagator_index, self.bias)
        return self._observe(m, states)


class InterSatelliteRangeBuilder(_Builder):
    """Ranges between the spacecraft of two propagators."""

    def __init__(
        self,
        sigma: float,
        propagator_indices: Sequence[int] = (0, 1),
        base_weight: float = 1.0,
        bias: ParameterDriver | None = None,
        rng: np.random.Generator | None = None,
    ) -> None:
        super().__init__(base_weight, rng)
        self.sigma = sigma
        self.propagator_indices = tuple(propagator_indices)
        self.bias = bias

    def build(self, states):
        epoch = states[self.propagator_indices[0]].epoch
        m = inter_satellite_range_measurement(epoch, 0.0, self.sigma, self.propagator_indices,
                                              self.base_weight, self.bias)
        return self._observe(m, states)


def generate_measurements(
    propagators: Sequence[NumericalPropagator],
    builder: _Builder,
    start: Epoch,
    end: Epoch,
    step: float,
) -> list[Measurement]:
    """Build measurements on the grid ``start, start + step, ..., end``.

    Each propagator runs once over the grid, which must lie on one side
    of its initial epoch.  Epochs where the builder reports no
    visibility are skipped.  A propagator stopped early by an event ends
    the grid.

    Examples:
        ```python
        from orbitax.orbit_measurements import PVBuilder, generate_measurements
        measurements = generate_measurements([propagator], PVBuilder(1.0, 1e-3),
                                             epoch, epoch + 3600.0, 60.0)
        ```
    """
    if not step > 0.0:
        raise ConfigurationError(f"step must be positive, got {step}")
    span = float(end - start)
    if span < 0.0:
        raise ConfigurationError("end must not be before start")
    n = int(math.floor(span / step + 1e-9)) + 1
    epochs = [start + i * step for i in range(n)]

    arcs = [propagator.propagate_to_epochs(epochs) for propagator in propagators]
    count = min(len(arc) for arc in arcs)
    measurements = []
    for i in range(count):
        states = [arc[i] for arc in arcs]
        if builder.visible(states):
            measurements.append(builder.build(states))
    logger.info("Generated %d measurements over %d epochs", len(measurements), count)
    return measurements
