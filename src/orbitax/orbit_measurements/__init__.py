"""Orbit measurements for batch orbit determination.

Measurement types and models:

- :class:`Measurement`, :class:`EstimatedMeasurement`,
  :class:`MeasurementKind`, :func:`estimate_measurement`
- :func:`pv_measurement`, :func:`position_measurement`,
  :func:`range_measurement`, :func:`range_rate_measurement`,
  :func:`inter_satellite_range_measurement`
- :class:`GroundStation`

Builders and the synthetic generator:

- :class:`PVBuilder`, :class:`PositionBuilder`, :class:`RangeBuilder`,
  :class:`RangeRateBuilder`, :class:`InterSatelliteRangeBuilder`
- :func:`generate_measurements`
"""

from orbitax.orbit_measurements._types import (
    EstimatedMeasurement,
    Measurement,
    MeasurementKind,
    estimate_measurement,
)
from orbitax.orbit_measurements.builders import (
    InterSatelliteRangeBuilder,
    PositionBuilder,
    PVBuilder,
    RangeBuilder,
    RangeRateBuilder,
    generate_measurements,
)
from orbitax.orbit_measurements.models import (
    inter_satellite_range_measurement,
    position_measurement,
    pv_measurement,
    range_measurement,
    range_rate_measurement,
)
from orbitax.orbit_measurements.station import GroundStation

__all__ = [
    "EstimatedMeasurement",
    "Measurement",
    "MeasurementKind",
    "estimate_measurement",
    "GroundStation",
    "pv_measurement",
    "position_measurement",
    "range_measurement",
    "range_rate_measurement",
    "inter_satellite_range_measurement",
    "PVBuilder",
    "PositionBuilder",
    "RangeBuilder",
    "RangeRateBuilder",
    "InterSatelliteRangeBuilder",
    "generate_measurements",
]
