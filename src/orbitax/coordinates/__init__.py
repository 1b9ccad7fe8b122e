"""Coordinate transformations.

This sub-module provides the orbit parameterizations the propagator can
integrate in, and the geodetic conversions used by ground stations:

- **Orbit types**: Cartesian, Keplerian, circular and equinoctial
  elements, each with a TRUE / MEAN / ECCENTRIC position angle
- **Anomalies**: Kepler's equation in eccentricity-vector form
- **Geodetic**: WGS84 ellipsoid model ``[lon, lat, alt]`` <-> ECEF and the
  East-North-Zenith horizon frame
"""

from ._types import OrbitType, PositionAngle
from .anomaly import (
    anomaly_eccentric_to_true,
    anomaly_mean_to_eccentric,
    anomaly_mean_to_true,
    anomaly_true_to_mean,
)
from .geodetic import (
    position_ecef_to_geodetic,
    position_geodetic_to_ecef,
    rotation_ecef_to_enz,
)
from .orbits import (
    cartesian_to_circular,
    cartesian_to_elements,
    cartesian_to_equinoctial,
    cartesian_to_keplerian,
    circular_to_cartesian,
    convert_position_angle,
    elements_to_cartesian,
    equinoctial_to_cartesian,
    keplerian_to_cartesian,
    wrap_to_2pi,
)

__all__ = [
    "OrbitType",
    "PositionAngle",
    "anomaly_true_to_mean",
    "anomaly_mean_to_true",
    "anomaly_mean_to_eccentric",
    "anomaly_eccentric_to_true",
    "position_geodetic_to_ecef",
    "position_ecef_to_geodetic",
    "rotation_ecef_to_enz",
    "keplerian_to_cartesian",
    "cartesian_to_keplerian",
    "circular_to_cartesian",
    "cartesian_to_circular",
    "equinoctial_to_cartesian",
    "cartesian_to_equinoctial",
    "elements_to_cartesian",
    "cartesian_to_elements",
    "convert_position_angle",
    "wrap_to_2pi",
]
