"""Ground stations on the WGS84 ellipsoid."""

from __future__ import annotations

import dataclasses
import functools

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitax.config import get_dtype
from orbitax.constants import DEG2RAD
from orbitax.coordinates import position_geodetic_to_ecef, rotation_ecef_to_enz
from orbitax.epoch import Epoch
from orbitax.errors import ConfigurationError
from orbitax.frames import rotation_eci_to_ecef, state_ecef_to_eci


@dataclasses.dataclass(frozen=True)
class GroundStation:
    """Earth-fixed tracking station.

    Attributes:
        name: Station label.
        longitude: Geodetic longitude [rad].
        latitude: Geodetic latitude [rad].
        altitude: Height above the ellipsoid [m].

    Examples:
        ```python
        from orbitax.orbit_measurements import GroundStation
        kiruna = GroundStation.from_degrees("kiruna", 20.96, 67.86, 400.0)
        ```
    """

    name: str
    longitude: float
    latitude: float
    altitude: float = 0.0

    def __post_init__(self) -> None:
        if not -jnp.pi / 2 <= self.latitude <= jnp.pi / 2:
            raise ConfigurationError(f"station '{self.name}': latitude {self.latitude} rad out of range")

    @classmethod
    def from_degrees(cls, name: str, longitude: float, latitude: float, altitude: float = 0.0) -> GroundStation:
        return cls(name, longitude * DEG2RAD, latitude * DEG2RAD, altitude)

    @functools.cached_property
    def ecef_position(self) -> Array:
        return position_geodetic_to_ecef(jnp.array([self.longitude, self.latitude, self.altitude]))

    @functools.cached_property
    def _enz(self) -> Array:
        return rotation_ecef_to_enz(self.longitude, self.latitude)

    def pv_inertial(self, epoch: Epoch) -> Array:
        """Inertial position and velocity ``(6,)`` of the station at *epoch*."""
        x_ecef = jnp.concatenate([self.ecef_position, jnp.zeros(3, dtype=get_dtype())])
        return state_ecef_to_eci(epoch, x_ecef)

    def topocentric(self, epoch: Epoch, position: ArrayLike) -> Array:
        """East-North-Zenith components of the line of sight to *position*."""
        r_ecef = rotation_eci_to_ecef(epoch) @ jnp.asarray(position, dtype=get_dtype())[:3]
        return self._enz @ (r_ecef - self.ecef_position)

    def elevation(self, epoch: Epoch, position: ArrayLike) -> Array:
        """Elevation [rad] of the inertial *position* above the local horizon."""
        enz = self.topocentric(epoch, position)
        return jnp.arctan2(enz[2], jnp.hypot(enz[0], enz[1]))

    def azimuth(self, epoch: Epoch, position: ArrayLike) -> Array:
        """Azimuth [rad], clockwise from North, in ``[0, 2 pi)``."""
        enz = self.topocentric(epoch, position)
        return jnp.mod(jnp.arctan2(enz[0], enz[1]), 2.0 * jnp.pi)
