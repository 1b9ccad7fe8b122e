"""Atmospheric density models.

Two models are provided:

- an exponential atmosphere anchored at a reference altitude,
- a user-supplied density grid over geodetic latitude, longitude and
  altitude (:class:`DensityGrid`), interpolated linearly in
  ``log(rho)``.

Both take the Earth-fixed position of the spacecraft and return density
in kg/m^3.
"""

from __future__ import annotations

from dataclasses import dataclass

import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.scipy.ndimage import map_coordinates
from jax.typing import ArrayLike

from orbitax.config import get_dtype
from orbitax.coordinates.geodetic import position_ecef_to_geodetic
from orbitax.errors import ConfigurationError


def density_exponential(
    r_ecef: ArrayLike,
    rho0: float,
    h0: float,
    scale_height: float,
) -> Array:
    """Exponential atmosphere ``rho0 * exp(-(h - h0) / H)``.

    Args:
        r_ecef: Earth-fixed position [m].
        rho0: Density at the reference altitude [kg/m^3].
        h0: Reference altitude above the WGS84 ellipsoid [m].
        scale_height: Density scale height [m].

    Returns:
        Atmospheric density [kg/m^3].
    """
    alt = position_ecef_to_geodetic(r_ecef)[2]
    return rho0 * jnp.exp(-(alt - h0) / scale_height)


@dataclass(frozen=True)
class DensityGrid:
    """Tabulated density on a regular latitude/longitude/altitude grid.

    Args:
        latitudes: Strictly increasing geodetic latitudes [deg].
        longitudes: Strictly increasing longitudes [deg].
        altitudes: Strictly increasing altitudes [m].
        densities: Densities [kg/m^3], flattened with altitude varying
            fastest, then longitude, then latitude
            (``index = (i * n_lon + j) * n_alt + k``).

    Raises:
        ConfigurationError: If the axes are not strictly increasing or the
            number of densities does not match the grid size.
    """

    latitudes: tuple[float, ...]
    longitudes: tuple[float, ...]
    altitudes: tuple[float, ...]
    densities: tuple[float, ...]

    def __post_init__(self) -> None:
        for name in ("latitudes", "longitudes", "altitudes"):
            axis = np.asarray(getattr(self, name), dtype=float)
            if axis.ndim != 1 or axis.size < 2 or np.any(np.diff(axis) <= 0.0):
                raise ConfigurationError(
                    f"{name} must hold at least two strictly increasing values"
                )
        expected = len(self.latitudes) * len(self.longitudes) * len(self.altitudes)
        if len(self.densities) != expected:
            raise ConfigurationError(
                f"densities must hold {expected} values, got {len(self.densities)}"
            )
        if np.any(np.asarray(self.densities, dtype=float) <= 0.0):
            raise ConfigurationError("densities must be strictly positive")

    @classmethod
    def from_altitude_profile(
        cls,
        altitudes: tuple[float, ...],
        densities: tuple[float, ...],
    ) -> DensityGrid:
        """Build a grid whose density depends on altitude only."""
        lat = (-90.0, 90.0)
        lon = (-180.0, 180.0)
        return cls(lat, lon, tuple(altitudes), tuple(densities) * 4)

    def log_density_cube(self) -> np.ndarray:
        shape = (len(self.latitudes), len(self.longitudes), len(self.altitudes))
        return np.log(np.asarray(self.densities, dtype=float)).reshape(shape)


def density_gridded(r_ecef: ArrayLike, grid: DensityGrid) -> Array:
    """Interpolate a :class:`DensityGrid` at an Earth-fixed position.

    Interpolation is trilinear in ``log(rho)``; positions outside the grid
    are clamped to its boundary.

    Args:
        r_ecef: Earth-fixed position [m].
        grid: Density table.

    Returns:
        Atmospheric density [kg/m^3].
    """
    _float = get_dtype()
    lon, lat, alt = position_ecef_to_geodetic(r_ecef, use_degrees=True)

    def fractional_index(value, axis):
        axis = jnp.asarray(axis, dtype=_float)
        index = jnp.interp(value, axis, jnp.arange(axis.shape[0], dtype=_float))
        return jnp.atleast_1d(index)

    coords = [
        fractional_index(lat, grid.latitudes),
        fractional_index(lon, grid.longitudes),
        fractional_index(alt, grid.altitudes),
    ]
    cube = jnp.asarray(grid.log_density_cube(), dtype=_float)
    return jnp.exp(map_coordinates(cube, coords, order=1, mode="nearest")[0])
