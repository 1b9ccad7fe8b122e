"""Geodetic (WGS84 ellipsoid) coordinates and the local horizon frame.

Ground stations are placed with geodetic ``[lon, lat, alt]``; the altitude
detector and the drag model measure height above the ellipsoid.  The
inverse transformation uses Bowring's iteration with a fixed iteration
count (``jax.lax.fori_loop``) so it stays differentiable.

References:
    1. NIMA Technical Report TR8350.2, *Department of Defense World Geodetic
       System 1984*.
    2. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, Springer, 2012, Sec. 5.3.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitax.config import get_dtype
from orbitax.constants import WGS84_a, WGS84_f

# First eccentricity squared of the WGS84 ellipsoid
ECC2 = WGS84_f * (2.0 - WGS84_f)

_BOWRING_ITERATIONS = 6


def position_geodetic_to_ecef(x_geod: ArrayLike, use_degrees: bool = False) -> Array:
    """Convert geodetic ``[lon, lat, alt]`` to an ECEF position ``[x, y, z]``.

    Args:
        x_geod: Longitude and latitude in *rad* (or *deg* if
            ``use_degrees=True``), altitude in *m* above the ellipsoid.
        use_degrees: Interpret longitude and latitude as degrees.

    Returns:
        ECEF position in *m*.

    Examples:
        ```python
        from orbitax.coordinates import position_geodetic_to_ecef
        x = position_geodetic_to_ecef([0.0, 0.0, 0.0])  # [WGS84_a, 0, 0]
        ```
    """
    x_geod = jnp.asarray(x_geod, dtype=get_dtype())
    lon, lat, alt = x_geod[0], x_geod[1], x_geod[2]
    if use_degrees:
        lon = jnp.deg2rad(lon)
        lat = jnp.deg2rad(lat)

    sin_lat = jnp.sin(lat)
    cos_lat = jnp.cos(lat)
    N = WGS84_a / jnp.sqrt(1.0 - ECC2 * sin_lat * sin_lat)

    return jnp.array([
        (N + alt) * cos_lat * jnp.cos(lon),
        (N + alt) * cos_lat * jnp.sin(lon),
        ((1.0 - ECC2) * N + alt) * sin_lat,
    ])


def position_ecef_to_geodetic(x_ecef: ArrayLike, use_degrees: bool = False) -> Array:
    """Convert an ECEF position to geodetic ``[lon, lat, alt]``.

    Args:
        x_ecef: ECEF position ``[x, y, z]`` in *m*.
        use_degrees: Return longitude and latitude in degrees.

    Returns:
        Geodetic coordinates; altitude in *m* above the WGS84 ellipsoid.
    """
    x_ecef = jnp.asarray(x_ecef, dtype=get_dtype())
    x, y, z = x_ecef[0], x_ecef[1], x_ecef[2]
    rho2 = x * x + y * y

    def bowring(_, dz):
        zdz = z + dz
        sinphi = zdz / jnp.sqrt(rho2 + zdz * zdz)
        N = WGS84_a / jnp.sqrt(1.0 - ECC2 * sinphi * sinphi)
        return N * ECC2 * sinphi

    dz = jax.lax.fori_loop(0, _BOWRING_ITERATIONS, bowring, ECC2 * z)

    zdz = z + dz
    nh = jnp.sqrt(rho2 + zdz * zdz)
    sinphi = zdz / nh
    N = WGS84_a / jnp.sqrt(1.0 - ECC2 * sinphi * sinphi)

    lon = jnp.arctan2(y, x)
    lat = jnp.arctan2(zdz, jnp.sqrt(rho2))
    alt = nh - N

    if use_degrees:
        lon = jnp.rad2deg(lon)
        lat = jnp.rad2deg(lat)
    return jnp.array([lon, lat, alt])


def rotation_ecef_to_enz(lon: ArrayLike, lat: ArrayLike) -> Array:
    """Rotation matrix from ECEF to the local East-North-Zenith frame.

    Args:
        lon: Geodetic longitude [rad].
        lat: Geodetic latitude [rad].

    Returns:
        3x3 rotation matrix whose rows are the East, North and Zenith
        unit vectors expressed in ECEF.
    """
    sl, cl = jnp.sin(lon), jnp.cos(lon)
    sp, cp = jnp.sin(lat), jnp.cos(lat)
    return jnp.array([
        [-sl, cl, 0.0],
        [-sp * cl, -sp * sl, cp],
        [cp * cl, cp * sl, sp],
    ])
