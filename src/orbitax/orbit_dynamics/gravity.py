"""Central-body gravity: point mass and the J2 zonal harmonic.

All inputs and outputs use SI base units (metres, metres/second squared).
The gravitational parameter is an explicit argument so it can be an
estimated quantity flowing through ``jax.jacfwd``.

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012, p. 56-68.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitax.config import get_dtype


def accel_point_mass(r_object: ArrayLike, gm: ArrayLike) -> Array:
    """Two-body acceleration ``-gm * r / |r|^3`` of a body centred at the origin.

    Args:
        r_object: Position of the object [m].  Shape ``(3,)`` or ``(6,)``
            (only first 3 elements used).
        gm: Gravitational parameter of the central body [m^3/s^2].

    Returns:
        Acceleration vector [m/s^2], shape ``(3,)``.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbitax.constants import R_EARTH, GM_EARTH
        from orbitax.orbit_dynamics import accel_point_mass
        a = accel_point_mass(jnp.array([R_EARTH, 0.0, 0.0]), GM_EARTH)
        ```
    """
    r = jnp.asarray(r_object, dtype=get_dtype())[:3]
    r_norm = jnp.linalg.norm(r)
    return -gm * r / r_norm**3


def accel_j2(
    r_object: ArrayLike,
    gm: ArrayLike,
    j2: float,
    radius: float,
) -> Array:
    """Acceleration due to the second zonal harmonic of the central body.

    The body's symmetry axis is taken as the inertial z-axis, which
    neglects precession and nutation of the Earth's pole.

    Args:
        r_object: Inertial position of the object [m].
        gm: Gravitational parameter of the central body [m^3/s^2].
        j2: Unnormalized J2 coefficient [dimensionless].
        radius: Reference radius of the harmonic expansion [m].

    Returns:
        Perturbing acceleration [m/s^2], shape ``(3,)``.
    """
    r = jnp.asarray(r_object, dtype=get_dtype())[:3]
    r2 = jnp.dot(r, r)
    r_norm = jnp.sqrt(r2)
    z2_r2 = r[2] * r[2] / r2
    factor = -1.5 * j2 * gm * radius**2 / r_norm**5
    return factor * jnp.array([
        r[0] * (1.0 - 5.0 * z2_r2),
        r[1] * (1.0 - 5.0 * z2_r2),
        r[2] * (3.0 - 5.0 * z2_r2),
    ])
