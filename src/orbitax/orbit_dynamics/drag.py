"""Atmospheric drag acceleration.

The atmosphere co-rotates with the Earth about the inertial z-axis, so the
relative velocity is ``v - omega x r`` and no Earth-fixed rotation of the
state is required.  The drag coefficient is an explicit argument so it can
be estimated.

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012, Sec. 3.5.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitax.config import get_dtype
from orbitax.constants import OMEGA_EARTH


def relative_wind(x: ArrayLike) -> Array:
    """Velocity of the spacecraft relative to the co-rotating atmosphere [m/s]."""
    x = jnp.asarray(x, dtype=get_dtype())
    omega = jnp.array([0.0, 0.0, OMEGA_EARTH])
    return x[3:6] - jnp.cross(omega, x[:3])


def accel_drag(
    x: ArrayLike,
    density: ArrayLike,
    mass: float,
    area: float,
    cd: ArrayLike,
) -> Array:
    """Acceleration due to atmospheric drag.

    Args:
        x: 6-element inertial state ``[r, v]`` [m; m/s].
        density: Atmospheric density [kg/m^3].
        mass: Spacecraft mass [kg].
        area: Wind-facing cross-sectional area [m^2].
        cd: Coefficient of drag [dimensionless].

    Returns:
        Drag acceleration in the inertial frame [m/s^2], shape ``(3,)``.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbitax.orbit_dynamics import accel_drag
        x = jnp.array([6878e3, 0.0, 0.0, 0.0, 7500.0, 0.0])
        a = accel_drag(x, 1e-12, 1000.0, 1.0, 2.0)
        ```
    """
    v_rel = relative_wind(x)
    v_abs = jnp.linalg.norm(v_rel)
    return -0.5 * cd * (area / mass) * density * v_abs * v_rel
