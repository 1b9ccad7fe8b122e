"""Solar radiation pressure and Earth shadow models.

The cannonball SRP acceleration scales with the reflectivity coefficient
``cr``, which can be estimated.  Two shadow functions return the
illuminated fraction of the solar disk: a cylindrical (umbra only) model
and a conical model with penumbra.

All inputs and outputs use SI base units.

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012, Sec. 3.4.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitax.config import get_dtype
from orbitax.constants import AU, R_EARTH, R_SUN


def accel_srp(
    r_object: ArrayLike,
    r_sun: ArrayLike,
    mass: float,
    cr: ArrayLike,
    area: float,
    p0: float,
) -> Array:
    """Acceleration due to solar radiation pressure, without shadowing.

    Args:
        r_object: Position of the object [m].
        r_sun: Position of the Sun [m].
        mass: Spacecraft mass [kg].
        cr: Coefficient of reflectivity [dimensionless].
        area: Sun-facing cross-sectional area [m^2].
        p0: Solar radiation pressure at 1 AU [N/m^2].

    Returns:
        SRP acceleration [m/s^2], pointing away from the Sun.
    """
    _float = get_dtype()
    d = jnp.asarray(r_object, dtype=_float)[:3] - jnp.asarray(r_sun, dtype=_float)
    d_norm = jnp.linalg.norm(d)
    return cr * (area / mass) * p0 * AU**2 * d / d_norm**3


def eclipse_cylindrical(r_object: ArrayLike, r_sun: ArrayLike) -> Array:
    """Illumination fraction (0.0 or 1.0) from a cylindrical Earth shadow."""
    _float = get_dtype()
    r = jnp.asarray(r_object, dtype=_float)[:3]
    e_sun = jnp.asarray(r_sun, dtype=_float)
    e_sun = e_sun / jnp.linalg.norm(e_sun)

    r_proj = jnp.dot(r, e_sun)
    r_perp = jnp.linalg.norm(r - r_proj * e_sun)
    lit = (r_proj >= 0.0) | (r_perp > R_EARTH)
    return jnp.where(lit, 1.0, 0.0)


def eclipse_conical(r_object: ArrayLike, r_sun: ArrayLike) -> Array:
    """Illuminated fraction of the solar disk from a conical shadow model.

    The overlap of the apparent solar and terrestrial disks gives the
    fraction in penumbra.

    Args:
        r_object: Inertial position of the object [m].
        r_sun: Inertial position of the Sun [m].

    Returns:
        Illumination fraction: 0.0 in umbra, 1.0 in full sunlight.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbitax.constants import R_EARTH, AU
        from orbitax.orbit_dynamics import eclipse_conical
        nu = eclipse_conical(jnp.array([-R_EARTH - 100e3, 0.0, 0.0]),
                             jnp.array([AU, 0.0, 0.0]))
        ```
    """
    _float = get_dtype()
    r = jnp.asarray(r_object, dtype=_float)[:3]
    d = jnp.asarray(r_sun, dtype=_float) - r

    r_norm = jnp.linalg.norm(r)
    d_norm = jnp.linalg.norm(d)

    a = jnp.arcsin(R_SUN / d_norm)
    b = jnp.arcsin(R_EARTH / r_norm)
    c = jnp.arccos(jnp.clip(-jnp.dot(r, d) / (r_norm * d_norm), -1.0, 1.0))

    # Penumbra: partial overlap of the two disks
    x = (c * c + a * a - b * b) / (2.0 * c)
    y = jnp.sqrt(jnp.maximum(a * a - x * x, 0.0))
    overlap = (a * a * jnp.arccos(jnp.clip(x / a, -1.0, 1.0))
               + b * b * jnp.arccos(jnp.clip((c - x) / b, -1.0, 1.0))
               - c * y)
    nu_partial = 1.0 - overlap / (jnp.pi * a * a)

    full = (a + b) <= c
    partial = (jnp.abs(a - b) < c) & (c < (a + b))
    return jnp.where(full, 1.0, jnp.where(partial, nu_partial, 0.0))


def shadow_angles(r_object: ArrayLike, r_sun: ArrayLike) -> tuple[Array, Array, Array]:
    """Angular quantities seen from the spacecraft for shadow events.

    Returns:
        ``(separation, occulting_radius, occulted_radius)``: the angle
        between the Sun and Earth centre directions, the apparent Earth
        radius and the apparent Sun radius, all in radians.
    """
    _float = get_dtype()
    r = jnp.asarray(r_object, dtype=_float)[:3]
    to_sun = jnp.asarray(r_sun, dtype=_float) - r
    to_earth = -r

    r_norm = jnp.linalg.norm(r)
    s_norm = jnp.linalg.norm(to_sun)
    cos_sep = jnp.dot(to_sun, to_earth) / (s_norm * r_norm)
    separation = jnp.arccos(jnp.clip(cos_sep, -1.0, 1.0))
    return separation, jnp.arcsin(R_EARTH / r_norm), jnp.arcsin(R_SUN / s_norm)
