"""Cartesian <-> orbital element conversions for every :class:`OrbitType`.

The three non-Cartesian parameter sets share one in-plane representation:
semi-major axis, an eccentricity vector ``(ex, ey)`` and a position angle,
all measured in an orbital-plane basis ``(p, q)``.  They differ only by
the choice of that basis:

- KEPLERIAN: the perigee direction (``ex = e``, ``ey = 0`` in the perigee
  basis; exposed to the user as ``e, omega`` and the anomaly),
- CIRCULAR: the ascending node direction,
- EQUINOCTIAL: the equinoctial frame built from ``hx, hy``.

Position and velocity are then obtained from the eccentric angle with the
non-singular form of the two-body solution (Montenbruck & Gill Eq. 2.43
rewritten in eccentricity-vector components).

All functions are pure JAX and differentiable, which is what the
propagator relies on to build element-rate equations and state
transition matrices with ``jax.jacfwd``.  The orbit type and position
angle arguments are static Python values.

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, Springer, 2012, Sec. 2.2.
    2. D. Vallado, *Fundamentals of Astrodynamics and Applications
       (4th Ed.)*, 2010.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitax.config import get_dtype
from orbitax.coordinates._types import OrbitType, PositionAngle
from orbitax.coordinates.anomaly import (
    eccentric_to_mean,
    eccentric_to_true,
    mean_to_eccentric,
    true_to_eccentric,
)

_TWO_PI = 2.0 * jnp.pi


def wrap_to_2pi(angle: ArrayLike) -> Array:
    """Wrap an angle to ``[0, 2pi)``."""
    return jnp.mod(angle, _TWO_PI)


def _to_eccentric(alpha, ex, ey, angle_type: PositionAngle):
    match angle_type:
        case PositionAngle.TRUE:
            return true_to_eccentric(alpha, ex, ey)
        case PositionAngle.MEAN:
            return mean_to_eccentric(alpha, ex, ey)
        case PositionAngle.ECCENTRIC:
            return alpha
    raise ValueError(f"Unknown position angle: {angle_type}")


def _from_true(alpha_v, ex, ey, angle_type: PositionAngle):
    match angle_type:
        case PositionAngle.TRUE:
            return alpha_v
        case PositionAngle.MEAN:
            return eccentric_to_mean(true_to_eccentric(alpha_v, ex, ey), ex, ey)
        case PositionAngle.ECCENTRIC:
            return true_to_eccentric(alpha_v, ex, ey)
    raise ValueError(f"Unknown position angle: {angle_type}")


def convert_position_angle(
    alpha: ArrayLike,
    ex: ArrayLike,
    ey: ArrayLike,
    from_type: PositionAngle,
    to_type: PositionAngle,
) -> Array:
    """Convert a position angle between the TRUE / MEAN / ECCENTRIC conventions.

    Args:
        alpha: Angle in the *from_type* convention [rad].
        ex: First eccentricity vector component in the angle's reference basis.
        ey: Second eccentricity vector component.
        from_type: Convention of *alpha*.
        to_type: Requested convention.

    Returns:
        The angle in the *to_type* convention [rad].
    """
    if from_type == to_type:
        return jnp.asarray(alpha, dtype=get_dtype())
    alpha_e = _to_eccentric(alpha, ex, ey, from_type)
    return _from_true(eccentric_to_true(alpha_e, ex, ey), ex, ey, to_type)


# Orbital-plane bases


def _node_basis(inc, raan):
    cr, sr = jnp.cos(raan), jnp.sin(raan)
    ci, si = jnp.cos(inc), jnp.sin(inc)
    p = jnp.array([cr, sr, jnp.zeros_like(cr)])
    q = jnp.array([-ci * sr, ci * cr, si])
    return p, q


def _equinoctial_basis(hx, hy):
    hx2 = hx * hx
    hy2 = hy * hy
    fact = 1.0 / (1.0 + hx2 + hy2)
    hxhy2 = 2.0 * hx * hy
    p = jnp.array([(1.0 + hx2 - hy2) * fact, hxhy2 * fact, -2.0 * hy * fact])
    q = jnp.array([hxhy2 * fact, (1.0 - hx2 + hy2) * fact, 2.0 * hx * fact])
    return p, q


def _in_plane_to_cartesian(a, ex, ey, alpha_e, p, q, mu):
    """Two-body position/velocity from eccentricity-vector elements."""
    beta = 1.0 / (1.0 + jnp.sqrt(1.0 - ex * ex - ey * ey))
    c = jnp.cos(alpha_e)
    s = jnp.sin(alpha_e)
    exey = ex * ey
    ex_c_ey_s = ex * c + ey * s

    x = a * ((1.0 - beta * ey * ey) * c + beta * exey * s - ex)
    y = a * ((1.0 - beta * ex * ex) * s + beta * exey * c - ey)

    factor = jnp.sqrt(mu / a) / (1.0 - ex_c_ey_s)
    xdot = factor * (-s + beta * ey * ex_c_ey_s)
    ydot = factor * (c - beta * ex * ex_c_ey_s)

    return jnp.concatenate([x * p + y * q, xdot * p + ydot * q])


def _angular_momentum(r, v):
    h = jnp.cross(r, v)
    return h / jnp.linalg.norm(h)


def _in_plane_from_cartesian(r, v, p, q, mu):
    """Semi-major axis, eccentricity vector components and true angle in basis ``(p, q)``."""
    r_norm = jnp.linalg.norm(r)
    v2 = jnp.dot(v, v)
    a = 1.0 / (2.0 / r_norm - v2 / mu)
    e_vec = ((v2 - mu / r_norm) * r - jnp.dot(r, v) * v) / mu
    ex = jnp.dot(e_vec, p)
    ey = jnp.dot(e_vec, q)
    alpha_v = jnp.arctan2(jnp.dot(r, q), jnp.dot(r, p))
    return a, ex, ey, alpha_v


# Public conversions


def keplerian_to_cartesian(
    oe: ArrayLike,
    mu: ArrayLike,
    angle_type: PositionAngle = PositionAngle.TRUE,
) -> Array:
    """Convert Keplerian elements ``[a, e, i, RAAN, omega, anomaly]`` to a Cartesian state.

    Args:
        oe: Keplerian elements. Semi-major axis in *m*, angles in *rad*.
        mu: Gravitational parameter of the central body [m^3/s^2].
        angle_type: Anomaly stored in ``oe[5]``.

    Returns:
        Cartesian state ``[x, y, z, vx, vy, vz]`` in *m* and *m/s*.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbitax.constants import GM_EARTH, R_EARTH
        from orbitax.coordinates import keplerian_to_cartesian
        oe = jnp.array([R_EARTH + 500e3, 0.01, 0.9, 0.0, 0.0, 0.0])
        x = keplerian_to_cartesian(oe, GM_EARTH)
        ```
    """
    oe = jnp.asarray(oe, dtype=get_dtype())
    a, e, inc, raan, omega, anomaly = oe
    ex = e * jnp.cos(omega)
    ey = e * jnp.sin(omega)
    circ = jnp.array([a, ex, ey, inc, raan, omega + anomaly])
    return circular_to_cartesian(circ, mu, angle_type)


def cartesian_to_keplerian(
    x: ArrayLike,
    mu: ArrayLike,
    angle_type: PositionAngle = PositionAngle.TRUE,
) -> Array:
    """Convert a Cartesian state to Keplerian elements ``[a, e, i, RAAN, omega, anomaly]``.

    The argument of perigee is undefined for circular orbits and its
    derivative is not finite there; prefer CIRCULAR or EQUINOCTIAL
    elements for near-circular orbits.

    Args:
        x: Cartesian state ``[x, y, z, vx, vy, vz]`` in *m* and *m/s*.
        mu: Gravitational parameter of the central body [m^3/s^2].
        angle_type: Anomaly convention of the returned ``oe[5]``.

    Returns:
        Keplerian elements with RAAN, omega and the anomaly in ``[0, 2pi)``.
    """
    a, ex, ey, inc, raan, alpha = cartesian_to_circular(x, mu, angle_type)
    e = jnp.sqrt(ex * ex + ey * ey)
    omega = jnp.arctan2(ey, ex)
    return jnp.array([a, e, inc, raan, wrap_to_2pi(omega), wrap_to_2pi(alpha - omega)])


def circular_to_cartesian(
    oe: ArrayLike,
    mu: ArrayLike,
    angle_type: PositionAngle = PositionAngle.TRUE,
) -> Array:
    """Convert circular elements ``[a, ex, ey, i, RAAN, alpha]`` to a Cartesian state.

    Args:
        oe: Circular elements; ``alpha`` is the argument of latitude in the
            *angle_type* convention.
        mu: Gravitational parameter of the central body [m^3/s^2].
        angle_type: Convention of ``alpha``.

    Returns:
        Cartesian state ``[x, y, z, vx, vy, vz]``.
    """
    oe = jnp.asarray(oe, dtype=get_dtype())
    a, ex, ey, inc, raan, alpha = oe
    p, q = _node_basis(inc, raan)
    alpha_e = _to_eccentric(alpha, ex, ey, angle_type)
    return _in_plane_to_cartesian(a, ex, ey, alpha_e, p, q, mu)


def cartesian_to_circular(
    x: ArrayLike,
    mu: ArrayLike,
    angle_type: PositionAngle = PositionAngle.TRUE,
) -> Array:
    """Convert a Cartesian state to circular elements ``[a, ex, ey, i, RAAN, alpha]``."""
    x = jnp.asarray(x, dtype=get_dtype())
    r, v = x[:3], x[3:6]
    w = _angular_momentum(r, v)
    inc = jnp.arctan2(jnp.sqrt(w[0] * w[0] + w[1] * w[1]), w[2])
    raan = jnp.arctan2(w[0], -w[1])
    p, q = _node_basis(inc, raan)
    a, ex, ey, alpha_v = _in_plane_from_cartesian(r, v, p, q, mu)
    alpha = _from_true(alpha_v, ex, ey, angle_type)
    return jnp.array([a, ex, ey, inc, wrap_to_2pi(raan), wrap_to_2pi(alpha)])


def equinoctial_to_cartesian(
    oe: ArrayLike,
    mu: ArrayLike,
    angle_type: PositionAngle = PositionAngle.TRUE,
) -> Array:
    """Convert equinoctial elements ``[a, ex, ey, hx, hy, lambda]`` to a Cartesian state.

    Args:
        oe: Equinoctial elements; ``hx = tan(i/2) cos(RAAN)``,
            ``hy = tan(i/2) sin(RAAN)``, ``lambda`` is the longitude argument
            in the *angle_type* convention.
        mu: Gravitational parameter of the central body [m^3/s^2].
        angle_type: Convention of ``lambda``.

    Returns:
        Cartesian state ``[x, y, z, vx, vy, vz]``.

    References:
        1. R. A. Broucke and P. J. Cefola, *On the Equinoctial Orbit
           Elements*, Celestial Mechanics 5, 1972.
    """
    oe = jnp.asarray(oe, dtype=get_dtype())
    a, ex, ey, hx, hy, lam = oe
    p, q = _equinoctial_basis(hx, hy)
    lam_e = _to_eccentric(lam, ex, ey, angle_type)
    return _in_plane_to_cartesian(a, ex, ey, lam_e, p, q, mu)


def cartesian_to_equinoctial(
    x: ArrayLike,
    mu: ArrayLike,
    angle_type: PositionAngle = PositionAngle.TRUE,
) -> Array:
    """Convert a Cartesian state to equinoctial elements ``[a, ex, ey, hx, hy, lambda]``.

    Singular only for retrograde equatorial orbits (``i = pi``).
    """
    x = jnp.asarray(x, dtype=get_dtype())
    r, v = x[:3], x[3:6]
    w = _angular_momentum(r, v)
    d = 1.0 / (1.0 + w[2])
    hx = -d * w[1]
    hy = d * w[0]
    p, q = _equinoctial_basis(hx, hy)
    a, ex, ey, lam_v = _in_plane_from_cartesian(r, v, p, q, mu)
    lam = _from_true(lam_v, ex, ey, angle_type)
    return jnp.array([a, ex, ey, hx, hy, wrap_to_2pi(lam)])


# Generic dispatch


def elements_to_cartesian(
    elements: ArrayLike,
    orbit_type: OrbitType,
    angle_type: PositionAngle,
    mu: ArrayLike,
) -> Array:
    """Convert six elements of any :class:`OrbitType` to a Cartesian state.

    Args:
        elements: The six orbital parameters.
        orbit_type: Parameter set of *elements*.
        angle_type: Position-angle convention (ignored for CARTESIAN).
        mu: Gravitational parameter [m^3/s^2].

    Returns:
        Cartesian state ``[x, y, z, vx, vy, vz]``.
    """
    match orbit_type:
        case OrbitType.CARTESIAN:
            return jnp.asarray(elements, dtype=get_dtype())
        case OrbitType.KEPLERIAN:
            return keplerian_to_cartesian(elements, mu, angle_type)
        case OrbitType.CIRCULAR:
            return circular_to_cartesian(elements, mu, angle_type)
        case OrbitType.EQUINOCTIAL:
            return equinoctial_to_cartesian(elements, mu, angle_type)
    raise ValueError(f"Unknown orbit type: {orbit_type}")


def cartesian_to_elements(
    x: ArrayLike,
    orbit_type: OrbitType,
    angle_type: PositionAngle,
    mu: ArrayLike,
) -> Array:
    """Convert a Cartesian state to six elements of the requested :class:`OrbitType`."""
    match orbit_type:
        case OrbitType.CARTESIAN:
            return jnp.asarray(x, dtype=get_dtype())
        case OrbitType.KEPLERIAN:
            return cartesian_to_keplerian(x, mu, angle_type)
        case OrbitType.CIRCULAR:
            return cartesian_to_circular(x, mu, angle_type)
        case OrbitType.EQUINOCTIAL:
            return cartesian_to_equinoctial(x, mu, angle_type)
    raise ValueError(f"Unknown orbit type: {orbit_type}")
