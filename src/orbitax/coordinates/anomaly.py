"""Anomaly conversions in eccentricity-vector form.

The position angle of every orbit type can be written as
``alpha = reference_angle + anomaly`` with an eccentricity vector
``(ex, ey)`` measured from the same reference direction.  Writing the
conversions in that form covers Keplerian anomalies (``ex = e``,
``ey = 0``), circular arguments of latitude and equinoctial longitude
arguments with a single set of functions, and stays well defined for
circular orbits.

All functions are pure JAX and differentiable with ``jax.jacfwd``; the
Kepler-equation solver uses a fixed number of Newton iterations through
``jax.lax.fori_loop``.

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012, Sec. 2.2.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitax.config import get_dtype

_NEWTON_ITERATIONS = 12


def true_to_eccentric(alpha_v: ArrayLike, ex: ArrayLike, ey: ArrayLike) -> Array:
    """Convert a true angle to the corresponding eccentric angle.

    Args:
        alpha_v: True angle (anomaly, argument of latitude or longitude) [rad].
        ex: First eccentricity vector component.
        ey: Second eccentricity vector component.

    Returns:
        Eccentric angle [rad], on the same revolution as *alpha_v*.
    """
    epsilon = jnp.sqrt(1.0 - ex * ex - ey * ey)
    c = jnp.cos(alpha_v)
    s = jnp.sin(alpha_v)
    return alpha_v + 2.0 * jnp.arctan((ey * c - ex * s) / (epsilon + 1.0 + ex * c + ey * s))


def eccentric_to_true(alpha_e: ArrayLike, ex: ArrayLike, ey: ArrayLike) -> Array:
    """Convert an eccentric angle to the corresponding true angle.

    Args:
        alpha_e: Eccentric angle [rad].
        ex: First eccentricity vector component.
        ey: Second eccentricity vector component.

    Returns:
        True angle [rad].
    """
    epsilon = jnp.sqrt(1.0 - ex * ex - ey * ey)
    c = jnp.cos(alpha_e)
    s = jnp.sin(alpha_e)
    return alpha_e + 2.0 * jnp.arctan((ex * s - ey * c) / (epsilon + 1.0 - ex * c - ey * s))


def eccentric_to_mean(alpha_e: ArrayLike, ex: ArrayLike, ey: ArrayLike) -> Array:
    """Apply Kepler's equation in eccentricity-vector form.

    ``alpha_M = alpha_E - ex * sin(alpha_E) + ey * cos(alpha_E)``
    """
    return alpha_e - ex * jnp.sin(alpha_e) + ey * jnp.cos(alpha_e)


def mean_to_eccentric(alpha_m: ArrayLike, ex: ArrayLike, ey: ArrayLike) -> Array:
    """Solve Kepler's equation in eccentricity-vector form.

    The initial guess is computed from the perigee direction without
    gradient tracking (it is undefined for circular orbits); the Newton
    iterations themselves carry the exact tangent.

    Args:
        alpha_m: Mean angle [rad].
        ex: First eccentricity vector component.
        ey: Second eccentricity vector component.

    Returns:
        Eccentric angle [rad].
    """
    alpha_m = jnp.asarray(alpha_m, dtype=get_dtype())

    e = jnp.sqrt(ex * ex + ey * ey)
    omega = jnp.arctan2(ey, ex)
    m_raw = alpha_m - omega
    m_wrapped = jnp.mod(m_raw, 2.0 * jnp.pi)
    e0 = jnp.where(e < 0.8, m_wrapped, jnp.pi)
    guess = jax.lax.stop_gradient(omega + (m_raw - m_wrapped) + e0)

    def newton_step(_, alpha_e):
        c = jnp.cos(alpha_e)
        s = jnp.sin(alpha_e)
        f = alpha_e - ex * s + ey * c - alpha_m
        return alpha_e - f / (1.0 - ex * c - ey * s)

    return jax.lax.fori_loop(0, _NEWTON_ITERATIONS, newton_step, guess)


def true_to_mean(alpha_v: ArrayLike, ex: ArrayLike, ey: ArrayLike) -> Array:
    """Composite conversion: true -> eccentric -> mean."""
    return eccentric_to_mean(true_to_eccentric(alpha_v, ex, ey), ex, ey)


def mean_to_true(alpha_m: ArrayLike, ex: ArrayLike, ey: ArrayLike) -> Array:
    """Composite conversion: mean -> eccentric -> true."""
    return eccentric_to_true(mean_to_eccentric(alpha_m, ex, ey), ex, ey)


# Classical anomalies: eccentricity vector along the perigee direction.


def anomaly_true_to_mean(nu: ArrayLike, e: ArrayLike) -> Array:
    """Convert true anomaly to mean anomaly.

    Examples:
        ```python
        from orbitax.coordinates import anomaly_true_to_mean
        M = anomaly_true_to_mean(1.0, 0.1)
        ```
    """
    return true_to_mean(nu, e, 0.0)


def anomaly_mean_to_true(M: ArrayLike, e: ArrayLike) -> Array:
    """Convert mean anomaly to true anomaly."""
    return mean_to_true(M, e, 0.0)


def anomaly_mean_to_eccentric(M: ArrayLike, e: ArrayLike) -> Array:
    """Convert mean anomaly to eccentric anomaly."""
    return mean_to_eccentric(M, e, 0.0)


def anomaly_eccentric_to_true(E: ArrayLike, e: ArrayLike) -> Array:
    """Convert eccentric anomaly to true anomaly."""
    return eccentric_to_true(E, e, 0.0)
