"""Low-precision analytical Sun ephemeris.

Accurate to ~0.1 deg, which is sufficient for SRP, shadow and eclipse
event modelling.  UTC is used in place of TT.

References:
    1. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, 2012, Sec. 3.3.2.
"""

from __future__ import annotations

import jax.numpy as jnp
from jax import Array

from orbitax.constants import DEG2RAD
from orbitax.epoch import Epoch
from orbitax.frames import Rx

# Obliquity of the J2000 ecliptic [rad]
_EPSILON = 23.43929111 * DEG2RAD


def _frac(x):
    return x - jnp.floor(x)


def sun_position(epc: Epoch) -> Array:
    """Position of the Sun in the EME2000 frame [m].

    Traceable under ``jax.jit`` (the epoch is a pytree).

    Examples:
        ```python
        from orbitax import Epoch
        from orbitax.orbit_dynamics import sun_position
        r_sun = sun_position(Epoch(2024, 2, 25))  # |r_sun| ~ 1 AU
        ```
    """
    pi2 = 2.0 * jnp.pi
    T = epc.julian_centuries()

    M = pi2 * _frac(0.9931267 + 99.9973583 * T)
    L = pi2 * _frac(0.7859444 + M / pi2
                    + (6892.0 * jnp.sin(M) + 72.0 * jnp.sin(2.0 * M)) / 1296.0e3)
    r = 149.619e9 - 2.499e9 * jnp.cos(M) - 0.021e9 * jnp.cos(2.0 * M)

    r_ecliptic = jnp.array([r * jnp.cos(L), r * jnp.sin(L), jnp.zeros_like(r)])
    return Rx(-_EPSILON) @ r_ecliptic
