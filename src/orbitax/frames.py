"""Reference frames.

States carry a :class:`Frame` tag so the state mapper can refuse to encode
a state expressed in a frame other than its own.  The only transformation
provided is the Earth-rotation model ECI <-> ECEF, a single
:math:`R_z(\\theta_{\\text{GMST}})` rotation, which is what ground stations
and the drag model need.  Precession, nutation and polar motion are not
modelled.

References:
    1. D. Vallado, *Fundamentals of Astrodynamics and Applications*,
       4th ed., Microcosm Press, 2013, Sec. 3.7.
    2. O. Montenbruck and E. Gill, *Satellite Orbits: Models, Methods
       and Applications*, Springer, 2012, Sec. 5.2.
"""

from __future__ import annotations

import enum

import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitax.config import get_dtype
from orbitax.constants import OMEGA_EARTH
from orbitax.epoch import Epoch


class Frame(enum.StrEnum):
    """Frame tags understood by the propagation layer."""

    EME2000 = "EME2000"
    GCRF = "GCRF"
    ITRF = "ITRF"

    @property
    def is_inertial(self) -> bool:
        return self is not Frame.ITRF


def Rx(angle: ArrayLike) -> Array:
    """Rotation matrix for a frame rotation about the x-axis.

    References:

        1. O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and Applications*, 2012, p.27.
    """
    c = jnp.cos(angle)
    s = jnp.sin(angle)
    return jnp.array([[1.0, 0.0, 0.0],
                      [0.0, +c, +s],
                      [0.0, -s, +c]])


def Rz(angle: ArrayLike) -> Array:
    """Rotation matrix for a frame rotation about the z-axis."""
    c = jnp.cos(angle)
    s = jnp.sin(angle)
    return jnp.array([[+c, +s, 0.0],
                      [-s, +c, 0.0],
                      [0.0, 0.0, 1.0]])


def rotation_eci_to_ecef(epc: Epoch) -> Array:
    """Compute the 3x3 rotation matrix from the ECI frame to the ECEF frame.

    Args:
        epc: Epoch at which to evaluate the rotation.

    Returns:
        jax.Array: 3x3 rotation matrix (ECI -> ECEF).

    Example:
        >>> from orbitax import Epoch
        >>> from orbitax.frames import rotation_eci_to_ecef
        >>> rotation_eci_to_ecef(Epoch(2024, 1, 1)).shape
        (3, 3)
    """
    return Rz(epc.gmst())


def rotation_ecef_to_eci(epc: Epoch) -> Array:
    """Transpose of :func:`rotation_eci_to_ecef`."""
    return rotation_eci_to_ecef(epc).T


def state_eci_to_ecef(epc: Epoch, x_eci: ArrayLike) -> Array:
    """Transform an inertial state ``[r, v]`` to the Earth-fixed frame.

    The velocity includes the transport term :math:`-\\omega \\times r`.
    """
    x_eci = jnp.asarray(x_eci, dtype=get_dtype())
    R = rotation_eci_to_ecef(epc)
    omega = jnp.array([0.0, 0.0, OMEGA_EARTH])
    r = R @ x_eci[:3]
    v = R @ x_eci[3:6] - jnp.cross(omega, r)
    return jnp.concatenate([r, v])


def state_ecef_to_eci(epc: Epoch, x_ecef: ArrayLike) -> Array:
    """Transform an Earth-fixed state ``[r, v]`` to the inertial frame."""
    x_ecef = jnp.asarray(x_ecef, dtype=get_dtype())
    Rt = rotation_ecef_to_eci(epc)
    omega = jnp.array([0.0, 0.0, OMEGA_EARTH])
    r = x_ecef[:3]
    v = x_ecef[3:6] + jnp.cross(omega, r)
    return jnp.concatenate([Rt @ r, Rt @ v])
