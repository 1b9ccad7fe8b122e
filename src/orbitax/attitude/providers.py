"""Attitude laws.

- :class:`InertialAttitude`: fixed orientation with respect to the
  reference frame.
- :class:`LVLHAttitude`: local vertical / local horizontal frame with X
  along the position vector and Z along the orbital angular momentum.
- :class:`NadirPointing`: body Z toward the Earth centre, Y opposite the
  orbital angular momentum, X completing the triad (roughly along the
  velocity for near-circular orbits).

The orbital frames use the two-body angular rate ``|h| / r^2``.
"""

from __future__ import annotations

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitax.attitude._types import Attitude
from orbitax.config import get_dtype


def quaternion_to_rotation(q: ArrayLike) -> Array:
    """Rotation matrix of a scalar-first unit quaternion ``[w, x, y, z]``."""
    q = jnp.asarray(q, dtype=get_dtype())
    q = q / jnp.linalg.norm(q)
    w, x, y, z = q
    return jnp.array([
        [w * w + x * x - y * y - z * z, 2.0 * (x * y + w * z), 2.0 * (x * z - w * y)],
        [2.0 * (x * y - w * z), w * w - x * x + y * y - z * z, 2.0 * (y * z + w * x)],
        [2.0 * (x * z + w * y), 2.0 * (y * z - w * x), w * w - x * x - y * y + z * z],
    ])


def rotation_to_quaternion(R: ArrayLike) -> Array:
    """Scalar-first quaternion of a rotation matrix (Shepperd's method).

    The branch with the largest candidate diagonal term is selected with
    ``jax.lax.switch`` for numerical stability; the returned quaternion
    has a non-negative scalar part.

    References:
        1. J. Diebel, *Representing Attitude: Euler Angles, Unit
           Quaternions, and Rotation Vectors*, 2006, Eq. 131-134.
    """
    R = jnp.asarray(R, dtype=get_dtype())
    candidates = jnp.array([
        1.0 + R[0, 0] + R[1, 1] + R[2, 2],
        1.0 + R[0, 0] - R[1, 1] - R[2, 2],
        1.0 - R[0, 0] + R[1, 1] - R[2, 2],
        1.0 - R[0, 0] - R[1, 1] + R[2, 2],
    ])
    k = jnp.argmax(candidates)
    sq = jnp.sqrt(candidates[k])

    d12 = R[1, 2] - R[2, 1]
    d20 = R[2, 0] - R[0, 2]
    d01 = R[0, 1] - R[1, 0]
    s12 = R[1, 2] + R[2, 1]
    s20 = R[2, 0] + R[0, 2]
    s01 = R[0, 1] + R[1, 0]

    branches = [
        lambda: jnp.array([sq, d12 / sq, d20 / sq, d01 / sq]),
        lambda: jnp.array([d12 / sq, sq, s01 / sq, s20 / sq]),
        lambda: jnp.array([d20 / sq, s01 / sq, sq, s12 / sq]),
        lambda: jnp.array([d01 / sq, s20 / sq, s12 / sq, sq]),
    ]
    q = 0.5 * jax.lax.switch(k, branches)
    return jnp.where(q[0] < 0.0, -q, q)


def _orbital_frame(cartesian):
    x = jnp.asarray(cartesian, dtype=get_dtype())
    r, v = x[:3], x[3:6]
    h = jnp.cross(r, v)
    r_hat = r / jnp.linalg.norm(r)
    h_hat = h / jnp.linalg.norm(h)
    rate = jnp.linalg.norm(h) / jnp.dot(r, r)
    return r_hat, h_hat, rate


class InertialAttitude:
    """Body frame fixed with respect to the reference frame.

    Args:
        quaternion: Scalar-first quaternion of the reference-to-body
            rotation.  Defaults to the identity.
    """

    def __init__(self, quaternion: ArrayLike = (1.0, 0.0, 0.0, 0.0)) -> None:
        self._q = jnp.asarray(quaternion, dtype=get_dtype())
        self._q = self._q / jnp.linalg.norm(self._q)
        self._R = quaternion_to_rotation(self._q)

    def __call__(self, epoch, cartesian, frame) -> Attitude:
        return Attitude(self._R, self._q, jnp.zeros(3, dtype=get_dtype()))


class LVLHAttitude:
    """Local vertical / local horizontal orbital frame."""

    def __call__(self, epoch, cartesian, frame) -> Attitude:
        r_hat, h_hat, rate = _orbital_frame(cartesian)
        R = jnp.stack([r_hat, jnp.cross(h_hat, r_hat), h_hat])
        spin = jnp.array([0.0, 0.0, 1.0]) * rate
        return Attitude(R, rotation_to_quaternion(R), spin)


class NadirPointing:
    """Body Z axis toward the central body's centre."""

    def __call__(self, epoch, cartesian, frame) -> Attitude:
        r_hat, h_hat, rate = _orbital_frame(cartesian)
        z = -r_hat
        y = -h_hat
        R = jnp.stack([jnp.cross(y, z), y, z])
        spin = jnp.array([0.0, -1.0, 0.0]) * rate
        return Attitude(R, rotation_to_quaternion(R), spin)
