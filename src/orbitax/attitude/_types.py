"""Attitude value type and the provider contract consulted by the state mapper."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple, Protocol

from jax import Array

if TYPE_CHECKING:
    from orbitax.epoch import Epoch
    from orbitax.frames import Frame


class Attitude(NamedTuple):
    """Orientation of the spacecraft body frame.

    Attributes:
        rotation: 3x3 matrix rotating reference-frame vectors into the
            body frame.
        quaternion: The same rotation as a scalar-first unit quaternion
            ``[w, x, y, z]``.
        spin: Angular velocity of the body frame with respect to the
            reference frame, expressed in the body frame [rad/s].
    """

    rotation: Array
    quaternion: Array
    spin: Array


class AttitudeProvider(Protocol):
    """Callable computing the attitude from epoch, inertial state and frame."""

    def __call__(self, epoch: Epoch, cartesian: Array, frame: Frame) -> Attitude: ...
