"""Attitude providers consulted when decoding spacecraft states."""

from orbitax.attitude._types import Attitude, AttitudeProvider
from orbitax.attitude.providers import (
    InertialAttitude,
    LVLHAttitude,
    NadirPointing,
    quaternion_to_rotation,
    rotation_to_quaternion,
)

__all__ = [
    "Attitude",
    "AttitudeProvider",
    "InertialAttitude",
    "LVLHAttitude",
    "NadirPointing",
    "quaternion_to_rotation",
    "rotation_to_quaternion",
]
