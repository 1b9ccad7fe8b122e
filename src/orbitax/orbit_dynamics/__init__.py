"""Force models for orbit propagation.

Building blocks (point-mass and J2 gravity, atmospheric drag with
exponential or gridded density, solar radiation pressure with Earth
shadow, a low-precision Sun ephemeris) and the factory that composes them
into a ``dynamics(t, x, params)`` closure.
"""

from orbitax.orbit_dynamics.config import ForceModelConfig, SpacecraftParams
from orbitax.orbit_dynamics.density import DensityGrid, density_exponential, density_gridded
from orbitax.orbit_dynamics.drag import accel_drag, relative_wind
from orbitax.orbit_dynamics.ephemerides import sun_position
from orbitax.orbit_dynamics.factory import DynamicsModel, create_orbit_dynamics
from orbitax.orbit_dynamics.gravity import accel_j2, accel_point_mass
from orbitax.orbit_dynamics.srp import (
    accel_srp,
    eclipse_conical,
    eclipse_cylindrical,
    shadow_angles,
)

__all__ = [
    "ForceModelConfig",
    "SpacecraftParams",
    "DensityGrid",
    "density_exponential",
    "density_gridded",
    "accel_drag",
    "relative_wind",
    "sun_position",
    "DynamicsModel",
    "create_orbit_dynamics",
    "accel_point_mass",
    "accel_j2",
    "accel_srp",
    "eclipse_conical",
    "eclipse_cylindrical",
    "shadow_angles",
]
