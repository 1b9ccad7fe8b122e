"""Configuration dataclasses for composable orbit dynamics.

Provides :class:`SpacecraftParams` for physical spacecraft properties and
:class:`ForceModelConfig` for selecting which forces to include.
Configuration is static: Python ``if`` branches on the toggles are
resolved at JAX trace time.  Quantities that can be estimated (``mu``,
``cd``, ``cr``) are not read from here inside the dynamics; they enter as
the parameter vector, with the configured values as defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from orbitax.constants import GM_EARTH, J2_EARTH, R_EARTH
from orbitax.errors import ConfigurationError
from orbitax.orbit_dynamics.density import DensityGrid


@dataclass(frozen=True)
class SpacecraftParams:
    """Physical properties of the spacecraft.

    All values are SI.  Defaults represent a generic small satellite.

    Args:
        mass: Spacecraft mass [kg].
        drag_area: Wind-facing cross-sectional area [m^2].
        srp_area: Sun-facing cross-sectional area [m^2].
        cd: Coefficient of drag [dimensionless].
        cr: Coefficient of reflectivity [dimensionless].
    """

    mass: float = 1000.0
    drag_area: float = 10.0
    srp_area: float = 10.0
    cd: float = 2.2
    cr: float = 1.3

    def __post_init__(self) -> None:
        if self.mass <= 0.0:
            raise ConfigurationError(f"mass must be positive, got {self.mass}")
        if self.drag_area < 0.0 or self.srp_area < 0.0:
            raise ConfigurationError("areas must be non-negative")


@dataclass(frozen=True)
class ForceModelConfig:
    """Selection of the forces composed by
    :func:`~orbitax.orbit_dynamics.factory.create_orbit_dynamics`.

    Args:
        mu: Central-body gravitational parameter [m^3/s^2].
        j2: Include the J2 zonal harmonic.
        j2_coefficient: Unnormalized J2 value.
        body_radius: Reference radius for J2 [m].
        drag: Enable atmospheric drag.
        density_model: ``"exponential"`` or ``"gridded"``.
        density_grid: Density table, required when *density_model* is
            ``"gridded"``.
        rho0: Exponential model density at *h0* [kg/m^3].
        h0: Exponential model reference altitude [m].
        scale_height: Exponential model scale height [m].
        srp: Enable solar radiation pressure.
        eclipse_model: ``"conical"``, ``"cylindrical"`` or ``"none"``.
        spacecraft: Spacecraft physical properties.

    Raises:
        ConfigurationError: On unknown model names, a non-positive *mu*,
            or a missing density grid.

    Examples:
        ```python
        from orbitax.orbit_dynamics import ForceModelConfig
        config = ForceModelConfig(j2=True, drag=True)
        ```
    """

    mu: float = GM_EARTH

    j2: bool = False
    j2_coefficient: float = J2_EARTH
    body_radius: float = R_EARTH

    drag: bool = False
    density_model: str = "exponential"
    density_grid: DensityGrid | None = None
    rho0: float = 3.614e-13
    h0: float = 500e3
    scale_height: float = 63.822e3

    srp: bool = False
    eclipse_model: str = "conical"

    spacecraft: SpacecraftParams = field(default_factory=SpacecraftParams)

    def __post_init__(self) -> None:
        if not self.mu or self.mu <= 0.0:
            raise ConfigurationError(f"mu must be positive, got {self.mu}")
        if self.density_model not in ("exponential", "gridded"):
            raise ConfigurationError(
                f"density_model must be 'exponential' or 'gridded', "
                f"got '{self.density_model}'"
            )
        if self.drag and self.density_model == "gridded" and self.density_grid is None:
            raise ConfigurationError(
                "density_grid must be provided when density_model is 'gridded'"
            )
        if self.eclipse_model not in ("conical", "cylindrical", "none"):
            raise ConfigurationError(
                f"eclipse_model must be 'conical', 'cylindrical', or 'none', "
                f"got '{self.eclipse_model}'"
            )

    @staticmethod
    def two_body(mu: float = GM_EARTH) -> ForceModelConfig:
        """Preset: point-mass gravity only."""
        return ForceModelConfig(mu=mu)

    @staticmethod
    def leo_default() -> ForceModelConfig:
        """Preset: J2, exponential drag and SRP with a conical shadow."""
        return ForceModelConfig(j2=True, drag=True, srp=True)
