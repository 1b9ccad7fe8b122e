"""Event detector factories.

Each factory builds an :class:`~orbitax.events.EventDetector` for one
phenomenon.  The sign convention of every g-function is documented on
the factory so handlers can tell entry from exit:

=====================  =====================================  ==========================
Factory                g                                      increasing crossing
=====================  =====================================  ==========================
``date_detector``      ``t - t_target``                       target date reached
``apside_detector``    ``r . v``                              periapsis
``node_detector``      ``z``                                  ascending node
``altitude_detector``  ``h - h_threshold``                    climbing through altitude
``eclipse_detector``   Sun/Earth angular separation margin    shadow exit
``elevation_detector`` ``elevation - min_elevation``          rising above the mask
=====================  =====================================  ==========================
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

import jax.numpy as jnp

from orbitax.coordinates import position_ecef_to_geodetic
from orbitax.epoch import Epoch
from orbitax.errors import ConfigurationError
from orbitax.events._types import EventHandler
from orbitax.events.detector import (
    DEFAULT_MAX_CHECK,
    DEFAULT_MAX_ITER,
    DEFAULT_THRESHOLD,
    EventDetector,
    SwitchingFunction,
)
from orbitax.events.handlers import StopOnEvent
from orbitax.frames import rotation_eci_to_ecef
from orbitax.orbit_dynamics import shadow_angles, sun_position

if TYPE_CHECKING:
    from jax import Array

    from orbitax.propagation.state import SpacecraftState


class _Station(Protocol):
    def elevation(self, epoch: Epoch, position: Array) -> Array: ...


def _build(g, handler, max_check, threshold, max_iter, name) -> EventDetector:
    return EventDetector(
        g=g,
        handler=StopOnEvent() if handler is None else handler,
        max_check=max_check,
        threshold=threshold,
        max_iter=max_iter,
        name=name,
    )


def function_detector(
    g: SwitchingFunction,
    handler: EventHandler | None = None,
    max_check: float = DEFAULT_MAX_CHECK,
    threshold: float = DEFAULT_THRESHOLD,
    max_iter: int = DEFAULT_MAX_ITER,
    name: str = "function",
) -> EventDetector:
    """Detector for an arbitrary switching function of the state.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbitax.events import ContinueOnEvent, function_detector
        radius = function_detector(lambda s: float(jnp.linalg.norm(s.position)) - 7000e3,
                                   handler=ContinueOnEvent())
        ```
    """
    return _build(g, handler, max_check, threshold, max_iter, name)


def date_detector(
    target: Epoch,
    handler: EventHandler | None = None,
    max_check: float = DEFAULT_MAX_CHECK,
    threshold: float = DEFAULT_THRESHOLD,
    max_iter: int = DEFAULT_MAX_ITER,
    name: str = "date",
) -> EventDetector:
    """Fires when the propagation reaches *target*."""
    def g(state: SpacecraftState) -> float:
        return float(state.epoch - target)

    return _build(g, handler, max_check, threshold, max_iter, name)


def apside_detector(
    period: float | None = None,
    handler: EventHandler | None = None,
    max_check: float | None = None,
    threshold: float = DEFAULT_THRESHOLD,
    max_iter: int = DEFAULT_MAX_ITER,
    name: str = "apside",
) -> EventDetector:
    """Periapsis (increasing) and apoapsis (decreasing) passages.

    Args:
        period: Orbital period [s].  When given and *max_check* is not,
            g is sampled three times per orbit.
    """
    if max_check is None:
        max_check = period / 3.0 if period is not None else DEFAULT_MAX_CHECK

    def g(state: SpacecraftState) -> float:
        x = state.cartesian
        return float(jnp.dot(x[:3], x[3:6]))

    return _build(g, handler, max_check, threshold, max_iter, name)


def node_detector(
    handler: EventHandler | None = None,
    max_check: float = DEFAULT_MAX_CHECK,
    threshold: float = DEFAULT_THRESHOLD,
    max_iter: int = DEFAULT_MAX_ITER,
    name: str = "node",
) -> EventDetector:
    """Equator crossings: ascending node increasing, descending decreasing."""
    def g(state: SpacecraftState) -> float:
        return float(state.cartesian[2])

    return _build(g, handler, max_check, threshold, max_iter, name)


def altitude_detector(
    altitude: float,
    handler: EventHandler | None = None,
    max_check: float = DEFAULT_MAX_CHECK,
    threshold: float = DEFAULT_THRESHOLD,
    max_iter: int = DEFAULT_MAX_ITER,
    name: str = "altitude",
) -> EventDetector:
    """Geodetic altitude crossing *altitude* [m] above the WGS84 ellipsoid."""
    def g(state: SpacecraftState) -> float:
        r_ecef = rotation_eci_to_ecef(state.epoch) @ state.position
        return float(position_ecef_to_geodetic(r_ecef)[2] - altitude)

    return _build(g, handler, max_check, threshold, max_iter, name)


def eclipse_detector(
    umbra: bool = True,
    handler: EventHandler | None = None,
    max_check: float = 60.0,
    threshold: float = 1e-3,
    max_iter: int = DEFAULT_MAX_ITER,
    name: str | None = None,
) -> EventDetector:
    """Earth shadow entry (decreasing) and exit (increasing).

    g compares the apparent Sun/Earth centre separation with the apparent
    radii: ``sep - r_earth + r_sun`` for the umbra (total shadow) and
    ``sep - r_earth - r_sun`` for the penumbra (any shadow).  It is
    negative inside the shadow.
    """
    def g(state: SpacecraftState) -> float:
        separation, occulting, occulted = shadow_angles(state.position, sun_position(state.epoch))
        if umbra:
            return float(separation - occulting + occulted)
        return float(separation - occulting - occulted)

    if name is None:
        name = "umbra" if umbra else "penumbra"
    return _build(g, handler, max_check, threshold, max_iter, name)


def elevation_detector(
    station: _Station,
    min_elevation: float = 0.0,
    handler: EventHandler | None = None,
    max_check: float = 60.0,
    threshold: float = 1e-3,
    max_iter: int = DEFAULT_MAX_ITER,
    name: str | None = None,
) -> EventDetector:
    """Visibility from a ground station above *min_elevation* [rad].

    Args:
        station: Any object with ``elevation(epoch, position)``, such as
            :class:`~orbitax.orbit_measurements.GroundStation`.
    """
    if not callable(getattr(station, "elevation", None)):
        raise ConfigurationError("station must provide elevation(epoch, position)")

    def g(state: SpacecraftState) -> float:
        return float(station.elevation(state.epoch, state.position) - min_elevation)

    if name is None:
        name = f"elevation[{getattr(station, 'name', 'station')}]"
    return _build(g, handler, max_check, threshold, max_iter, name)
