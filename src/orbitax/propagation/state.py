"""Spacecraft state and the raw state-vector layout.

:class:`SpacecraftState` is the structured, immutable view of a
propagated state.  :class:`StateLayout` fixes the offsets of every block
inside the flat vector the integrator advances::

    [ elements (6) | mass (1) | additional states | Phi (36) | S (6 x n_params) ]

``Phi`` is the state transition matrix and ``S`` the Jacobian with respect
to the force-model parameters, both in the element space of the
propagation's orbit type and stored row-major.
"""

from __future__ import annotations

import types
from collections.abc import Mapping
from typing import NamedTuple

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitax.attitude import Attitude
from orbitax.config import get_dtype
from orbitax.coordinates import OrbitType, PositionAngle, cartesian_to_elements, elements_to_cartesian
from orbitax.epoch import Epoch
from orbitax.frames import Frame

to_cartesian = jax.jit(elements_to_cartesian, static_argnums=(1, 2))
"""Compiled :func:`~orbitax.coordinates.elements_to_cartesian`."""

from_cartesian = jax.jit(cartesian_to_elements, static_argnums=(1, 2))
"""Compiled :func:`~orbitax.coordinates.cartesian_to_elements`."""

cartesian_jacobian = jax.jit(jax.jacfwd(elements_to_cartesian), static_argnums=(1, 2))
"""Compiled Jacobian ``d cartesian / d elements``."""

_EMPTY = types.MappingProxyType({})


class SpacecraftState(NamedTuple):
    """Immutable state of a spacecraft at one epoch.

    Attributes:
        epoch: Instant of the state.
        elements: Six orbital parameters in *orbit_type* / *angle_type*.
        orbit_type: Parameterization of *elements*.
        angle_type: Position-angle convention of *elements*.
        frame: Inertial frame the orbit is expressed in.
        mu: Gravitational parameter used to interpret *elements* [m^3/s^2].
        mass: Spacecraft mass [kg].
        attitude: Attitude from the provider, if one is configured.
        additional: Values of the additional states, by name.
        stm: 6x6 state transition matrix from the start of the run, when
            sensitivities are propagated.
        param_jacobian: ``6 x n`` Jacobian with respect to the force-model
            parameters, when sensitivities are propagated.
    """

    epoch: Epoch
    elements: Array
    orbit_type: OrbitType
    angle_type: PositionAngle
    frame: Frame
    mu: float
    mass: float = 1000.0
    attitude: Attitude | None = None
    additional: Mapping[str, Array] = _EMPTY
    stm: Array | None = None
    param_jacobian: Array | None = None

    @classmethod
    def from_cartesian(
        cls,
        epoch: Epoch,
        x: ArrayLike,
        mu: float,
        frame: Frame = Frame.EME2000,
        mass: float = 1000.0,
    ) -> SpacecraftState:
        """State from an inertial position/velocity ``[x, y, z, vx, vy, vz]``."""
        elements = jnp.asarray(x, dtype=get_dtype())
        return cls(epoch, elements, OrbitType.CARTESIAN, PositionAngle.TRUE, frame,
                   float(mu), float(mass))

    @classmethod
    def from_elements(
        cls,
        epoch: Epoch,
        elements: ArrayLike,
        orbit_type: OrbitType,
        angle_type: PositionAngle,
        mu: float,
        frame: Frame = Frame.EME2000,
        mass: float = 1000.0,
    ) -> SpacecraftState:
        """State from six elements of any orbit type."""
        elements = jnp.asarray(elements, dtype=get_dtype())
        return cls(epoch, elements, orbit_type, angle_type, frame, float(mu), float(mass))

    @property
    def cartesian(self) -> Array:
        """Inertial ``[x, y, z, vx, vy, vz]``."""
        if self.orbit_type is OrbitType.CARTESIAN:
            return self.elements
        return to_cartesian(self.elements, self.orbit_type, self.angle_type, self.mu)

    @property
    def position(self) -> Array:
        return self.cartesian[:3]

    @property
    def velocity(self) -> Array:
        return self.cartesian[3:6]

    @property
    def keplerian(self) -> Array:
        """Keplerian elements with true anomaly."""
        return from_cartesian(self.cartesian, OrbitType.KEPLERIAN, PositionAngle.TRUE, self.mu)

    def cartesian_jacobian(self) -> Array:
        """``d cartesian / d elements`` at this state (identity for Cartesian)."""
        if self.orbit_type is OrbitType.CARTESIAN:
            return jnp.eye(6, dtype=get_dtype())
        return cartesian_jacobian(self.elements, self.orbit_type, self.angle_type, self.mu)

    def to_orbit_type(self, orbit_type: OrbitType, angle_type: PositionAngle) -> SpacecraftState:
        """Same state re-expressed in another parameterization.

        Sensitivity blocks are dropped since they are tied to the original
        element space.
        """
        if (orbit_type, angle_type) == (self.orbit_type, self.angle_type):
            return self
        elements = from_cartesian(self.cartesian, orbit_type, angle_type, self.mu)
        return self._replace(elements=elements, orbit_type=orbit_type, angle_type=angle_type,
                             stm=None, param_jacobian=None)

    def with_cartesian(self, x: ArrayLike) -> SpacecraftState:
        """Replace the orbit by a Cartesian state, keeping this state's orbit type.

        Traceable under ``jax.jacfwd``, which the propagator uses to map
        sensitivities through state resets.
        """
        x = jnp.asarray(x, dtype=get_dtype())
        if self.orbit_type is OrbitType.CARTESIAN:
            return self._replace(elements=x)
        elements = cartesian_to_elements(x, self.orbit_type, self.angle_type, self.mu)
        return self._replace(elements=elements)

    def with_mass(self, mass: float) -> SpacecraftState:
        return self._replace(mass=mass)

    def with_additional(self, name: str, value: ArrayLike) -> SpacecraftState:
        values = dict(self.additional)
        values[name] = jnp.atleast_1d(jnp.asarray(value, dtype=get_dtype()))
        return self._replace(additional=types.MappingProxyType(values))


class StateLayout(NamedTuple):
    """Fixed offsets of the blocks of the raw state vector.

    Attributes:
        additional: ``(name, dimension)`` of every additional state, in
            vector order.
        n_params: Number of force-model parameters (columns of ``S``).
        sensitivity: Whether ``Phi`` and ``S`` are carried.
    """

    additional: tuple[tuple[str, int], ...] = ()
    n_params: int = 0
    sensitivity: bool = False

    MASS_INDEX = 6

    @property
    def additional_size(self) -> int:
        return sum(dim for _, dim in self.additional)

    @property
    def stm_start(self) -> int:
        return 7 + self.additional_size

    @property
    def param_start(self) -> int:
        return self.stm_start + (36 if self.sensitivity else 0)

    @property
    def size(self) -> int:
        return self.param_start + (6 * self.n_params if self.sensitivity else 0)

    def additional_slices(self) -> dict[str, slice]:
        slices = {}
        start = 7
        for name, dim in self.additional:
            slices[name] = slice(start, start + dim)
            start += dim
        return slices

    @property
    def stm_slice(self) -> slice:
        return slice(self.stm_start, self.stm_start + 36)

    @property
    def param_slice(self) -> slice:
        return slice(self.param_start, self.param_start + 6 * self.n_params)
