"""Mapping between raw state vectors and :class:`SpacecraftState`.

The mapper fixes, for one propagation, the reference epoch that converts
integrator time (seconds) to epochs and the orbit type / position angle the
integrator works in.  Vectors decoded by a mapper must have been encoded
with the same conventions; encoding is the only place conventions are
checked.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import jax.numpy as jnp
import numpy as np
from jax import Array

from orbitax.attitude import AttitudeProvider
from orbitax.config import get_dtype
from orbitax.coordinates import OrbitType, PositionAngle
from orbitax.epoch import Epoch
from orbitax.errors import ConfigurationError
from orbitax.frames import Frame
from orbitax.propagation.state import SpacecraftState, StateLayout, from_cartesian, to_cartesian

logger = logging.getLogger(__name__)

ShortPeriodModel = Callable[[Epoch, Array], Array]


class StateMapper:
    """Bidirectional mapping between flat vectors and spacecraft states.

    Args:
        reference_epoch: Epoch of integrator time ``t = 0``.
        mu: Gravitational parameter used by the element conversions
            [m^3/s^2].
        orbit_type: Parameterization of the integrated elements.
        angle_type: Position-angle convention of the integrated elements.
        frame: Inertial frame of the integrated orbit.
        attitude_provider: Attitude law evaluated on every decode.
        short_period: Optional ``(epoch, mean_elements) -> delta`` giving
            the short-period terms added to mean elements to obtain
            osculating elements.

    Raises:
        ConfigurationError: On a missing or non-positive *mu*, a missing
            or non-inertial frame, or invalid orbit/angle types.

    Examples:
        ```python
        from orbitax import Epoch
        from orbitax.constants import GM_EARTH
        from orbitax.coordinates import OrbitType, PositionAngle
        from orbitax.frames import Frame
        from orbitax.propagation import StateMapper
        mapper = StateMapper(Epoch(2024, 1, 1), GM_EARTH, OrbitType.KEPLERIAN,
                             PositionAngle.TRUE, Frame.EME2000)
        ```
    """

    def __init__(
        self,
        reference_epoch: Epoch,
        mu: float,
        orbit_type: OrbitType,
        angle_type: PositionAngle,
        frame: Frame,
        attitude_provider: AttitudeProvider | None = None,
        short_period: ShortPeriodModel | None = None,
    ) -> None:
        if not isinstance(reference_epoch, Epoch):
            raise ConfigurationError("reference_epoch must be an Epoch")
        if mu is None or not float(mu) > 0.0:
            raise ConfigurationError(f"mu must be a positive number, got {mu}")
        if frame is None:
            raise ConfigurationError("a frame is required")
        if not isinstance(frame, Frame) or not frame.is_inertial:
            raise ConfigurationError(f"frame must be an inertial Frame, got {frame!r}")
        if not isinstance(orbit_type, OrbitType):
            raise ConfigurationError(f"invalid orbit type {orbit_type!r}")
        if not isinstance(angle_type, PositionAngle):
            raise ConfigurationError(f"invalid position angle {angle_type!r}")

        self._reference_epoch = reference_epoch
        self._mu = float(mu)
        self._orbit_type = orbit_type
        self._angle_type = angle_type
        self._frame = frame
        self._attitude_provider = attitude_provider
        self._short_period = short_period

    @property
    def reference_epoch(self) -> Epoch:
        return self._reference_epoch

    @property
    def mu(self) -> float:
        return self._mu

    @property
    def orbit_type(self) -> OrbitType:
        return self._orbit_type

    @property
    def angle_type(self) -> PositionAngle:
        return self._angle_type

    @property
    def frame(self) -> Frame:
        return self._frame

    @property
    def attitude_provider(self) -> AttitudeProvider | None:
        return self._attitude_provider

    def _same_convention(self, orbit_type: OrbitType, angle_type: PositionAngle) -> bool:
        if orbit_type is not self._orbit_type:
            return False
        return orbit_type is OrbitType.CARTESIAN or angle_type is self._angle_type

    # Time mapping

    def map_double_to_date(self, t: float, expected: Epoch | None = None) -> Epoch:
        """Epoch at integrator time *t*.

        Returns *expected* itself when its offset from the reference epoch
        is exactly *t*, so round trips through floating time do not drift
        or allocate.
        """
        if expected is not None and float(expected - self._reference_epoch) == float(t):
            return expected
        return self._reference_epoch + float(t)

    def map_date_to_double(self, epoch: Epoch) -> float:
        """Integrator time of *epoch* (seconds since the reference epoch)."""
        return float(epoch - self._reference_epoch)

    # State mapping

    def map_array_to_state(
        self,
        date: Epoch | float,
        y,
        mean_only: bool = False,
        layout: StateLayout | None = None,
    ) -> SpacecraftState:
        """Decode a raw vector into a :class:`SpacecraftState`.

        Args:
            date: Epoch of the state, or integrator time.
            y: Raw state vector laid out per *layout*.
            mean_only: Skip the short-period correction and return the
                integrated (mean) elements.
            layout: Vector layout.  Defaults to elements and mass only.

        Returns:
            SpacecraftState: new immutable state.
        """
        layout = layout or StateLayout()
        epoch = date if isinstance(date, Epoch) else self.map_double_to_date(date)
        y = np.asarray(y)

        elements = jnp.asarray(y[:6], dtype=get_dtype())
        if not mean_only and self._short_period is not None:
            elements = elements + self._short_period(epoch, elements)

        attitude = None
        if self._attitude_provider is not None:
            cartesian = elements if self._orbit_type is OrbitType.CARTESIAN else to_cartesian(
                elements, self._orbit_type, self._angle_type, self._mu)
            attitude = self._attitude_provider(epoch, cartesian, self._frame)

        mass = float(y[StateLayout.MASS_INDEX]) if y.shape[0] > 6 else 1000.0
        additional = {name: jnp.asarray(y[sl]) for name, sl in layout.additional_slices().items()}

        stm = None
        param_jacobian = None
        if layout.sensitivity:
            stm = jnp.asarray(y[layout.stm_slice]).reshape(6, 6)
            param_jacobian = jnp.asarray(y[layout.param_slice]).reshape(6, layout.n_params)

        state = SpacecraftState(epoch, elements, self._orbit_type, self._angle_type,
                                self._frame, self._mu, mass, attitude,
                                stm=stm, param_jacobian=param_jacobian)
        if additional:
            for name, value in additional.items():
                state = state.with_additional(name, value)
        return state

    def encode_elements(self, state: SpacecraftState) -> Array:
        """Orbital elements of *state* in the mapper's convention.

        Elements already in the mapper's convention are returned unchanged,
        otherwise they are converted through Cartesian coordinates.

        Raises:
            ConfigurationError: If the state's frame or mu differs from the
                mapper's.
        """
        if state.frame != self._frame:
            raise ConfigurationError(
                f"state frame {state.frame} does not match mapper frame {self._frame}"
            )
        if float(state.mu) != self._mu:
            raise ConfigurationError(
                f"state mu {state.mu} does not match mapper mu {self._mu}"
            )
        if self._same_convention(state.orbit_type, state.angle_type):
            return state.elements
        return from_cartesian(state.cartesian, self._orbit_type, self._angle_type, self._mu)

    def map_state_to_array(
        self,
        state: SpacecraftState,
        layout: StateLayout | None = None,
    ) -> np.ndarray:
        """Encode *state* into a raw vector laid out per *layout*.

        Missing sensitivity blocks are initialized to ``Phi = I`` and
        ``S = 0``.

        Raises:
            ConfigurationError: If conventions are incompatible or an
                additional state required by *layout* is missing.
        """
        layout = layout or StateLayout()
        y = np.zeros(layout.size, dtype=np.float64)
        y[:6] = np.asarray(self.encode_elements(state))
        y[StateLayout.MASS_INDEX] = state.mass

        for name, sl in layout.additional_slices().items():
            if name not in state.additional:
                raise ConfigurationError(f"missing initial value for additional state '{name}'")
            value = np.atleast_1d(np.asarray(state.additional[name], dtype=np.float64))
            if value.shape[0] != sl.stop - sl.start:
                raise ConfigurationError(
                    f"additional state '{name}' has dimension {value.shape[0]}, "
                    f"expected {sl.stop - sl.start}"
                )
            y[sl] = value

        if layout.sensitivity:
            stm = np.eye(6) if state.stm is None else np.asarray(state.stm)
            y[layout.stm_slice] = stm.ravel()
            if layout.n_params:
                if state.param_jacobian is None:
                    S = np.zeros((6, layout.n_params))
                else:
                    S = np.asarray(state.param_jacobian)
                y[layout.param_slice] = S.ravel()
        return y
