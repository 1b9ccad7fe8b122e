"""Configurable orbit dynamics factory.

Composes the force-model building blocks into a single
``dynamics(t, state, params) -> derivative`` closure.  The estimable
quantities are passed as the 1-D ``params`` array rather than captured in
the closure, so that

- the propagator can differentiate the dynamics with respect to them
  (``jax.jacfwd`` on ``params``), and
- one ``jax.jit``-compiled step function serves every estimator
  iteration, whatever the current parameter values.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import NamedTuple

import jax.numpy as jnp
from jax import Array

from orbitax.constants import P_SUN
from orbitax.epoch import Epoch
from orbitax.frames import rotation_eci_to_ecef
from orbitax.orbit_dynamics.config import ForceModelConfig
from orbitax.orbit_dynamics.density import density_exponential, density_gridded
from orbitax.orbit_dynamics.drag import accel_drag
from orbitax.orbit_dynamics.ephemerides import sun_position
from orbitax.orbit_dynamics.gravity import accel_j2, accel_point_mass
from orbitax.orbit_dynamics.srp import accel_srp, eclipse_conical, eclipse_cylindrical

Dynamics = Callable[[Array, Array, Array], Array]


class DynamicsModel(NamedTuple):
    """Force model composed by :func:`create_orbit_dynamics`.

    Attributes:
        dynamics: ``f(t, x, params) -> [v, a]`` with *t* in seconds since
            :attr:`epoch` and *x* the inertial Cartesian state.
        parameter_names: Names of the entries of ``params``, in order.
        default_values: Configured value of every parameter.
        epoch: Reference epoch of the time argument.
    """

    dynamics: Dynamics
    parameter_names: tuple[str, ...]
    default_values: tuple[float, ...]
    epoch: Epoch

    def default_parameters(self) -> Array:
        return jnp.asarray(self.default_values)


def create_orbit_dynamics(
    epoch_0: Epoch,
    config: ForceModelConfig | None = None,
) -> DynamicsModel:
    """Create a configurable orbit dynamics model.

    The parameter vector always starts with ``"mu"``; ``"cd"`` follows when
    drag is enabled and ``"cr"`` when SRP is enabled.

    Args:
        epoch_0: Reference epoch.  The time *t* is interpreted as seconds
            since this epoch.
        config: Force model configuration.  Defaults to point-mass
            two-body gravity.

    Returns:
        DynamicsModel: the dynamics closure with its parameter names and
            default values.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbitax import Epoch
        from orbitax.orbit_dynamics import ForceModelConfig, create_orbit_dynamics
        model = create_orbit_dynamics(Epoch(2024, 6, 15), ForceModelConfig(j2=True))
        x0 = jnp.array([6878e3, 0.0, 0.0, 0.0, 7612.0, 0.0])
        xdot = model.dynamics(0.0, x0, model.default_parameters())
        ```
    """
    if config is None:
        config = ForceModelConfig.two_body()

    names = ["mu"]
    values = [config.mu]
    if config.drag:
        names.append("cd")
        values.append(config.spacecraft.cd)
    if config.srp:
        names.append("cr")
        values.append(config.spacecraft.cr)

    _i_cd = names.index("cd") if config.drag else None
    _i_cr = names.index("cr") if config.srp else None

    _j2 = config.j2
    _j2_coef = config.j2_coefficient
    _radius = config.body_radius
    _drag = config.drag
    _density_model = config.density_model
    _grid = config.density_grid
    _rho0, _h0, _scale_height = config.rho0, config.h0, config.scale_height
    _srp = config.srp
    _eclipse_model = config.eclipse_model

    _mass = config.spacecraft.mass
    _drag_area = config.spacecraft.drag_area
    _srp_area = config.spacecraft.srp_area

    def dynamics(t, state, params):
        """Inertial state derivative ``[v, a]``."""
        r = state[:3]
        v = state[3:6]
        mu = params[0]
        epc = epoch_0 + t

        a = accel_point_mass(r, mu)

        if _j2:
            a = a + accel_j2(r, mu, _j2_coef, _radius)

        if _drag:
            r_ecef = rotation_eci_to_ecef(epc) @ r
            if _density_model == "gridded":
                rho = density_gridded(r_ecef, _grid)
            else:
                rho = density_exponential(r_ecef, _rho0, _h0, _scale_height)
            a = a + accel_drag(state, rho, _mass, _drag_area, params[_i_cd])

        if _srp:
            r_sun = sun_position(epc)
            if _eclipse_model == "conical":
                nu = eclipse_conical(r, r_sun)
            elif _eclipse_model == "cylindrical":
                nu = eclipse_cylindrical(r, r_sun)
            else:
                nu = 1.0
            a = a + nu * accel_srp(r, r_sun, _mass, params[_i_cr], _srp_area, P_SUN)

        return jnp.concatenate([v, a])

    return DynamicsModel(dynamics, tuple(names), tuple(values), epoch_0)
