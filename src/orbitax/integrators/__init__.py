"""Numerical ODE integration for orbit propagation.

Provides the Dormand-Prince 5(4) adaptive step, implemented in JAX for
``jax.jit`` compatibility, and a cubic Hermite interpolant of each
accepted step used for event location.

The step function interface is::

    result = dp54_step(dynamics, t, state, dt, params)

where ``dynamics(t, x, params) -> dx`` defines the ODE right-hand side and
the result is a :class:`StepResult` named tuple.
"""

from orbitax.integrators._adaptive import (
    compute_error_norm,
    compute_next_step_size,
    estimate_initial_step,
)
from orbitax.integrators._types import AdaptiveConfig, StepResult
from orbitax.integrators.dp54 import dp54_step, make_dp54_stepper
from orbitax.integrators.interpolator import StepInterpolator

__all__ = [
    "AdaptiveConfig",
    "StepResult",
    "StepInterpolator",
    "compute_error_norm",
    "compute_next_step_size",
    "estimate_initial_step",
    "dp54_step",
    "make_dp54_stepper",
]
