"""Dormand-Prince 5(4) adaptive integrator (DP54).

Embedded Runge-Kutta method with a 5th-order solution for propagation and
a 4th-order solution for error estimation, 7 stages per step.  The
derivative at the end of an accepted step is the 7th stage (First Same As
Last), which the step returns together with the derivative at its start so
callers can build a cubic Hermite interpolant of the step for free.

Trial steps that exceed the tolerance are retried with a smaller timestep
inside ``jax.lax.while_loop``.  When ``max_step_attempts`` runs out, or the
minimum step is reached, the last trial is returned with its error
estimate (> 1.0) and the caller decides what to do.

The right-hand side takes an explicit parameter vector,
``f(t, x, params)``, so a single compiled step serves any parameter
values.

The Butcher tableau coefficients are the standard Dormand-Prince values:

- Nodes (c): [0, 1/5, 3/10, 4/5, 8/9, 1, 1]
- 5th-order weights: [35/384, 0, 500/1113, 125/192, -2187/6784, 11/84, 0]
- 4th-order weights: [5179/57600, 0, 7571/16695, 393/640, -92097/339200,
  187/2100, 1/40]
"""

from __future__ import annotations

from collections.abc import Callable

import jax
import jax.numpy as jnp
from jax import Array
from jax.typing import ArrayLike

from orbitax.config import get_dtype
from orbitax.integrators._adaptive import compute_error_norm, compute_next_step_size
from orbitax.integrators._types import AdaptiveConfig, StepResult

_C = (0.0, 1.0 / 5.0, 3.0 / 10.0, 4.0 / 5.0, 8.0 / 9.0, 1.0, 1.0)

_A = (
    (),
    (1.0 / 5.0,),
    (3.0 / 40.0, 9.0 / 40.0),
    (44.0 / 45.0, -56.0 / 15.0, 32.0 / 9.0),
    (19372.0 / 6561.0, -25360.0 / 2187.0, 64448.0 / 6561.0, -212.0 / 729.0),
    (9017.0 / 3168.0, -355.0 / 33.0, 46732.0 / 5247.0, 49.0 / 176.0, -5103.0 / 18656.0),
    (35.0 / 384.0, 0.0, 500.0 / 1113.0, 125.0 / 192.0, -2187.0 / 6784.0, 11.0 / 84.0),
)

# Difference between the 5th and 4th order weights
_E = (
    35.0 / 384.0 - 5179.0 / 57600.0,
    0.0,
    500.0 / 1113.0 - 7571.0 / 16695.0,
    125.0 / 192.0 - 393.0 / 640.0,
    -2187.0 / 6784.0 + 92097.0 / 339200.0,
    11.0 / 84.0 - 187.0 / 2100.0,
    -1.0 / 40.0,
)

_ERROR_ORDER = 4.0

ParametricDynamics = Callable[[Array, Array, Array], Array]


def dp54_step(
    dynamics: ParametricDynamics,
    t: ArrayLike,
    state: ArrayLike,
    dt: ArrayLike,
    params: ArrayLike,
    config: AdaptiveConfig | None = None,
) -> StepResult:
    """Perform a single adaptive DP54 integration step.

    Args:
        dynamics: ODE right-hand side ``f(t, x, params) -> dx/dt``.
        t: Current time.
        state: Current state vector.
        dt: Requested timestep.  May be negative for backward integration.
        params: Parameter vector forwarded to *dynamics*.
        config: Adaptive step-size configuration.  Uses default
            :class:`AdaptiveConfig` if ``None``.

    Returns:
        StepResult: state at ``t + dt_used``, the step taken, its
            normalized error, the suggested next step and the derivatives
            at both ends of the step.

    Examples:
        ```python
        import jax.numpy as jnp
        from orbitax.integrators import dp54_step
        def harmonic(t, x, p):
            return jnp.array([x[1], -p[0] * x[0]])
        result = dp54_step(harmonic, 0.0, jnp.array([1.0, 0.0]), 0.1, jnp.array([1.0]))
        ```
    """
    if config is None:
        config = AdaptiveConfig()

    dtype = get_dtype()
    t = jnp.asarray(t, dtype=dtype)
    state = jnp.asarray(state, dtype=dtype)
    dt = jnp.asarray(dt, dtype=dtype)
    params = jnp.asarray(params, dtype=dtype)

    k0 = dynamics(t, state, params)

    def attempt(h):
        k = [k0]
        for i in range(1, 7):
            incr = sum(a * kj for a, kj in zip(_A[i], k) if a != 0.0)
            k.append(dynamics(t + _C[i] * h, state + h * incr, params))
        # Row 6 of the tableau holds the 5th-order weights
        state_high = state + h * sum(a * kj for a, kj in zip(_A[6], k) if a != 0.0)
        error_vec = h * sum(e * kj for e, kj in zip(_E, k) if e != 0.0)
        error = compute_error_norm(error_vec, state_high, state,
                                   config.abs_tol, config.rel_tol)
        return state_high, error, k[6]

    def cond_fn(carry):
        _h, attempts, accepted, *_ = carry
        return (~accepted) & (attempts < config.max_step_attempts)

    def body_fn(carry):
        h, attempts, _accepted, _y, _err, _h_used, _k_end = carry
        state_new, error, k_end = attempt(h)
        at_min_step = jnp.abs(h) <= config.min_step
        accepted = (error <= 1.0) | at_min_step
        h_reduced = compute_next_step_size(error, h, _ERROR_ORDER, config)
        h_next = jnp.where(accepted, h, h_reduced)
        return (h_next, attempts + 1, accepted, state_new, error, h, k_end)

    init = (
        dt,
        jnp.asarray(0, dtype=jnp.int32),
        jnp.asarray(False),
        state,
        jnp.asarray(jnp.inf, dtype=dtype),
        dt,
        k0,
    )
    _h, _attempts, _accepted, state_out, error_out, h_used, k_end = jax.lax.while_loop(
        cond_fn, body_fn, init
    )

    dt_next = compute_next_step_size(error_out, h_used, _ERROR_ORDER, config)

    return StepResult(
        state=state_out,
        dt_used=h_used,
        error_estimate=error_out,
        dt_next=dt_next,
        derivative_start=k0,
        derivative_end=k_end,
    )


def make_dp54_stepper(
    dynamics: ParametricDynamics,
    config: AdaptiveConfig | None = None,
) -> Callable[[ArrayLike, ArrayLike, ArrayLike, ArrayLike], StepResult]:
    """Compile :func:`dp54_step` for fixed *dynamics* and *config*.

    Returns:
        ``step(t, state, dt, params) -> StepResult``, jitted once and
        reusable for any state, step and parameter values of the same
        shapes.
    """
    if config is None:
        config = AdaptiveConfig()

    @jax.jit
    def step(t, state, dt, params):
        return dp54_step(dynamics, t, state, dt, params, config)

    return step
