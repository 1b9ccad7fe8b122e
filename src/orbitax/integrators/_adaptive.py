"""Step-size control shared by the embedded Runge-Kutta step.

1. Normalize the embedded error with mixed absolute/relative tolerances.
2. Accept the step if the normalized error is <= 1.0.
3. Predict the next step from the error and the order of the estimator.
"""

from __future__ import annotations

import jax.numpy as jnp
import numpy as np
from jax import Array
from jax.typing import ArrayLike

from orbitax.config import get_dtype
from orbitax.integrators._types import AdaptiveConfig


def compute_error_norm(
    error_vec: ArrayLike,
    state_new: ArrayLike,
    state_old: ArrayLike,
    abs_tol: float,
    rel_tol: float,
) -> Array:
    """Infinity norm of the error scaled by ``abs_tol + rel_tol * max(|y_new|, |y_old|)``."""
    scale = abs_tol + rel_tol * jnp.maximum(jnp.abs(state_new), jnp.abs(state_old))
    return jnp.max(jnp.abs(error_vec) / scale)


def compute_next_step_size(
    error: ArrayLike,
    h: ArrayLike,
    order: float,
    config: AdaptiveConfig,
) -> Array:
    """Predict the next step ``|h| * S * (1/error)^(1/(order+1))``.

    The ratio to the current step is clamped to
    ``[min_scale_factor, max_scale_factor]`` and the magnitude to
    ``[min_step, max_step]``; the sign of *h* is kept for backward
    integration.
    """
    error = jnp.asarray(error, dtype=get_dtype())
    h = jnp.asarray(h, dtype=get_dtype())

    raw = jnp.where(error > 0.0, jnp.power(1.0 / error, 1.0 / (order + 1.0)),
                    config.max_scale_factor)
    scale = jnp.clip(config.safety_factor * raw,
                     config.min_scale_factor, config.max_scale_factor)
    return jnp.sign(h) * jnp.clip(jnp.abs(h) * scale, config.min_step, config.max_step)


def estimate_initial_step(
    f0: np.ndarray,
    y0: np.ndarray,
    config: AdaptiveConfig,
) -> float:
    """Starting step magnitude from the initial state and derivative.

    Uses the first stage of Hairer's heuristic,
    ``h = 0.01 * ||y0 / sc|| / ||f0 / sc||`` with ``sc = atol + rtol |y0|``,
    clamped to ``[min_step, max_step]``.

    References:
        1. E. Hairer, S. P. Norsett and G. Wanner, *Solving Ordinary
           Differential Equations I*, 2nd ed., 1993, Sec. II.4.
    """
    if config.initial_step is not None:
        return float(config.initial_step)
    sc = config.abs_tol + config.rel_tol * np.abs(y0)
    d0 = np.sqrt(np.mean((y0 / sc) ** 2))
    d1 = np.sqrt(np.mean((f0 / sc) ** 2))
    if d0 < 1e-5 or d1 < 1e-5:
        h = 1e-6
    else:
        h = 0.01 * d0 / d1
    return float(np.clip(h, config.min_step, config.max_step))
