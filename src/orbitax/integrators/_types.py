"""Type definitions for the numerical integrator.

- :class:`StepResult`: output of the step function, with the derivatives
  at both ends of the step for dense output.
- :class:`AdaptiveConfig`: adaptive step-size control settings.

Both are :class:`~typing.NamedTuple` instances, which JAX treats as
pytrees.
"""

from __future__ import annotations

from typing import NamedTuple

from jax import Array


class StepResult(NamedTuple):
    """Result of a single adaptive step.

    Attributes:
        state: State vector at ``t + dt_used``.
        dt_used: Timestep actually taken; smaller in magnitude than the
            request when trial steps were rejected.
        error_estimate: Normalized error of the returned step.  A value
            <= 1.0 means the step met the tolerance.
        dt_next: Suggested timestep for the next step.
        derivative_start: State derivative at ``t``.
        derivative_end: State derivative at ``t + dt_used`` (the FSAL stage).
    """

    state: Array
    dt_used: Array
    error_estimate: Array
    dt_next: Array
    derivative_start: Array
    derivative_end: Array


class AdaptiveConfig(NamedTuple):
    """Configuration for adaptive step-size control.

    Defaults are tuned for double-precision orbit determination: tight
    tolerances and a step ceiling well below an orbital period.

    Attributes:
        abs_tol: Absolute error tolerance per component.
        rel_tol: Relative error tolerance per component.
        safety_factor: Factor (< 1) applied to step-size predictions.
        min_scale_factor: Minimum ratio ``dt_next / dt_used``.
        max_scale_factor: Maximum ratio ``dt_next / dt_used``.
        min_step: Smallest step magnitude.  A step that fails the
            tolerance at this size aborts the propagation.
        max_step: Largest step magnitude.
        max_step_attempts: Trial steps per call before control returns
            to the caller with a rejected step.
        initial_step: First step magnitude.  ``None`` selects it
            automatically from the initial derivative.
    """

    abs_tol: float = 1e-9
    rel_tol: float = 1e-12
    safety_factor: float = 0.9
    min_scale_factor: float = 0.2
    max_scale_factor: float = 10.0
    min_step: float = 1e-6
    max_step: float = 300.0
    max_step_attempts: int = 10
    initial_step: float | None = None
