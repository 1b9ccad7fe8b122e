"""Batch least-squares orbit determination.

- :class:`ParameterDriver`, :class:`ParameterSet`: estimable parameters
  and their immutable snapshots.
- :class:`PropagatorBuilder`: parameter snapshot -> propagator.
- :class:`LevenbergMarquardt`, :class:`GaussNewton`: normal-equation
  solvers.
- :class:`BatchLSEstimator`, :class:`EstimationResult`: the estimator
  and its outcome.
"""

from orbitax.estimation._types import EstimationResult
from orbitax.estimation.batch_ls import (
    DEFAULT_ABSOLUTE_THRESHOLD,
    DEFAULT_MAX_EVALUATIONS,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_RELATIVE_THRESHOLD,
    BatchLSEstimator,
)
from orbitax.estimation.builder import PropagatorBuilder, element_names, element_scales
from orbitax.estimation.optimizers import (
    GaussNewton,
    LevenbergMarquardt,
    OptimizerState,
    check_conditioning,
)
from orbitax.estimation.parameters import ParameterDriver, ParameterSet

__all__ = [
    "EstimationResult",
    "BatchLSEstimator",
    "DEFAULT_ABSOLUTE_THRESHOLD",
    "DEFAULT_RELATIVE_THRESHOLD",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_MAX_EVALUATIONS",
    "PropagatorBuilder",
    "element_names",
    "element_scales",
    "GaussNewton",
    "LevenbergMarquardt",
    "OptimizerState",
    "check_conditioning",
    "ParameterDriver",
    "ParameterSet",
]
