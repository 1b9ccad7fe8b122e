"""Exception hierarchy for orbitax.

Every exception derives from :class:`OrbitaxError` and from the builtin
that matches its nature, so callers can catch either the library-specific
class or the generic ``ValueError`` / ``RuntimeError``:

- configuration problems detected at construction time are
  ``ValueError`` subclasses and are never retried;
- numerical failures during a run (event root search, step-size
  underflow, non-convergent estimation, singular normal equations) are
  ``RuntimeError`` subclasses.

A propagation that ends on a STOP event is a normal result and raises
nothing.
"""

from __future__ import annotations


class OrbitaxError(Exception):
    """Base class of all orbitax errors."""


class ConfigurationError(OrbitaxError, ValueError):
    """Invalid or inconsistent configuration (missing mu, frame mismatch, ...)."""


class PropagationError(OrbitaxError, RuntimeError):
    """Fatal failure of a propagation run.

    Exceptions raised by event g-functions or handlers are re-raised as
    ``PropagationError`` with the original exception chained as
    ``__cause__``.
    """


class EventConvergenceError(PropagationError):
    """An event root search did not converge within ``max_iter`` iterations."""


class StepSizeUnderflowError(PropagationError):
    """The integrator could not meet its tolerance at the minimum step size."""


class EstimationError(OrbitaxError, RuntimeError):
    """Base class of batch least-squares estimation failures."""


class EstimationConvergenceError(EstimationError):
    """The estimator exhausted its iteration or evaluation budget.

    Attributes:
        result: The :class:`~orbitax.estimation.EstimationResult` of the
            last evaluation, with ``converged=False``, so fit diagnostics
            remain available.
    """

    def __init__(self, message: str, result=None) -> None:
        super().__init__(message)
        self.result = result


class SingularNormalEquationsError(EstimationError):
    """The normal equations are rank deficient or ill-conditioned."""


class EstimationCancelledError(EstimationError):
    """Estimation was cancelled between two propagator evaluations."""
