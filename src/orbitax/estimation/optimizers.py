"""Normal-equation solvers for the batch least-squares estimator.

Both solvers share a small functional interface:

- ``init() -> OptimizerState``
- ``step(jacobian, residuals, state) -> dp``: parameter update solving
  ``jacobian @ dp ~= residuals`` in the least-squares sense
- ``update(cost, trial_cost, state) -> (accepted, state)``: decide on the
  trial point and adapt internal settings

The Jacobian and residuals are already weighted and the parameters
normalized.  Rank-deficient or ill-conditioned problems raise
:class:`~orbitax.errors.SingularNormalEquationsError` instead of
producing an update.
"""

from __future__ import annotations

import logging
from typing import NamedTuple

import numpy as np
import scipy.linalg

from orbitax.errors import ConfigurationError, SingularNormalEquationsError

logger = logging.getLogger(__name__)


class OptimizerState(NamedTuple):
    """Mutable-by-replacement solver state.

    Attributes:
        damping: Current Levenberg-Marquardt damping factor.
        rejections: Consecutive rejected trial points.
    """

    damping: float = 0.0
    rejections: int = 0


def check_conditioning(jacobian: np.ndarray, rcond: float) -> np.ndarray:
    """Singular values of *jacobian*, validated for a least-squares solve.

    Raises:
        SingularNormalEquationsError: If there are fewer rows than
            columns, if entries are not finite, or if the smallest
            singular value is below ``rcond`` times the largest.
    """
    m, n = jacobian.shape
    if n == 0:
        raise SingularNormalEquationsError("no parameter is selected for estimation")
    if m < n:
        raise SingularNormalEquationsError(
            f"{m} weighted residuals cannot determine {n} parameters"
        )
    if not np.all(np.isfinite(jacobian)):
        raise SingularNormalEquationsError("non-finite entries in the Jacobian")
    s = np.linalg.svd(jacobian, compute_uv=False)
    if s[0] == 0.0 or s[-1] <= rcond * s[0]:
        cond = np.inf if s[-1] == 0.0 else s[0] / s[-1]
        raise SingularNormalEquationsError(
            f"normal equations are singular (condition number {cond:.3g})"
        )
    return s


def _finite(dp: np.ndarray) -> np.ndarray:
    if not np.all(np.isfinite(dp)):
        raise SingularNormalEquationsError("non-finite parameter update")
    return dp


class GaussNewton:
    """Undamped Gauss-Newton; every trial point is accepted.

    Args:
        rcond: Relative singular-value threshold of the conditioning
            check.
    """

    def __init__(self, rcond: float = 1e-12) -> None:
        self.rcond = rcond

    def init(self) -> OptimizerState:
        return OptimizerState()

    def step(self, jacobian, residuals, state: OptimizerState) -> np.ndarray:
        J = np.asarray(jacobian, dtype=np.float64)
        r = np.asarray(residuals, dtype=np.float64)
        check_conditioning(J, self.rcond)
        dp, *_ = scipy.linalg.lstsq(J, r)
        return _finite(dp)

    def update(self, cost: float, trial_cost: float, state: OptimizerState) -> tuple[bool, OptimizerState]:
        return True, state


class LevenbergMarquardt:
    """Levenberg-Marquardt with Marquardt's diagonal scaling.

    Solves ``(J^T J + lambda diag(J^T J)) dp = J^T r``.  A trial point is
    accepted only if it lowers the cost; the damping is then multiplied
    by *damping_down*, otherwise by *damping_up*.

    Args:
        initial_damping: Starting value of lambda.
        damping_up: Factor applied after a rejected trial point (> 1).
        damping_down: Factor applied after an accepted one (< 1).
        rcond: Relative singular-value threshold of the conditioning
            check.
    """

    def __init__(
        self,
        initial_damping: float = 1e-3,
        damping_up: float = 10.0,
        damping_down: float = 0.1,
        rcond: float = 1e-12,
    ) -> None:
        if initial_damping < 0.0:
            raise ConfigurationError("initial_damping must be non-negative")
        if not damping_up > 1.0 or not 0.0 < damping_down < 1.0:
            raise ConfigurationError("need damping_up > 1 and 0 < damping_down < 1")
        self.initial_damping = initial_damping
        self.damping_up = damping_up
        self.damping_down = damping_down
        self.rcond = rcond

    def init(self) -> OptimizerState:
        return OptimizerState(damping=self.initial_damping)

    def step(self, jacobian, residuals, state: OptimizerState) -> np.ndarray:
        J = np.asarray(jacobian, dtype=np.float64)
        r = np.asarray(residuals, dtype=np.float64)
        check_conditioning(J, self.rcond)
        N = J.T @ J
        A = N + state.damping * np.diag(np.diag(N))
        try:
            dp = scipy.linalg.cho_solve(scipy.linalg.cho_factor(A), J.T @ r)
        except scipy.linalg.LinAlgError as exc:
            raise SingularNormalEquationsError("damped normal matrix is not positive definite") from exc
        return _finite(dp)

    def update(self, cost: float, trial_cost: float, state: OptimizerState) -> tuple[bool, OptimizerState]:
        if trial_cost < cost:
            return True, OptimizerState(state.damping * self.damping_down, 0)
        damping = max(state.damping, 1e-12) * self.damping_up
        rejections = state.rejections + 1
        if rejections >= 5:
            logger.warning("Levenberg-Marquardt rejected %d consecutive steps (damping %.3g)",
                           rejections, damping)
        return False, OptimizerState(damping, rejections)
