"""Result type of the batch least-squares estimator."""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

import numpy as np

if TYPE_CHECKING:
    from orbitax.estimation.parameters import ParameterSet
    from orbitax.orbit_measurements import EstimatedMeasurement
    from orbitax.propagation import SpacecraftState


class EstimationResult(NamedTuple):
    """Outcome and fit diagnostics of one :meth:`BatchLSEstimator.estimate` run.

    Attributes:
        parameters: Estimated drivers, orbital and force-model drivers of
            every arc followed by the measurement drivers.
        converged: ``False`` when the run exhausted its budget.
        iterations: Optimizer steps taken.
        evaluations: Propagate-and-estimate passes performed.
        rms: ``sqrt(chi2 / n)`` over the ``n`` weighted residual components.
        chi2: Sum of squared weighted residuals.
        residuals: Weighted residuals ``sqrt(w) * (observed - estimated)``,
            in measurement order.
        covariance: Covariance of the selected parameters in physical
            units, ``(J^T W J)^-1``, or ``None`` if the Jacobian is
            rank deficient.
        estimated_measurements: Every measurement evaluated at the
            reported parameters, in measurement order.
        propagator_states: Per arc, the propagated states at that arc's
            measurement epochs in chronological order.
    """

    parameters: ParameterSet
    converged: bool
    iterations: int
    evaluations: int
    rms: float
    chi2: float
    residuals: np.ndarray
    covariance: np.ndarray | None
    estimated_measurements: tuple[EstimatedMeasurement, ...]
    propagator_states: tuple[tuple[SpacecraftState, ...], ...]

    @property
    def standard_deviations(self) -> np.ndarray | None:
        """Square roots of the covariance diagonal."""
        if self.covariance is None:
            return None
        return np.sqrt(np.diag(self.covariance))
