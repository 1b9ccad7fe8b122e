"""Batch least-squares orbit determination.

Each evaluation snapshots the parameters, builds one propagator per arc,
propagates every arc through its measurement epochs and evaluates all
measurements.  Measurement partials with respect to the Cartesian state
are chained through the propagated state transition matrix and parameter
Jacobian into partials with respect to the normalized parameters:

- orbital driver ``j`` of arc ``k``: ``H_k @ dX/dE(t) @ Phi[:, j]``
- force-model driver ``j`` of arc ``k``: ``H_k @ dX/dE(t) @ S[:, j]``
- measurement driver: the model's own partial

each multiplied by the driver's scale.  Rows are weighted by
``sqrt(base_weight) / sigma``.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from collections.abc import Sequence
from typing import NamedTuple

import numpy as np

from orbitax.errors import (
    ConfigurationError,
    EstimationCancelledError,
    EstimationConvergenceError,
    PropagationError,
)
from orbitax.estimation._types import EstimationResult
from orbitax.estimation.builder import PropagatorBuilder
from orbitax.estimation.optimizers import GaussNewton, LevenbergMarquardt
from orbitax.estimation.parameters import ParameterSet

logger = logging.getLogger(__name__)

DEFAULT_RELATIVE_THRESHOLD = 1e-10
DEFAULT_ABSOLUTE_THRESHOLD = 1e-3
DEFAULT_MAX_ITERATIONS = 20
DEFAULT_MAX_EVALUATIONS = 100


class _Evaluation(NamedTuple):
    parameters: ParameterSet
    residuals: np.ndarray
    jacobian: np.ndarray
    chi2: float
    estimated: tuple
    states: tuple


def _covariance(jacobian: np.ndarray, scales: np.ndarray) -> np.ndarray | None:
    if jacobian.shape[1] == 0 or jacobian.shape[0] < jacobian.shape[1]:
        return None
    _, s, vt = np.linalg.svd(jacobian, full_matrices=False)
    if not np.all(np.isfinite(s)) or s[-1] <= 0.0:
        return None
    normalized = (vt.T / s**2) @ vt
    return scales[:, None] * normalized * scales[None, :]


class BatchLSEstimator:
    """Batch least-squares estimator over one or more arcs.

    Args:
        builders: One :class:`PropagatorBuilder` per arc.  Measurements
            refer to arcs by position in this sequence.  With several
            arcs, driver names get an ``[k]`` suffix, e.g. ``"a[1]"``.
        optimizer: Normal-equation solver, :class:`LevenbergMarquardt`
            by default.

    Convergence needs both ``||dp|| <= absolute`` and
    ``||dp|| <= relative * ||p / s||``, where ``dp`` is the normalized
    update, ``p`` the selected values and ``s`` their scales.  An accepted
    update is judged by the step it took; after a rejection the undamped
    Gauss-Newton step from the current point is judged instead, so a
    heavily damped optimizer cannot stall into success.  Updates are
    clipped to the drivers' bounds before they are evaluated.

    Examples:
        ```python
        from orbitax.estimation import BatchLSEstimator
        estimator = BatchLSEstimator([builder])
        for m in measurements:
            estimator.add_measurement(m)
        estimator.set_max_iterations(10)
        result = estimator.estimate()
        result.parameters["a"].value
        ```
    """

    def __init__(self, builders: Sequence[PropagatorBuilder], optimizer=None) -> None:
        builders = tuple(builders)
        if not builders:
            raise ConfigurationError("at least one propagator builder is needed")
        if not all(isinstance(b, PropagatorBuilder) for b in builders):
            raise ConfigurationError("builders must be PropagatorBuilder instances")
        self._builders = builders
        self._optimizer = LevenbergMarquardt() if optimizer is None else optimizer
        self._undamped = GaussNewton(rcond=getattr(self._optimizer, "rcond", 1e-12))
        self._measurements = []
        self._relative = DEFAULT_RELATIVE_THRESHOLD
        self._absolute = DEFAULT_ABSOLUTE_THRESHOLD
        self._max_iterations = DEFAULT_MAX_ITERATIONS
        self._max_evaluations = DEFAULT_MAX_EVALUATIONS
        self._parallelism = 1
        self._cancelled = threading.Event()
        self._iterations = 0
        self._evaluations = 0
        self._last_result: EstimationResult | None = None

    # Configuration

    def add_measurement(self, measurement) -> None:
        """Add an observation; its propagator indices must name known arcs."""
        n = len(self._builders)
        if any(not 0 <= i < n for i in measurement.propagator_indices):
            raise ConfigurationError(
                f"measurement '{measurement.name}' refers to propagators "
                f"{measurement.propagator_indices}, only {n} configured"
            )
        arc_names = {self._qualify(d.name, k)
                     for k, builder in enumerate(self._builders) for d in builder.parameters}
        clashes = sorted(d.name for d in measurement.parameters if d.name in arc_names)
        if clashes:
            raise ConfigurationError(f"measurement parameters {clashes} clash with orbit parameters")
        self._measurements.append(measurement)

    def set_convergence_threshold(self, relative: float, absolute: float) -> None:
        if not (relative > 0.0 and absolute > 0.0):
            raise ConfigurationError("convergence thresholds must be positive")
        self._relative = float(relative)
        self._absolute = float(absolute)

    def set_max_iterations(self, max_iterations: int) -> None:
        """Maximum optimizer steps; ``0`` evaluates once and reports non-convergence."""
        if max_iterations < 0:
            raise ConfigurationError("max_iterations must be non-negative")
        self._max_iterations = int(max_iterations)

    def set_max_evaluations(self, max_evaluations: int) -> None:
        if max_evaluations < 1:
            raise ConfigurationError("max_evaluations must be at least 1")
        self._max_evaluations = int(max_evaluations)

    def set_parallelism(self, workers: int) -> None:
        """Number of threads propagating arcs concurrently."""
        if workers < 1:
            raise ConfigurationError("workers must be at least 1")
        self._parallelism = int(workers)

    def cancel(self) -> None:
        """Abort the running :meth:`estimate` before its next propagation."""
        self._cancelled.set()

    # Diagnostics

    @property
    def measurements(self) -> tuple:
        return tuple(self._measurements)

    @property
    def parameters(self) -> ParameterSet:
        """Drivers of all arcs followed by the measurement drivers."""
        drivers = []
        for k, builder in enumerate(self._builders):
            drivers.extend(d.with_name(self._qualify(d.name, k)) for d in builder.parameters)
        names = {d.name for d in drivers}
        for measurement in self._measurements:
            for driver in measurement.parameters:
                if driver.name not in names:
                    names.add(driver.name)
                    drivers.append(driver)
        return ParameterSet(drivers)

    @property
    def last_result(self) -> EstimationResult | None:
        """Result of the last evaluation, kept after failures too."""
        return self._last_result

    @property
    def residuals(self) -> np.ndarray | None:
        return None if self._last_result is None else self._last_result.residuals

    @property
    def covariance(self) -> np.ndarray | None:
        return None if self._last_result is None else self._last_result.covariance

    @property
    def iterations_count(self) -> int:
        return self._iterations

    @property
    def evaluations_count(self) -> int:
        return self._evaluations

    # Estimation

    def estimate(self) -> EstimationResult:
        """Run the least-squares iteration from the builders' current drivers.

        On return the builders hold the estimated driver values.

        Raises:
            EstimationConvergenceError: If the iteration or evaluation
                budget runs out first.  ``.result`` holds the diagnostics
                of the best point reached.
            SingularNormalEquationsError: If the normal equations cannot
                be solved.
            EstimationCancelledError: If :meth:`cancel` was called.
            PropagationError: If an arc fails or stops before its last
                measurement.
        """
        if not self._measurements:
            raise ConfigurationError("no measurements to process")
        self._cancelled.clear()
        self._iterations = 0
        self._evaluations = 0
        self._last_result = None

        parameters = self.parameters
        logger.info("Starting batch least squares: %d measurements, %d arcs, %d estimated parameters",
                    len(self._measurements), len(self._builders), len(parameters.selected))

        current = self._evaluate(parameters)
        state = self._optimizer.init()
        while True:
            self._last_result = self._result(current, converged=False)
            if self._iterations >= self._max_iterations:
                self._fail(f"no convergence after {self._iterations} iterations", current)

            dp = self._optimizer.step(current.jacobian, current.residuals, state)
            self._iterations += 1
            trial_parameters, clipped = current.parameters.clip(current.parameters.normalized + dp)
            if clipped:
                logger.debug("Iteration %d: update clipped to parameter bounds", self._iterations)
            step = trial_parameters.normalized - current.parameters.normalized

            if self._evaluations >= self._max_evaluations:
                self._fail(f"evaluation budget of {self._max_evaluations} exhausted", current)
            trial = self._evaluate(trial_parameters)
            accepted, state = self._optimizer.update(current.chi2, trial.chi2, state)

            step_norm = float(np.linalg.norm(step))
            if accepted:
                current = trial
                converged = self._converged(step_norm, current.parameters)
            else:
                # a damped step says nothing about the optimum; judge the undamped one
                converged = self._converged(self._undamped_step_norm(current), current.parameters)
            logger.info("Iteration %d: rms %.6g, step norm %.3g%s", self._iterations,
                        self._rms(current), step_norm, "" if accepted else " (rejected)")
            if converged:
                break

        result = self._result(current, converged=True)
        self._last_result = result
        self._store(current.parameters)
        logger.info("Batch least squares converged in %d iterations (%d evaluations), rms %.6g",
                    self._iterations, self._evaluations, result.rms)
        return result

    def _fail(self, reason: str, current: _Evaluation) -> None:
        result = self._result(current, converged=False)
        self._last_result = result
        self._store(result.parameters)
        logger.warning("Batch least squares stopped: %s, rms %.6g", reason, result.rms)
        raise EstimationConvergenceError(reason, result=result)

    def _store(self, parameters: ParameterSet) -> None:
        for k, builder in enumerate(self._builders):
            for driver in builder.parameters:
                estimated = parameters[self._qualify(driver.name, k)]
                builder.set_driver(estimated.with_name(driver.name))

    def _qualify(self, name: str, k: int) -> str:
        return name if len(self._builders) == 1 else f"{name}[{k}]"

    def _builder_parameters(self, parameters: ParameterSet, k: int) -> ParameterSet:
        builder = self._builders[k]
        return ParameterSet(parameters[self._qualify(d.name, k)].with_name(d.name)
                            for d in builder.parameters)

    def _converged(self, step_norm: float, parameters: ParameterSet) -> bool:
        magnitude = float(np.linalg.norm(parameters.values / parameters.scales))
        return step_norm <= self._absolute and step_norm <= self._relative * magnitude

    def _undamped_step_norm(self, evaluation: _Evaluation) -> float:
        dp = self._undamped.step(evaluation.jacobian, evaluation.residuals, self._undamped.init())
        clipped, _ = evaluation.parameters.clip(evaluation.parameters.normalized + dp)
        return float(np.linalg.norm(clipped.normalized - evaluation.parameters.normalized))

    @staticmethod
    def _rms(evaluation: _Evaluation) -> float:
        return float(np.sqrt(evaluation.chi2 / evaluation.residuals.size))

    def _result(self, evaluation: _Evaluation, converged: bool) -> EstimationResult:
        return EstimationResult(
            parameters=evaluation.parameters,
            converged=converged,
            iterations=self._iterations,
            evaluations=self._evaluations,
            rms=self._rms(evaluation),
            chi2=evaluation.chi2,
            residuals=evaluation.residuals,
            covariance=_covariance(evaluation.jacobian, evaluation.parameters.scales),
            estimated_measurements=evaluation.estimated,
            propagator_states=evaluation.states,
        )

    # Evaluation

    def _propagate_arc(self, k: int, parameters: ParameterSet) -> dict:
        if self._cancelled.is_set():
            raise EstimationCancelledError("estimation cancelled")
        builder = self._builders[k]
        t0 = builder.initial_epoch
        epochs = {}
        for measurement in self._measurements:
            if k in measurement.propagator_indices:
                epochs.setdefault(float(measurement.epoch - t0), measurement.epoch)

        propagator = builder.build(self._builder_parameters(parameters, k))
        states = {}
        forward = sorted(dt for dt in epochs if dt >= 0.0)
        backward = sorted((dt for dt in epochs if dt < 0.0), reverse=True)
        for offsets in (forward, backward):
            if not offsets:
                continue
            reached = propagator.propagate_to_epochs([epochs[dt] for dt in offsets])
            if len(reached) < len(offsets):
                raise PropagationError(
                    f"arc {k} stopped at {reached[-1].epoch if reached else t0} "
                    f"before its measurement at {epochs[offsets[len(reached)]]}"
                )
            states.update(zip(offsets, reached))
        return states

    def _evaluate(self, parameters: ParameterSet) -> _Evaluation:
        if self._cancelled.is_set():
            raise EstimationCancelledError("estimation cancelled")
        self._evaluations += 1
        arcs = range(len(self._builders))
        if self._parallelism > 1 and len(self._builders) > 1:
            with concurrent.futures.ThreadPoolExecutor(max_workers=self._parallelism) as executor:
                arc_states = list(executor.map(lambda k: self._propagate_arc(k, parameters), arcs))
        else:
            arc_states = [self._propagate_arc(k, parameters) for k in arcs]

        columns = {name: j for j, name in enumerate(parameters.selected_names)}
        scales = parameters.scales
        values = parameters.as_dict()
        n = len(columns)

        residual_rows, jacobian_rows, estimated = [], [], []
        for measurement in self._measurements:
            states = [arc_states[k][float(measurement.epoch - self._builders[k].initial_epoch)]
                      for k in measurement.propagator_indices]
            overrides = {d.name: values[d.name] for d in measurement.parameters}
            em = measurement.estimate(states, overrides, self._iterations, self._evaluations)
            estimated.append(em)

            rows = np.zeros((measurement.dimension, n))
            for k, state, H in zip(measurement.propagator_indices, states, em.state_partials):
                builder = self._builders[k]
                HJ = H @ np.asarray(state.cartesian_jacobian())
                stm = np.asarray(state.stm)
                for i, name in enumerate(builder.orbital_names):
                    j = columns.get(self._qualify(name, k))
                    if j is not None:
                        rows[:, j] += HJ @ stm[:, i]
                if state.param_jacobian is not None:
                    S = np.asarray(state.param_jacobian)
                    for i, name in enumerate(builder.force_model_names):
                        j = columns.get(self._qualify(name, k))
                        if j is not None:
                            rows[:, j] += HJ @ S[:, i]
            for name, partial in em.parameter_partials.items():
                j = columns.get(name)
                if j is not None:
                    rows[:, j] += partial

            sqrt_w = np.sqrt(em.weight)
            residual_rows.append(sqrt_w * em.residual)
            jacobian_rows.append(sqrt_w[:, None] * rows * scales[None, :])

        residuals = np.concatenate(residual_rows)
        jacobian = np.vstack(jacobian_rows)
        states = tuple(tuple(s for _, s in sorted(arc.items())) for arc in arc_states)
        return _Evaluation(parameters, residuals, jacobian, float(residuals @ residuals),
                           tuple(estimated), states)
