"""Tests for PropagatorBuilder and BatchLSEstimator.

All scenarios are noiseless and use point-mass gravity, so the estimator
must recover the generating parameters to well below the measurement
sigmas.
"""

import numpy as np
import pytest

from orbitax.constants import GM_EARTH, R_EARTH
from orbitax.coordinates import OrbitType, PositionAngle
from orbitax.epoch import Epoch
from orbitax.errors import (
    ConfigurationError,
    EstimationCancelledError,
    EstimationConvergenceError,
    SingularNormalEquationsError,
)
from orbitax.estimation import (
    BatchLSEstimator,
    GaussNewton,
    LevenbergMarquardt,
    ParameterDriver,
    PropagatorBuilder,
    element_names,
    element_scales,
)
from orbitax.events import Action, ContinueOnEvent, date_detector
from orbitax.orbit_dynamics import create_orbit_dynamics
from orbitax.orbit_measurements import (
    GroundStation,
    InterSatelliteRangeBuilder,
    PositionBuilder,
    PVBuilder,
    RangeBuilder,
    RangeRateBuilder,
    generate_measurements,
    position_measurement,
)
from orbitax.propagation import NumericalPropagator, SpacecraftState

_EPOCH = Epoch(2024, 5, 1, 6, 0, 0.0)
_MODEL = create_orbit_dynamics(_EPOCH)
_OFFSET = np.array([120.0, -80.0, 60.0, 0.08, -0.05, 0.1])
_STATIONS = (
    GroundStation.from_degrees("kiruna", 20.96, 67.86, 400.0),
    GroundStation.from_degrees("hartebeesthoek", 27.71, -25.89, 1500.0),
    GroundStation.from_degrees("santiago", -70.67, -33.15, 700.0),
)


def _truth(anomaly=0.2, epoch=_EPOCH):
    return SpacecraftState.from_elements(
        epoch, [R_EARTH + 650e3, 0.002, 1.2, 0.7, 0.4, anomaly],
        OrbitType.KEPLERIAN, PositionAngle.TRUE, GM_EARTH,
    )


def _guess(truth, offset=_OFFSET):
    return SpacecraftState.from_cartesian(truth.epoch, np.asarray(truth.cartesian) + offset, GM_EARTH)


def _builder(truth, offset=_OFFSET, **kwargs):
    kwargs.setdefault("position_scale", 10.0)
    return PropagatorBuilder(_guess(truth, offset), _MODEL, **kwargs)


def _measure(truths, builder, start=_EPOCH, span=1800.0, step=300.0):
    propagators = [NumericalPropagator(t, _MODEL) for t in truths]
    return generate_measurements(propagators, builder, start, start + span, step)


def _estimator(builders, measurements, **kwargs):
    estimator = BatchLSEstimator(builders, **kwargs)
    for m in measurements:
        estimator.add_measurement(m)
    return estimator


def _assert_recovered(builder, truth, position_tol=0.5, velocity_tol=1e-3):
    estimated = np.asarray(builder.initial_state().cartesian)
    expected = np.asarray(truth.cartesian)
    np.testing.assert_allclose(estimated[:3], expected[:3], atol=position_tol)
    np.testing.assert_allclose(estimated[3:], expected[3:], atol=velocity_tol)


class _CancelOnEvent(ContinueOnEvent):
    def __init__(self):
        self.estimator = None

    def event_occurred(self, state, detector, increasing):
        self.estimator.cancel()
        return Action.CONTINUE


# ──────────────────────────────────────────────
# PropagatorBuilder
# ──────────────────────────────────────────────


class TestPropagatorBuilder:
    def test_element_names(self):
        assert element_names(OrbitType.CARTESIAN) == ("x", "y", "z", "vx", "vy", "vz")
        assert element_names(OrbitType.EQUINOCTIAL)[-1] == "lambda"

    def test_cartesian_scales(self):
        x = np.asarray(_truth().cartesian)
        scales = element_scales(x, OrbitType.CARTESIAN, PositionAngle.TRUE, GM_EARTH, 10.0)
        r, v = np.linalg.norm(x[:3]), np.linalg.norm(x[3:])
        np.testing.assert_allclose(scales, [10.0] * 3 + [GM_EARTH * 10.0 / (v * r * r)] * 3)

    def test_keplerian_scales_positive(self):
        scales = element_scales(_truth().cartesian, OrbitType.KEPLERIAN, PositionAngle.MEAN,
                                GM_EARTH, 10.0)
        assert np.all(scales > 0.0)
        # semi-major axis moves by roughly the position scale
        assert 5.0 < scales[0] < 100.0

    def test_drivers(self):
        builder = _builder(_truth())
        assert builder.parameters.names == ("x", "y", "z", "vx", "vy", "vz", "mu")
        assert builder.parameters.selected_names == builder.orbital_names
        assert builder.parameters["mu"].value == GM_EARTH

    def test_estimated_force_parameters(self):
        builder = _builder(_truth(), estimated_parameters=("mu",))
        assert "mu" in builder.parameters.selected_names
        with pytest.raises(ConfigurationError, match="unknown force-model parameters"):
            _builder(_truth(), estimated_parameters=("cd",))

    def test_position_scale_validation(self):
        with pytest.raises(ConfigurationError, match="position_scale"):
            _builder(_truth(), position_scale=0.0)

    def test_orbit_type_of_drivers(self):
        builder = _builder(_truth(), orbit_type=OrbitType.EQUINOCTIAL, angle_type=PositionAngle.MEAN)
        assert builder.orbital_names == element_names(OrbitType.EQUINOCTIAL)
        np.testing.assert_allclose(np.asarray(builder.initial_state().cartesian),
                                   np.asarray(_guess(_truth()).cartesian), atol=1e-6)

    def test_initial_state_from_snapshot(self):
        builder = _builder(_truth())
        moved = builder.parameters.with_values(builder.parameters.values + 1.0)
        state = builder.initial_state(moved)
        np.testing.assert_allclose(np.asarray(state.cartesian),
                                   np.asarray(_guess(_truth()).cartesian) + 1.0)

    def test_build_enables_sensitivity(self):
        builder = _builder(_truth())
        state = builder.build().propagate(_EPOCH + 60.0)
        assert state.stm is not None
        assert state.param_jacobian.shape == (6, 1)

    def test_select_and_set_driver(self):
        builder = _builder(_truth())
        builder.select("x", False)
        assert "x" not in builder.parameters.selected_names
        builder.set_driver(ParameterDriver("mu", GM_EARTH, scale=1e6, selected=True))
        assert builder.parameters["mu"].scale == 1e6
        with pytest.raises(ConfigurationError, match="no parameter named"):
            builder.select("cd")
        with pytest.raises(ConfigurationError, match="no parameter named"):
            builder.set_driver(ParameterDriver("cd", 2.2))


# ──────────────────────────────────────────────
# Estimator configuration
# ──────────────────────────────────────────────


class TestEstimatorConfiguration:
    def test_needs_builders(self):
        with pytest.raises(ConfigurationError, match="at least one"):
            BatchLSEstimator([])
        with pytest.raises(ConfigurationError, match="PropagatorBuilder"):
            BatchLSEstimator([_MODEL])

    def test_setters(self):
        estimator = BatchLSEstimator([_builder(_truth())])
        with pytest.raises(ConfigurationError):
            estimator.set_convergence_threshold(0.0, 0.0)
        with pytest.raises(ConfigurationError):
            estimator.set_convergence_threshold(-1.0, 1.0)
        with pytest.raises(ConfigurationError, match="positive"):
            estimator.set_convergence_threshold(0.0, 1e-3)
        with pytest.raises(ConfigurationError, match="positive"):
            estimator.set_convergence_threshold(1e-3, 0.0)
        with pytest.raises(ConfigurationError):
            estimator.set_max_iterations(-1)
        with pytest.raises(ConfigurationError):
            estimator.set_max_evaluations(0)
        with pytest.raises(ConfigurationError):
            estimator.set_parallelism(0)

    def test_measurement_arc_index(self):
        estimator = BatchLSEstimator([_builder(_truth())])
        m = position_measurement(_EPOCH, np.zeros(3), 1.0, propagator_index=1)
        with pytest.raises(ConfigurationError, match="only 1 configured"):
            estimator.add_measurement(m)

    def test_measurement_parameter_clash(self):
        estimator = BatchLSEstimator([_builder(_truth())])
        builder = RangeBuilder(_STATIONS[0], 1.0, bias=ParameterDriver("x", 0.0))
        (m,) = _measure([_truth()], builder, span=0.0)
        with pytest.raises(ConfigurationError, match="clash"):
            estimator.add_measurement(m)

    def test_no_measurements(self):
        with pytest.raises(ConfigurationError, match="no measurements"):
            BatchLSEstimator([_builder(_truth())]).estimate()

    def test_initial_diagnostics(self):
        estimator = BatchLSEstimator([_builder(_truth())])
        assert estimator.last_result is None
        assert estimator.residuals is None
        assert estimator.covariance is None
        assert estimator.iterations_count == 0


# ──────────────────────────────────────────────
# Single arc
# ──────────────────────────────────────────────


class TestSingleArc:
    def test_pv_converges(self):
        truth = _truth()
        builder = _builder(truth)
        estimator = _estimator([builder], _measure([truth], PVBuilder(5.0, 5e-3)))
        result = estimator.estimate()

        assert result.converged
        assert 1 <= result.iterations <= 10
        assert result.evaluations == estimator.evaluations_count
        assert result.rms < 1e-2
        assert result.residuals.shape == (7 * 6,)
        assert len(result.estimated_measurements) == 7
        assert len(result.propagator_states) == 1
        assert len(result.propagator_states[0]) == 7
        _assert_recovered(builder, truth)

    def test_covariance(self):
        truth = _truth()
        estimator = _estimator([_builder(truth)], _measure([truth], PVBuilder(5.0, 5e-3)))
        result = estimator.estimate()
        assert result.covariance.shape == (6, 6)
        np.testing.assert_allclose(result.covariance, result.covariance.T, rtol=1e-8, atol=1e-20)
        sigma = result.standard_deviations
        # seven 5 m fixes constrain each position component below 5 m
        assert np.all(sigma[:3] < 5.0)
        assert np.all(sigma > 0.0)

    def test_writes_back_estimate(self):
        truth = _truth()
        builder = _builder(truth)
        result = _estimator([builder], _measure([truth], PVBuilder(5.0, 5e-3))).estimate()
        np.testing.assert_allclose(builder.parameters.values, result.parameters.values)
        assert builder.parameters.names == result.parameters.names

    def test_ranges_with_bias(self):
        truth = _truth()
        builder = _builder(truth, offset=_OFFSET * 5.0)
        measurements = []
        for station in _STATIONS:
            measurements += _measure([truth], RangeBuilder(station, 2.0), span=3600.0, step=120.0)
        biased = RangeRateBuilder(_STATIONS[0], 1e-3, bias=ParameterDriver("rr_bias", 0.05))
        rates = _measure([truth], biased, span=3600.0, step=120.0)
        # start the bias estimate at zero
        rates = [m._replace(parameters=(ParameterDriver("rr_bias", 0.0),)) for m in rates]

        estimator = _estimator([builder], measurements + rates, optimizer=GaussNewton())
        result = estimator.estimate()

        assert result.converged
        assert result.parameters.selected_names[-1] == "rr_bias"
        assert result.parameters["rr_bias"].value == pytest.approx(0.05, abs=1e-4)
        _assert_recovered(builder, truth, position_tol=1.0, velocity_tol=2e-3)

    def test_measurements_on_both_sides_of_the_initial_epoch(self):
        truth = _truth()
        middle = NumericalPropagator(truth, _MODEL).propagate(_EPOCH + 900.0)
        builder = _builder(middle)
        estimator = _estimator([builder], _measure([truth], PVBuilder(5.0, 5e-3)))
        result = estimator.estimate()
        assert result.converged
        _assert_recovered(builder, middle)

    def test_estimates_force_parameter(self):
        truth = _truth()
        builder = _builder(truth, estimated_parameters=("mu",))
        builder.set_driver(ParameterDriver("mu", GM_EARTH * (1.0 + 1e-6), scale=1e7))
        measurements = _measure([truth], PVBuilder(1.0, 1e-3), span=5400.0, step=300.0)
        result = _estimator([builder], measurements).estimate()
        assert result.converged
        assert result.parameters["mu"].value == pytest.approx(GM_EARTH, rel=1e-8)


# ──────────────────────────────────────────────
# Failure modes
# ──────────────────────────────────────────────


class TestFailures:
    def test_zero_iterations_reports_diagnostics(self):
        truth = _truth()
        builder = _builder(truth)
        estimator = _estimator([builder], _measure([truth], PVBuilder(5.0, 5e-3)))
        estimator.set_max_iterations(0)
        with pytest.raises(EstimationConvergenceError) as excinfo:
            estimator.estimate()
        result = excinfo.value.result
        assert not result.converged
        assert result.iterations == 0
        assert result.evaluations == 1
        assert result.rms > 1.0
        assert estimator.last_result is result
        np.testing.assert_allclose(builder.parameters.values, np.asarray(_guess(truth).cartesian))

    def test_evaluation_budget(self):
        truth = _truth()
        estimator = _estimator([_builder(truth)], _measure([truth], PVBuilder(5.0, 5e-3)))
        estimator.set_max_evaluations(1)
        with pytest.raises(EstimationConvergenceError, match="evaluation budget"):
            estimator.estimate()

    def test_unobservable_problem(self):
        truth = _truth()
        measurements = _measure([truth], PositionBuilder(1.0), span=0.0)
        with pytest.raises(SingularNormalEquationsError):
            _estimator([_builder(truth)], measurements).estimate()

    def test_cancel(self):
        truth = _truth()
        builder = _builder(truth)
        handler = _CancelOnEvent()
        builder.add_event_detector(date_detector(_EPOCH + 100.0, handler=handler))
        estimator = _estimator([builder], _measure([truth], PVBuilder(5.0, 5e-3)))
        handler.estimator = estimator
        with pytest.raises(EstimationCancelledError):
            estimator.estimate()
        assert estimator.evaluations_count == 1


# ──────────────────────────────────────────────
# Convergence criteria
# ──────────────────────────────────────────────


class _RejectEveryStep(LevenbergMarquardt):
    """Levenberg-Marquardt that raises its damping on every trial."""

    def update(self, cost, trial_cost, state):
        _, state = super().update(cost, cost, state)
        return False, state


class TestConvergenceCriteria:
    @pytest.mark.parametrize("relative, absolute", [(1e-30, 1e9), (1e9, 1e-30)])
    def test_both_thresholds_must_hold(self, relative, absolute):
        truth = _truth()
        estimator = _estimator([_builder(truth)], _measure([truth], PVBuilder(5.0, 5e-3)))
        estimator.set_convergence_threshold(relative, absolute)
        estimator.set_max_iterations(3)
        with pytest.raises(EstimationConvergenceError, match="no convergence") as excinfo:
            estimator.estimate()
        assert not excinfo.value.result.converged
        assert excinfo.value.result.iterations == 3

    def test_relative_threshold_scales_with_parameter_magnitude(self):
        # 1e-6 of a 7000 km state with 10 m scales admits steps of several metres
        truth = _truth()
        builder = _builder(truth)
        estimator = _estimator([builder], _measure([truth], PVBuilder(5.0, 5e-3)))
        estimator.set_convergence_threshold(1e-6, 1e9)
        result = estimator.estimate()
        assert result.converged
        _assert_recovered(builder, truth)

    def test_rejected_steps_do_not_converge(self):
        truth = _truth()
        builder = _builder(truth)
        estimator = _estimator([builder], _measure([truth], PVBuilder(5.0, 5e-3)),
                               optimizer=_RejectEveryStep())
        estimator.set_max_iterations(10)
        with pytest.raises(EstimationConvergenceError, match="no convergence") as excinfo:
            estimator.estimate()
        result = excinfo.value.result
        assert not result.converged
        assert result.iterations == 10
        assert result.rms > 1.0
        np.testing.assert_allclose(builder.parameters.values, np.asarray(_guess(truth).cartesian))

    def test_rejection_at_the_optimum_still_converges(self):
        truth = _truth()
        builder = _builder(truth, offset=np.zeros(6))
        estimator = _estimator([builder], _measure([truth], PVBuilder(5.0, 5e-3)),
                               optimizer=_RejectEveryStep())
        result = estimator.estimate()
        assert result.converged
        assert result.iterations == 1
        _assert_recovered(builder, truth, position_tol=1e-3, velocity_tol=1e-6)


# ──────────────────────────────────────────────
# Multiple arcs
# ──────────────────────────────────────────────


class TestMultiArc:
    def _scenario(self):
        truths = [_truth(), _truth(anomaly=0.25)]
        builders = [_builder(truths[0]), _builder(truths[1], offset=-_OFFSET)]
        measurements = (
            _measure(truths, PVBuilder(5.0, 5e-3, propagator_index=0))
            + _measure(truths, PositionBuilder(5.0, propagator_index=1))
            + _measure(truths, InterSatelliteRangeBuilder(0.5))
        )
        return truths, builders, measurements

    def test_qualified_names(self):
        _, builders, measurements = self._scenario()
        estimator = _estimator(builders, measurements)
        names = estimator.parameters.names
        assert names[:7] == ("x[0]", "y[0]", "z[0]", "vx[0]", "vy[0]", "vz[0]", "mu[0]")
        assert names[7] == "x[1]"
        assert len(estimator.parameters.selected) == 12

    def test_converges_and_writes_back(self):
        truths, builders, measurements = self._scenario()
        result = _estimator(builders, measurements).estimate()
        assert result.converged
        assert len(result.propagator_states) == 2
        for builder, truth in zip(builders, truths):
            assert builder.parameters.names[0] == "x"
            _assert_recovered(builder, truth)

    def test_parallel_arcs_match_serial(self):
        truths, builders, measurements = self._scenario()
        serial = _estimator(builders, measurements).estimate()
        _, builders, _ = self._scenario()
        estimator = _estimator(builders, measurements)
        estimator.set_parallelism(2)
        parallel = estimator.estimate()
        np.testing.assert_allclose(parallel.parameters.values, serial.parameters.values, rtol=1e-12)
