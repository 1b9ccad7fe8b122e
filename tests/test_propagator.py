"""Tests for the orbitax.propagation.NumericalPropagator.

Covers two-body accuracy in several parameterizations, event actions and
their ordering, additional equations, sensitivity propagation against
finite differences, multi-epoch and backward runs, and the wrapping of
user-code failures.
"""

import math

import jax.numpy as jnp
import numpy as np
import pytest

from orbitax.constants import GM_EARTH, R_EARTH
from orbitax.coordinates import OrbitType, PositionAngle
from orbitax.epoch import Epoch
from orbitax.errors import ConfigurationError, PropagationError
from orbitax.events import (
    Action,
    ContinueOnEvent,
    ImpulseManeuverHandler,
    RecordAndContinue,
    ResetDerivativesOnEvent,
    StopOnEvent,
    apside_detector,
    date_detector,
    node_detector,
)
from orbitax.frames import Frame
from orbitax.integrators import AdaptiveConfig
from orbitax.orbit_dynamics import ForceModelConfig, create_orbit_dynamics
from orbitax.propagation import AdditionalEquations, NumericalPropagator, SpacecraftState, StateMapper

_EPOCH = Epoch(2024, 1, 1)
_MODEL = create_orbit_dynamics(_EPOCH)
_A = R_EARTH + 700e3
_PERIOD = 2.0 * math.pi * math.sqrt(_A**3 / GM_EARTH)


def _initial_state(anomaly=0.5):
    return SpacecraftState.from_elements(
        _EPOCH, [_A, 0.01, 0.9, 0.4, 0.3, anomaly], OrbitType.KEPLERIAN, PositionAngle.TRUE, GM_EARTH
    )


def _propagator(state=None, orbit_type=None, angle_type=PositionAngle.TRUE, **kwargs):
    state = state or _initial_state()
    mapper = None
    if orbit_type is not None:
        mapper = StateMapper(state.epoch, GM_EARTH, orbit_type, angle_type, Frame.EME2000)
    return NumericalPropagator(state, _MODEL, mapper=mapper, **kwargs)


# ──────────────────────────────────────────────
# Two-body accuracy
# ──────────────────────────────────────────────


class TestTwoBody:
    def test_mean_elements_follow_kepler(self):
        propagator = _propagator(orbit_type=OrbitType.KEPLERIAN, angle_type=PositionAngle.MEAN)
        state0 = propagator.mapper.map_array_to_state(
            _EPOCH, propagator.mapper.map_state_to_array(_initial_state()))
        final = propagator.propagate(_EPOCH + 1800.0)
        n = math.sqrt(GM_EARTH / _A**3)
        np.testing.assert_allclose(np.asarray(final.elements[:5]), np.asarray(state0.elements[:5]),
                                   rtol=1e-9, atol=1e-9)
        expected = (float(state0.elements[5]) + n * 1800.0) % (2.0 * math.pi)
        assert float(final.elements[5]) % (2.0 * math.pi) == pytest.approx(expected, abs=1e-9)

    @pytest.mark.parametrize("orbit_type", [OrbitType.CARTESIAN, OrbitType.EQUINOCTIAL])
    def test_full_period_returns_to_start(self, orbit_type):
        propagator = _propagator(orbit_type=orbit_type)
        final = propagator.propagate(_EPOCH + _PERIOD)
        np.testing.assert_allclose(np.asarray(final.position), np.asarray(_initial_state().position),
                                   atol=1e-2)
        assert bool(final.epoch == _EPOCH + _PERIOD)

    def test_energy_conserved(self):
        final = _propagator(orbit_type=OrbitType.CARTESIAN).propagate(_EPOCH + 3000.0)
        x = np.asarray(final.cartesian)
        energy = 0.5 * np.dot(x[3:], x[3:]) - GM_EARTH / np.linalg.norm(x[:3])
        assert energy == pytest.approx(-GM_EARTH / (2.0 * _A), rel=1e-10)

    def test_mass_is_carried(self):
        state = _initial_state()._replace(mass=420.0)
        assert _propagator(state).propagate(_EPOCH + 60.0).mass == 420.0


# ──────────────────────────────────────────────
# Events
# ──────────────────────────────────────────────


class TestEvents:
    def test_stop_at_node(self):
        propagator = _propagator()
        propagator.add_event_detector(node_detector())
        final = propagator.propagate(_EPOCH + 86400.0)
        assert abs(float(final.position[2])) < 1e-2
        assert bool(final.epoch < _EPOCH + _PERIOD)
        (event,) = propagator.events
        assert event.action is Action.STOP
        assert not event.increasing

    def test_apsides_over_one_period(self):
        recorder = RecordAndContinue()
        propagator = _propagator()
        propagator.add_event_detector(apside_detector(period=_PERIOD, handler=recorder))
        propagator.propagate(_EPOCH + _PERIOD)
        assert [increasing for _, increasing in recorder.events] == [False, True]
        r_apo = float(jnp.linalg.norm(recorder.events[0][0].position))
        assert r_apo == pytest.approx(_A * 1.01, rel=1e-9)

    def test_simultaneous_events_follow_registration_order(self):
        recorder = RecordAndContinue()
        target = _EPOCH + 300.0
        propagator = _propagator()
        propagator.add_event_detector(date_detector(target, handler=recorder, name="record"))
        propagator.add_event_detector(date_detector(target, handler=StopOnEvent(), name="stop"))
        propagator.propagate(_EPOCH + 600.0)
        assert [e.detector.name for e in propagator.events] == ["record", "stop"]
        assert [e.action for e in propagator.events] == [Action.CONTINUE, Action.STOP]
        assert len(recorder.events) == 1

    def test_stop_registered_first_preempts(self):
        recorder = RecordAndContinue()
        target = _EPOCH + 300.0
        propagator = _propagator()
        propagator.add_event_detector(date_detector(target, name="stop"))
        propagator.add_event_detector(date_detector(target, handler=recorder, name="record"))
        final = propagator.propagate(_EPOCH + 600.0)
        assert [e.detector.name for e in propagator.events] == ["stop"]
        assert recorder.events == []
        assert float(final.epoch - target) == pytest.approx(0.0, abs=1e-6)

    def test_continue_then_later_event(self):
        propagator = _propagator()
        propagator.add_event_detector(date_detector(_EPOCH + 100.0, handler=ContinueOnEvent(), name="first"))
        propagator.add_event_detector(date_detector(_EPOCH + 200.0, name="second"))
        final = propagator.propagate(_EPOCH + 600.0)
        assert [e.detector.name for e in propagator.events] == ["first", "second"]
        assert [e.t for e in propagator.events] == pytest.approx([100.0, 200.0], abs=1e-6)
        assert float(final.epoch - _EPOCH) == pytest.approx(200.0, abs=1e-6)

    def test_events_reset_between_runs(self):
        propagator = _propagator()
        propagator.add_event_detector(date_detector(_EPOCH + 100.0, handler=ContinueOnEvent()))
        propagator.propagate(_EPOCH + 200.0)
        propagator.propagate(_EPOCH + 50.0)
        assert propagator.events == ()

    def test_impulse_reset_state(self):
        burn = ImpulseManeuverHandler([0.0, 10.0, 0.0], local=True)
        propagator = _propagator(orbit_type=OrbitType.EQUINOCTIAL)
        propagator.add_event_detector(date_detector(_EPOCH + 600.0, handler=burn))
        final = propagator.propagate(_EPOCH + 1200.0)

        (event,) = propagator.events
        assert event.action is Action.RESET_STATE
        before = _propagator(orbit_type=OrbitType.EQUINOCTIAL).propagate(event.epoch)
        after = burn.reset_state(None, before)
        reference = _propagator(after).propagate(_EPOCH + 1200.0)
        np.testing.assert_allclose(np.asarray(final.position), np.asarray(reference.position), atol=1e-3)
        unburned = _propagator().propagate(_EPOCH + 1200.0)
        assert float(jnp.linalg.norm(final.position - unburned.position)) > 100.0

    def test_reset_derivatives_keeps_trajectory(self):
        propagator = _propagator(orbit_type=OrbitType.CARTESIAN)
        propagator.add_event_detector(date_detector(_EPOCH + 250.0, handler=ResetDerivativesOnEvent()))
        final = propagator.propagate(_EPOCH + 900.0)
        reference = _propagator(orbit_type=OrbitType.CARTESIAN).propagate(_EPOCH + 900.0)
        assert propagator.events[0].action is Action.RESET_DERIVATIVES
        np.testing.assert_allclose(np.asarray(final.position), np.asarray(reference.position), atol=1e-4)

    def test_handler_failure_wrapped(self):
        class Failing(StopOnEvent):
            def event_occurred(self, state, detector, increasing):
                raise RuntimeError("handler bug")

        propagator = _propagator()
        propagator.add_event_detector(date_detector(_EPOCH + 100.0, handler=Failing()))
        with pytest.raises(PropagationError, match="handler"):
            propagator.propagate(_EPOCH + 200.0)

    def test_rejects_non_detector(self):
        with pytest.raises(ConfigurationError, match="EventDetector"):
            _propagator().add_event_detector(lambda s: 0.0)


# ──────────────────────────────────────────────
# Additional equations and step handlers
# ──────────────────────────────────────────────


class TestAdditionalEquations:
    def test_clock_and_arc_length(self):
        clock = AdditionalEquations("clock", 1, lambda t, x, values, params: jnp.ones(1))
        arc = AdditionalEquations("arc", 1, lambda t, x, values, params: jnp.linalg.norm(x[3:6]))
        state = _initial_state(0.0).with_additional("clock", 5.0).with_additional("arc", 0.0)
        propagator = _propagator(state, orbit_type=OrbitType.EQUINOCTIAL,
                                 additional_equations=(clock, arc))
        final = propagator.propagate(_EPOCH + 600.0)
        assert float(final.additional["clock"][0]) == pytest.approx(605.0, abs=1e-6)
        speed = float(jnp.linalg.norm(_initial_state(0.0).velocity))
        assert float(final.additional["arc"][0]) == pytest.approx(speed * 600.0, rel=5e-3)

    def test_missing_initial_value(self):
        clock = AdditionalEquations("clock", 1, lambda t, x, values, params: jnp.ones(1))
        with pytest.raises(ConfigurationError, match="clock"):
            _propagator(additional_equations=(clock,))

    def test_duplicate_names(self):
        clock = AdditionalEquations("clock", 1, lambda t, x, values, params: jnp.ones(1))
        state = _initial_state().with_additional("clock", 0.0)
        with pytest.raises(ConfigurationError, match="duplicate"):
            _propagator(state, additional_equations=(clock, clock))

    def test_step_handler_sees_contiguous_steps(self):
        steps = []
        propagator = _propagator(step_handler=steps.append)
        propagator.propagate(_EPOCH + 1000.0)
        assert steps[0].t0 == 0.0
        assert steps[-1].t1 == 1000.0
        for prev, nxt in zip(steps, steps[1:]):
            assert nxt.t0 == prev.t1

    def test_step_handler_failure_wrapped(self):
        def failing(interp):
            raise ValueError("bad handler")

        with pytest.raises(PropagationError, match="step handler"):
            _propagator(step_handler=failing).propagate(_EPOCH + 100.0)


# ──────────────────────────────────────────────
# Sensitivities
# ──────────────────────────────────────────────


class TestSensitivity:
    def test_stm_matches_finite_differences(self):
        state = SpacecraftState.from_cartesian(_EPOCH, _initial_state().cartesian, GM_EARTH)
        final = _propagator(state, sensitivity=True).propagate(_EPOCH + 600.0)
        assert final.stm.shape == (6, 6)

        for column, delta in ((0, 1.0), (4, 1e-2)):
            offset = np.zeros(6)
            offset[column] = delta
            plus = _propagator(state._replace(elements=state.elements + offset)).propagate(_EPOCH + 600.0)
            minus = _propagator(state._replace(elements=state.elements - offset)).propagate(_EPOCH + 600.0)
            fd = (np.asarray(plus.cartesian) - np.asarray(minus.cartesian)) / (2.0 * delta)
            np.testing.assert_allclose(np.asarray(final.stm[:, column]), fd, rtol=1e-4, atol=1e-4)

    def test_parameter_jacobian_matches_finite_differences(self):
        state = SpacecraftState.from_cartesian(_EPOCH, _initial_state().cartesian, GM_EARTH)
        final = _propagator(state, sensitivity=True).propagate(_EPOCH + 600.0)
        assert final.param_jacobian.shape == (6, 1)

        dmu = GM_EARTH * 1e-6
        plus = _propagator(state, parameters=[GM_EARTH + dmu]).propagate(_EPOCH + 600.0)
        minus = _propagator(state, parameters=[GM_EARTH - dmu]).propagate(_EPOCH + 600.0)
        fd = (np.asarray(plus.position) - np.asarray(minus.position)) / 2.0
        np.testing.assert_allclose(np.asarray(final.param_jacobian[:3, 0]) * dmu, fd, atol=1e-4)

    def test_stm_in_elements(self):
        final = _propagator(orbit_type=OrbitType.EQUINOCTIAL, sensitivity=True).propagate(_EPOCH + 600.0)
        stm = np.asarray(final.stm)
        # two-body equinoctial elements other than the longitude are constant
        np.testing.assert_allclose(stm[:5, :5], np.eye(5), atol=1e-8)

    def test_stm_mapped_through_impulse(self):
        state = SpacecraftState.from_cartesian(_EPOCH, _initial_state().cartesian, GM_EARTH)
        burn = ImpulseManeuverHandler([0.0, 0.0, 3.0])
        propagator = _propagator(state, sensitivity=True)
        propagator.add_event_detector(date_detector(_EPOCH + 100.0, handler=burn))
        final = propagator.propagate(_EPOCH + 400.0)

        offset = np.zeros(6)
        offset[1] = 1.0

        def run(x0):
            p = _propagator(state._replace(elements=x0))
            p.add_event_detector(date_detector(_EPOCH + 100.0, handler=burn))
            return np.asarray(p.propagate(_EPOCH + 400.0).cartesian)

        fd = (run(state.elements + offset) - run(state.elements - offset)) / 2.0
        np.testing.assert_allclose(np.asarray(final.stm[:, 1]), fd, rtol=1e-4, atol=1e-4)


# ──────────────────────────────────────────────
# Multi-epoch and backward runs
# ──────────────────────────────────────────────


class TestRuns:
    def test_propagate_to_epochs_matches_single_runs(self):
        epochs = [_EPOCH + 300.0, _EPOCH + 450.5, _EPOCH + 1000.0]
        propagator = _propagator(orbit_type=OrbitType.CARTESIAN)
        states = propagator.propagate_to_epochs(epochs)
        assert len(states) == 3
        for epoch, state in zip(epochs, states):
            assert state.epoch is epoch
            single = _propagator(orbit_type=OrbitType.CARTESIAN).propagate(epoch)
            np.testing.assert_allclose(np.asarray(state.position), np.asarray(single.position), atol=1e-4)

    def test_propagate_to_epochs_stops_early(self):
        propagator = _propagator()
        propagator.add_event_detector(date_detector(_EPOCH + 400.0))
        states = propagator.propagate_to_epochs([_EPOCH + 300.0, _EPOCH + 500.0])
        assert len(states) == 1

    def test_epochs_must_be_monotone(self):
        with pytest.raises(ConfigurationError, match="monotone"):
            _propagator().propagate_to_epochs([_EPOCH + 300.0, _EPOCH - 100.0])

    def test_empty_epochs(self):
        assert _propagator().propagate_to_epochs([]) == []

    def test_backward_round_trip(self):
        forward = _propagator(orbit_type=OrbitType.CARTESIAN).propagate(_EPOCH + 900.0)
        back = NumericalPropagator(forward, _MODEL).propagate(_EPOCH)
        np.testing.assert_allclose(np.asarray(back.position), np.asarray(_initial_state().position), atol=1e-4)

    def test_backward_event(self):
        forward = _propagator(orbit_type=OrbitType.CARTESIAN).propagate(_EPOCH + 900.0)
        propagator = NumericalPropagator(forward, _MODEL)
        propagator.add_event_detector(date_detector(_EPOCH + 400.0))
        final = propagator.propagate(_EPOCH)
        assert float(final.epoch - _EPOCH) == pytest.approx(400.0, abs=1e-6)
        assert float(final.epoch - _EPOCH) <= 400.0
        assert not propagator.events[0].increasing


# ──────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────


class TestConfiguration:
    def test_parameter_count(self):
        with pytest.raises(ConfigurationError, match="expected 1 parameters"):
            _propagator(parameters=[GM_EARTH, 2.2])

    def test_requires_dynamics_model(self):
        with pytest.raises(ConfigurationError, match="DynamicsModel"):
            NumericalPropagator(_initial_state(), _MODEL.dynamics)

    def test_mapper_mismatch(self):
        mapper = StateMapper(_EPOCH, GM_EARTH, OrbitType.CARTESIAN, PositionAngle.TRUE, Frame.GCRF)
        with pytest.raises(ConfigurationError, match="frame"):
            NumericalPropagator(_initial_state(), _MODEL, mapper=mapper)

    def test_drag_parameters_default(self):
        model = create_orbit_dynamics(_EPOCH, ForceModelConfig(drag=True))
        propagator = NumericalPropagator(_initial_state(), model, integrator=AdaptiveConfig(max_step=120.0))
        assert propagator.parameter_names == ("mu", "cd")
        np.testing.assert_allclose(propagator.parameters, [GM_EARTH, 2.2])
