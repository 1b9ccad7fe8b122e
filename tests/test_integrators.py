"""Tests for the orbitax.integrators module.

Exercises the Dormand-Prince 5(4) step on problems with known solutions,
the adaptive step-size helpers, and the cubic Hermite step interpolant.
"""

import math

import jax.numpy as jnp
import numpy as np
import pytest

from orbitax.integrators import (
    AdaptiveConfig,
    StepInterpolator,
    compute_error_norm,
    compute_next_step_size,
    dp54_step,
    estimate_initial_step,
    make_dp54_stepper,
)


def _harmonic(t, x, p):
    return jnp.array([x[1], -p[0] * x[0]])


def _decay(t, x, p):
    return -p[0] * x


def _integrate(step, x0, t_end, dt, params):
    t, x = 0.0, x0
    while t < t_end:
        h = min(dt, t_end - t)
        result = step(t, x, h, params)
        assert float(result.error_estimate) <= 1.0
        t += float(result.dt_used)
        x = result.state
        dt = float(result.dt_next)
    return x


# ──────────────────────────────────────────────
# DP54 step
# ──────────────────────────────────────────────


class TestDP54:
    def test_exponential_decay_single_step(self):
        result = dp54_step(_decay, 0.0, jnp.array([1.0]), 0.1, jnp.array([1.0]))
        assert float(result.state[0]) == pytest.approx(math.exp(-float(result.dt_used)), abs=1e-10)

    def test_derivatives_at_step_ends(self):
        x0 = jnp.array([1.0, 0.0])
        result = dp54_step(_harmonic, 0.0, x0, 0.1, jnp.array([1.0]))
        np.testing.assert_allclose(np.asarray(result.derivative_start), [0.0, -1.0])
        expected_end = _harmonic(0.0, result.state, jnp.array([1.0]))
        np.testing.assert_allclose(np.asarray(result.derivative_end), np.asarray(expected_end), atol=1e-15)

    def test_harmonic_full_period(self):
        step = make_dp54_stepper(_harmonic, AdaptiveConfig(abs_tol=1e-12, rel_tol=1e-12, max_step=0.5))
        x = _integrate(step, jnp.array([1.0, 0.0]), 2.0 * math.pi, 0.1, jnp.array([1.0]))
        np.testing.assert_allclose(np.asarray(x), [1.0, 0.0], atol=1e-9)

    def test_parameters_change_solution(self):
        step = make_dp54_stepper(_harmonic, AdaptiveConfig(abs_tol=1e-12, rel_tol=1e-12, max_step=0.5))
        # omega = 2 completes one period in pi
        x = _integrate(step, jnp.array([1.0, 0.0]), math.pi, 0.1, jnp.array([4.0]))
        np.testing.assert_allclose(np.asarray(x), [1.0, 0.0], atol=1e-9)

    def test_backward_step(self):
        result = dp54_step(_decay, 0.0, jnp.array([1.0]), -0.1, jnp.array([1.0]))
        assert float(result.dt_used) < 0.0
        assert float(result.dt_next) < 0.0
        assert float(result.state[0]) == pytest.approx(math.exp(-float(result.dt_used)), abs=1e-10)

    def test_rejected_step_shrinks(self):
        config = AdaptiveConfig(abs_tol=1e-14, rel_tol=1e-14, max_step=100.0)
        result = dp54_step(_harmonic, 0.0, jnp.array([1.0, 0.0]), 5.0, jnp.array([1.0]), config)
        assert abs(float(result.dt_used)) < 5.0

    def test_attempts_exhausted_reports_error(self):
        config = AdaptiveConfig(abs_tol=1e-15, rel_tol=1e-15, max_step_attempts=1, max_step=100.0)
        result = dp54_step(_harmonic, 0.0, jnp.array([1.0, 0.0]), 5.0, jnp.array([1.0]), config)
        assert float(result.error_estimate) > 1.0
        assert float(result.dt_used) == 5.0


# ──────────────────────────────────────────────
# Step-size control
# ──────────────────────────────────────────────


class TestAdaptive:
    def test_error_norm_uses_mixed_tolerance(self):
        err = compute_error_norm(jnp.array([1e-6, 0.0]), jnp.array([1.0, 0.0]),
                                 jnp.array([1.0, 0.0]), 1e-6, 0.0)
        assert float(err) == pytest.approx(1.0)

    def test_next_step_clamped_to_max(self):
        config = AdaptiveConfig(max_step=10.0)
        assert float(compute_next_step_size(1e-20, 8.0, 4.0, config)) == pytest.approx(10.0)

    def test_next_step_keeps_sign(self):
        config = AdaptiveConfig()
        assert float(compute_next_step_size(0.5, -2.0, 4.0, config)) < 0.0

    def test_large_error_shrinks_by_min_factor(self):
        config = AdaptiveConfig(min_scale_factor=0.2)
        assert float(compute_next_step_size(1e12, 10.0, 4.0, config)) == pytest.approx(2.0)

    def test_initial_step_override(self):
        config = AdaptiveConfig(initial_step=42.0)
        assert estimate_initial_step(np.ones(6), np.ones(6), config) == 42.0

    def test_initial_step_heuristic_within_bounds(self):
        y0 = np.array([7e6, 0.0, 0.0, 0.0, 7.5e3, 0.0])
        f0 = np.array([0.0, 7.5e3, 0.0, -8.0, 0.0, 0.0])
        h = estimate_initial_step(f0, y0, AdaptiveConfig())
        assert AdaptiveConfig().min_step <= h <= AdaptiveConfig().max_step


# ──────────────────────────────────────────────
# Interpolator
# ──────────────────────────────────────────────


class TestStepInterpolator:
    def _interp(self, t0=0.0, t1=1.0):
        # x(t) = t^3 is reproduced exactly by a cubic Hermite polynomial
        y = lambda t: np.array([t ** 3])
        f = lambda t: np.array([3.0 * t ** 2])
        return StepInterpolator(t0, t1, y(t0), y(t1), f(t0), f(t1))

    def test_exact_at_ends(self):
        interp = self._interp()
        np.testing.assert_array_equal(interp(0.0), [0.0])
        np.testing.assert_array_equal(interp(1.0), [1.0])

    def test_reproduces_cubic(self):
        interp = self._interp()
        assert interp(0.3)[0] == pytest.approx(0.027)
        assert interp.derivative(0.3)[0] == pytest.approx(0.27)

    def test_direction(self):
        assert self._interp().forward
        assert not self._interp(1.0, 0.0).forward
        assert self._interp(1.0, 0.0).h == -1.0

    def test_restricted(self):
        interp = self._interp().restricted(0.5)
        assert interp.t0 == 0.5
        assert interp(0.5)[0] == pytest.approx(0.125)
        assert interp(0.8)[0] == pytest.approx(0.512)
