"""Tests for the orbitax.coordinates module.

Covers the orbit parameterizations (Keplerian, circular, equinoctial) in
every position-angle convention, Kepler's equation, and the WGS84 geodetic
and horizon-frame conversions used by ground stations.
"""

import math

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from orbitax.constants import GM_EARTH, R_EARTH, WGS84_a, WGS84_f
from orbitax.coordinates import (
    OrbitType,
    PositionAngle,
    anomaly_eccentric_to_true,
    anomaly_mean_to_eccentric,
    anomaly_mean_to_true,
    anomaly_true_to_mean,
    cartesian_to_elements,
    cartesian_to_keplerian,
    convert_position_angle,
    elements_to_cartesian,
    keplerian_to_cartesian,
    position_ecef_to_geodetic,
    position_geodetic_to_ecef,
    rotation_ecef_to_enz,
    wrap_to_2pi,
)

_POS_TOL = 1e-6  # metres
_VEL_TOL = 1e-9  # m/s
_ANGLE_TOL = 1e-10  # radians


def _leo_state():
    oe = jnp.array([R_EARTH + 700e3, 0.05, 0.9, 1.2, 0.4, 2.0])
    return keplerian_to_cartesian(oe, GM_EARTH)


def _angle_diff(a, b):
    return abs((float(a) - float(b) + math.pi) % (2.0 * math.pi) - math.pi)


# ──────────────────────────────────────────────
# Keplerian elements
# ──────────────────────────────────────────────


class TestKeplerian:
    def test_circular_equatorial_at_perigee(self):
        a = R_EARTH + 500e3
        x = keplerian_to_cartesian(jnp.array([a, 0.0, 0.0, 0.0, 0.0, 0.0]), GM_EARTH)
        v = math.sqrt(GM_EARTH / a)
        np.testing.assert_allclose(np.asarray(x), [a, 0.0, 0.0, 0.0, v, 0.0], atol=_POS_TOL)

    def test_perigee_radius(self):
        a, e = R_EARTH + 1000e3, 0.1
        x = keplerian_to_cartesian(jnp.array([a, e, 0.5, 0.3, 0.2, 0.0]), GM_EARTH)
        assert float(jnp.linalg.norm(x[:3])) == pytest.approx(a * (1.0 - e), rel=1e-12)

    def test_polar_orbit_reaches_pole(self):
        a = R_EARTH + 500e3
        oe = jnp.array([a, 0.0, math.pi / 2, 0.0, 0.0, math.pi / 2])
        x = keplerian_to_cartesian(oe, GM_EARTH)
        assert float(x[2]) == pytest.approx(a, rel=1e-12)

    def test_recovers_elements(self):
        oe = jnp.array([R_EARTH + 700e3, 0.05, 0.9, 1.2, 0.4, 2.0])
        back = cartesian_to_keplerian(keplerian_to_cartesian(oe, GM_EARTH), GM_EARTH)
        assert float(back[0]) == pytest.approx(float(oe[0]), rel=1e-12)
        assert float(back[1]) == pytest.approx(0.05, abs=1e-12)
        for k in (2, 3, 4, 5):
            assert _angle_diff(back[k], oe[k]) < _ANGLE_TOL

    def test_mean_anomaly_input(self):
        a, e, M = R_EARTH + 700e3, 0.05, 1.0
        oe_mean = jnp.array([a, e, 0.9, 1.2, 0.4, M])
        oe_true = oe_mean.at[5].set(anomaly_mean_to_true(M, e))
        x_mean = keplerian_to_cartesian(oe_mean, GM_EARTH, PositionAngle.MEAN)
        x_true = keplerian_to_cartesian(oe_true, GM_EARTH, PositionAngle.TRUE)
        np.testing.assert_allclose(np.asarray(x_mean), np.asarray(x_true), atol=_POS_TOL)


# ──────────────────────────────────────────────
# Round trips through every parameterization
# ──────────────────────────────────────────────


@pytest.mark.parametrize("orbit_type", list(OrbitType))
@pytest.mark.parametrize("angle_type", list(PositionAngle))
def test_cartesian_round_trip(orbit_type, angle_type):
    x = _leo_state()
    elements = cartesian_to_elements(x, orbit_type, angle_type, GM_EARTH)
    back = elements_to_cartesian(elements, orbit_type, angle_type, GM_EARTH)
    np.testing.assert_allclose(np.asarray(back[:3]), np.asarray(x[:3]), atol=_POS_TOL)
    np.testing.assert_allclose(np.asarray(back[3:]), np.asarray(x[3:]), atol=_VEL_TOL)


class TestNonSingularElements:
    def test_equinoctial_equatorial_orbit(self):
        a = R_EARTH + 500e3
        x = jnp.array([a, 0.0, 0.0, 0.0, math.sqrt(GM_EARTH / a), 0.0])
        oe = cartesian_to_elements(x, OrbitType.EQUINOCTIAL, PositionAngle.TRUE, GM_EARTH)
        assert bool(jnp.all(jnp.isfinite(oe)))
        np.testing.assert_allclose(np.asarray(oe[1:5]), 0.0, atol=1e-12)
        assert float(oe[5]) == pytest.approx(0.0, abs=_ANGLE_TOL)

    def test_circular_elements_of_circular_orbit(self):
        a = R_EARTH + 500e3
        x = keplerian_to_cartesian(jnp.array([a, 0.0, 1.0, 0.5, 0.0, 0.7]), GM_EARTH)
        oe = cartesian_to_elements(x, OrbitType.CIRCULAR, PositionAngle.MEAN, GM_EARTH)
        assert float(oe[0]) == pytest.approx(a, rel=1e-12)
        assert abs(float(oe[1])) < 1e-12
        assert abs(float(oe[2])) < 1e-12
        assert float(oe[3]) == pytest.approx(1.0, abs=_ANGLE_TOL)
        assert _angle_diff(oe[5], 0.7) < _ANGLE_TOL

    def test_equinoctial_inclination_vector(self):
        inc, raan = 0.6, 1.1
        x = keplerian_to_cartesian(jnp.array([R_EARTH + 800e3, 0.01, inc, raan, 0.2, 0.3]), GM_EARTH)
        oe = cartesian_to_elements(x, OrbitType.EQUINOCTIAL, PositionAngle.TRUE, GM_EARTH)
        t = math.tan(inc / 2.0)
        assert float(oe[3]) == pytest.approx(t * math.cos(raan), abs=1e-12)
        assert float(oe[4]) == pytest.approx(t * math.sin(raan), abs=1e-12)

    def test_cartesian_is_identity(self):
        x = _leo_state()
        same = cartesian_to_elements(x, OrbitType.CARTESIAN, PositionAngle.TRUE, GM_EARTH)
        np.testing.assert_array_equal(np.asarray(same), np.asarray(x))


# ──────────────────────────────────────────────
# Anomalies
# ──────────────────────────────────────────────


class TestAnomaly:
    def test_circular_orbit_anomalies_coincide(self):
        assert float(anomaly_true_to_mean(1.3, 0.0)) == pytest.approx(1.3, abs=1e-12)

    def test_kepler_equation(self):
        M, e = 0.8, 0.3
        E = float(anomaly_mean_to_eccentric(M, e))
        assert E - e * math.sin(E) == pytest.approx(M, abs=1e-12)

    def test_eccentric_to_true(self):
        E, e = 1.0, 0.2
        nu = float(anomaly_eccentric_to_true(E, e))
        expected = 2.0 * math.atan(math.sqrt((1 + e) / (1 - e)) * math.tan(E / 2.0))
        assert nu == pytest.approx(expected, abs=1e-12)

    @pytest.mark.parametrize("nu", [0.1, 1.5, 3.0, 4.5, 6.0])
    def test_true_mean_round_trip(self, nu):
        back = anomaly_mean_to_true(anomaly_true_to_mean(nu, 0.4), 0.4)
        assert _angle_diff(back, nu) < 1e-11

    def test_convert_position_angle_identity(self):
        assert float(convert_position_angle(0.5, 0.1, 0.0, PositionAngle.MEAN, PositionAngle.MEAN)) == 0.5

    def test_convert_position_angle_matches_classical(self):
        ex, ey = 0.1, 0.0
        alpha = convert_position_angle(1.2, ex, ey, PositionAngle.TRUE, PositionAngle.MEAN)
        assert float(alpha) == pytest.approx(float(anomaly_true_to_mean(1.2, 0.1)), abs=1e-12)

    def test_wrap_to_2pi(self):
        assert float(wrap_to_2pi(-0.5)) == pytest.approx(2.0 * math.pi - 0.5)
        assert float(wrap_to_2pi(7.0)) == pytest.approx(7.0 - 2.0 * math.pi)

    def test_differentiable(self):
        dM = jax.grad(lambda nu: anomaly_true_to_mean(nu, 0.1))(1.0)
        assert bool(jnp.isfinite(dM))


# ──────────────────────────────────────────────
# Geodetic
# ──────────────────────────────────────────────


class TestGeodetic:
    def test_origin_equator(self):
        x = position_geodetic_to_ecef([0.0, 0.0, 0.0])
        np.testing.assert_allclose(np.asarray(x), [WGS84_a, 0.0, 0.0], atol=_POS_TOL)

    def test_north_pole(self):
        x = position_geodetic_to_ecef([0.0, 90.0, 0.0], use_degrees=True)
        b = WGS84_a * (1.0 - WGS84_f)
        assert float(x[2]) == pytest.approx(b, abs=1e-6)

    def test_use_degrees_consistent(self):
        x_rad = position_geodetic_to_ecef([0.5, 0.3, 100.0])
        x_deg = position_geodetic_to_ecef([math.degrees(0.5), math.degrees(0.3), 100.0], use_degrees=True)
        np.testing.assert_allclose(np.asarray(x_rad), np.asarray(x_deg), atol=_POS_TOL)

    @pytest.mark.parametrize("geod", [[0.3, 0.7, 400.0], [-2.0, -0.9, 3000.0], [1.0, 1.5, 10.0]])
    def test_round_trip(self, geod):
        back = position_ecef_to_geodetic(position_geodetic_to_ecef(geod))
        np.testing.assert_allclose(np.asarray(back[:2]), geod[:2], atol=1e-10)
        assert float(back[2]) == pytest.approx(geod[2], abs=1e-4)

    def test_enz_zenith_is_radial_on_equator(self):
        R = rotation_ecef_to_enz(0.0, 0.0)
        np.testing.assert_allclose(np.asarray(R[2]), [1.0, 0.0, 0.0], atol=1e-15)
        np.testing.assert_allclose(np.asarray(R @ R.T), np.eye(3), atol=1e-14)
