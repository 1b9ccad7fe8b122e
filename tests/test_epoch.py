"""Tests for the orbitax.epoch and orbitax.time modules."""

import math

import jax
import jax.numpy as jnp
import pytest

from orbitax.epoch import Epoch
from orbitax.time import caldate_to_jd, caldate_to_mjd, jd_to_caldate


# ──────────────────────────────────────────────
# Calendar conversions
# ──────────────────────────────────────────────


class TestCalendar:
    def test_j2000_julian_date(self):
        assert float(caldate_to_jd(2000, 1, 1, 12, 0, 0.0)) == pytest.approx(2451545.0)

    def test_mjd_offset(self):
        assert float(caldate_to_mjd(2000, 1, 1, 12, 0, 0.0)) == pytest.approx(51544.5)

    def test_jd_round_trip(self):
        year, month, day, hour, minute, second = jd_to_caldate(caldate_to_jd(2024, 2, 29, 18, 0, 0.0))
        assert (int(year), int(month), int(day), int(hour), int(minute)) == (2024, 2, 29, 18, 0)
        assert float(second) == pytest.approx(0.0, abs=1e-3)


# ──────────────────────────────────────────────
# Construction
# ──────────────────────────────────────────────


class TestConstruction:
    def test_from_date(self):
        year, month, day, hour, minute, second = Epoch(2024, 3, 15, 6, 30, 45.0).caldate()
        assert (year, month, day, hour, minute) == (2024, 3, 15, 6, 30)
        assert second == pytest.approx(45.0, abs=1e-6)

    def test_from_string(self):
        assert bool(Epoch("2024-03-15T06:30:45Z") == Epoch(2024, 3, 15, 6, 30, 45.0))

    def test_from_string_fractional(self):
        _, _, _, _, _, second = Epoch("2024-03-15T06:30:45.250Z").caldate()
        assert second == pytest.approx(45.25, abs=1e-6)

    def test_copy(self):
        epc = Epoch(2024, 1, 1)
        assert bool(Epoch(epc) == epc)

    def test_invalid_string(self):
        with pytest.raises(ValueError, match="ISO 8601"):
            Epoch("15/03/2024")

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            Epoch(2024, 1)

    def test_jd_at_j2000(self):
        assert float(Epoch(2000, 1, 1, 12, 0, 0.0).jd()) == pytest.approx(2451545.0)

    def test_str(self):
        assert str(Epoch(2024, 3, 15, 6, 30, 45.0)) == "2024-03-15T06:30:45.000Z"


# ──────────────────────────────────────────────
# Arithmetic
# ──────────────────────────────────────────────


class TestArithmetic:
    def test_add_seconds(self):
        epc = Epoch(2024, 1, 1) + 90.0
        _, _, _, hour, minute, second = epc.caldate()
        assert (hour, minute) == (0, 1)
        assert second == pytest.approx(30.0, abs=1e-9)

    def test_day_rollover(self):
        epc = Epoch(2024, 12, 31, 23, 59, 0.0) + 120.0
        year, month, day, hour, minute, _ = epc.caldate()
        assert (year, month, day, hour, minute) == (2025, 1, 1, 0, 1)

    def test_difference_is_seconds(self):
        dt = Epoch(2024, 1, 2) - Epoch(2024, 1, 1)
        assert float(dt) == pytest.approx(86400.0)

    def test_subtract_seconds(self):
        assert bool(Epoch(2024, 1, 1) - 60.0 == Epoch(2023, 12, 31, 23, 59, 0.0))

    def test_many_small_steps_do_not_drift(self):
        epc = Epoch(2024, 1, 1)
        for _ in range(1000):
            epc = epc + 0.1
        assert float(epc - Epoch(2024, 1, 1)) == pytest.approx(100.0, abs=1e-9)

    def test_offset_round_trip_is_exact(self):
        base = Epoch(2024, 1, 1)
        assert float((base + 1234.5) - base) == 1234.5


# ──────────────────────────────────────────────
# Comparison
# ──────────────────────────────────────────────


class TestComparison:
    def test_ordering(self):
        a, b = Epoch(2024, 1, 1), Epoch(2024, 1, 1) + 1.0
        assert bool(a < b)
        assert bool(b > a)
        assert bool(a <= a)
        assert bool(b >= a)
        assert bool(a != b)

    def test_equality_tolerance(self):
        a = Epoch(2024, 1, 1)
        assert bool(a == a + 1e-12)
        assert not bool(a == a + 1e-6)

    def test_compare_with_other_type(self):
        assert (Epoch(2024, 1, 1) == 5) is False

    def test_hash_consistent(self):
        assert hash(Epoch(2024, 1, 1)) == hash(Epoch("2024-01-01"))


# ──────────────────────────────────────────────
# Sidereal time and JAX integration
# ──────────────────────────────────────────────


class TestSiderealTime:
    def test_gmst_at_j2000(self):
        gmst = float(Epoch(2000, 1, 1, 12, 0, 0.0).gmst())
        assert math.degrees(gmst) == pytest.approx(280.46061837, abs=1e-6)

    def test_gmst_range(self):
        gmst = float(Epoch(2024, 7, 1, 3, 0, 0.0).gmst())
        assert 0.0 <= gmst < 2.0 * math.pi


class TestJax:
    def test_pytree_round_trip(self):
        epc = Epoch(2024, 1, 1, 12, 0, 0.0)
        leaves, treedef = jax.tree_util.tree_flatten(epc)
        assert len(leaves) == 3
        assert bool(jax.tree_util.tree_unflatten(treedef, leaves) == epc)

    def test_add_under_jit(self):
        base = Epoch(2024, 1, 1)

        @jax.jit
        def elapsed(dt):
            return (base + dt) - base

        assert float(elapsed(jnp.asarray(3600.0))) == pytest.approx(3600.0)
