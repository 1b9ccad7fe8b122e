"""The epoch module provides the ``Epoch`` class for representing instants in time.

An Epoch stores an integer Julian Day number, the seconds elapsed within
that day and a Kahan summation compensator.  The compensator keeps the
rounding error of long sequences of small additions (integration steps,
event-time refinements) bounded instead of growing with the number of
additions.

The class is registered as a JAX pytree so force models can evaluate
``epoch_0 + t`` inside ``jax.jit``-compiled dynamics.  Seconds are stored
in the configured float dtype (float64 by default), which resolves
instants to ~1e-11 s.
"""

from __future__ import annotations

import math
import re

import jax
import jax.numpy as jnp

from .config import get_dtype, get_epoch_eq_tolerance
from .constants import JD_MJD_OFFSET
from .time import caldate_to_jd, jd_to_caldate

_JD_J2000 = 2451545

_SECONDS_PER_DAY = 86400.0

_EPOCH_PATTERNS = [
    # YYYY-MM-DD
    re.compile(r'^(\d{4})-(\d{2})-(\d{2})$'),
    # YYYY-MM-DDTHH:MM:SSZ
    re.compile(r'^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})Z?$'),
    # YYYY-MM-DDTHH:MM:SS.fffZ
    re.compile(r'^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})\.(\d+)Z?$'),
]


class Epoch:
    """A single instant in time with compensated arithmetic.

    Constructors:
        Epoch(2018, 1, 1)
        Epoch(2018, 1, 1, 12, 0, 0.0)
        Epoch("2018-01-01T12:00:00Z")
        Epoch(other_epoch)

    Arithmetic:
        ``epoch + seconds`` and ``epoch - seconds`` return new epochs,
        ``epoch_a - epoch_b`` returns the elapsed seconds.  Epochs are
        immutable; every operation returns a new instance.
    """

    __slots__ = ('_jd', '_seconds', '_kahan_c')

    def __init__(self, *args: int | float | str | Epoch) -> None:
        self._jd = jnp.int32(0)
        self._seconds = jnp.asarray(0.0, dtype=get_dtype())
        self._kahan_c = jnp.asarray(0.0, dtype=get_dtype())

        if len(args) == 1:
            if isinstance(args[0], str):
                self._init_string(args[0])
            elif isinstance(args[0], Epoch):
                self._init_epoch(args[0])
            else:
                raise ValueError(f"Cannot construct Epoch from {type(args[0])}")
        elif 3 <= len(args) <= 6:
            self._init_date(*args)
        else:
            raise ValueError(
                "Epoch requires date components (3-6 args), a string, or an Epoch"
            )

    @classmethod
    def _from_internal(cls, jd, seconds, kahan_c):
        """Create an Epoch from already-normalized internal arrays."""
        obj = object.__new__(cls)
        obj._jd = jd
        obj._seconds = seconds
        obj._kahan_c = kahan_c
        return obj

    def _init_date(self, year, month, day, hour=0, minute=0, second=0.0):
        jd_full = float(caldate_to_jd(year, month, day))

        jd_int = int(math.floor(jd_full))
        frac_day = jd_full - jd_int

        seconds = (frac_day * _SECONDS_PER_DAY
                   + hour * 3600.0 + minute * 60.0 + second)

        self._jd = jnp.int32(jd_int)
        self._seconds = jnp.asarray(seconds, dtype=get_dtype())
        self._kahan_c = jnp.asarray(0.0, dtype=get_dtype())

        day_offset = jnp.floor(self._seconds / _SECONDS_PER_DAY).astype(jnp.int32)
        self._seconds = self._seconds - day_offset * _SECONDS_PER_DAY
        self._jd = self._jd + day_offset

    def _init_string(self, string):
        for pattern in _EPOCH_PATTERNS:
            m = pattern.match(string)
            if m:
                groups = m.groups()
                year, month, day = int(groups[0]), int(groups[1]), int(groups[2])
                hour, minute, second = 0, 0, 0.0

                if len(groups) >= 6:
                    hour = int(groups[3])
                    minute = int(groups[4])
                    second = float(groups[5])

                if len(groups) == 7:
                    second += float(f"0.{groups[6]}")

                self._init_date(year, month, day, hour, minute, second)
                return

        raise ValueError(
            f'Invalid Epoch string: "{string}" is not ISO 8601 compliant'
        )

    def _init_epoch(self, other):
        self._jd = other._jd
        self._seconds = other._seconds
        self._kahan_c = other._kahan_c

    def _compensated_seconds(self):
        """Return the seconds-of-day with the Kahan compensation applied."""
        return self._seconds - self._kahan_c

    # Arithmetic operators

    def __add__(self, delta: float) -> Epoch:
        """Return a new Epoch advanced by *delta* seconds.

        Uses Kahan compensated summation; the day rollover is a single
        floor division so the operation stays traceable under ``jax.jit``.
        """
        _float = get_dtype()
        delta = jnp.asarray(delta, dtype=_float)
        y = delta - self._kahan_c
        t = self._seconds + y
        new_kahan_c = (t - self._seconds) - y

        day_offset = jnp.floor(t / _SECONDS_PER_DAY).astype(jnp.int32)
        new_seconds = t - day_offset.astype(_float) * _SECONDS_PER_DAY
        new_jd = self._jd + day_offset

        return Epoch._from_internal(new_jd, new_seconds, new_kahan_c)

    def __sub__(self, other: Epoch | float) -> Epoch | jax.Array:
        """Elapsed seconds between two epochs, or an epoch moved back in time."""
        if isinstance(other, Epoch):
            return ((self._jd - other._jd) * _SECONDS_PER_DAY
                    + (self._compensated_seconds()
                       - other._compensated_seconds()))
        return self.__add__(-jnp.asarray(other, dtype=get_dtype()))

    # Comparison operators

    def __eq__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return jnp.abs(self - other) < get_epoch_eq_tolerance()

    def __ne__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return ~self.__eq__(other)

    def __lt__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return (self - other) < 0.0

    def __le__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self.__lt__(other) | self.__eq__(other)

    def __gt__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return (self - other) > 0.0

    def __ge__(self, other):
        if not isinstance(other, Epoch):
            return NotImplemented
        return self.__gt__(other) | self.__eq__(other)

    # Time properties

    def caldate(self) -> tuple[int, int, int, int, int, float]:
        """Return the calendar date components.

        Extracts concrete Python values and is therefore not traceable
        under ``jax.jit``.

        Returns:
            tuple: (year, month, day, hour, minute, second) where second
                includes the fractional part.
        """
        comp_seconds = float(self._compensated_seconds())
        jd_full = int(self._jd) + comp_seconds / _SECONDS_PER_DAY

        year, month, day, _, _, _ = jd_to_caldate(jd_full)

        # JD days start at noon
        civil_time = (comp_seconds + 43200.0) % _SECONDS_PER_DAY

        hour = int(civil_time // 3600)
        civil_time -= hour * 3600
        minute = int(civil_time // 60)
        second = civil_time - minute * 60

        return int(year), int(month), int(day), hour, minute, second

    def jd(self) -> jax.Array:
        """Return the Julian Date as a single float."""
        _float = get_dtype()
        return self._jd.astype(_float) + self._compensated_seconds() / _SECONDS_PER_DAY

    def mjd(self) -> jax.Array:
        """Return the Modified Julian Date as a single float."""
        return self.jd() - JD_MJD_OFFSET

    def julian_centuries(self) -> jax.Array:
        """Julian centuries elapsed since J2000.0, from the split representation."""
        _float = get_dtype()
        days_from_j2000 = (self._jd - jnp.int32(_JD_J2000)).astype(_float)
        frac_day = self._compensated_seconds() / _SECONDS_PER_DAY
        return (days_from_j2000 + frac_day) / 36525.0

    def gmst(self) -> jax.Array:
        """Greenwich Mean Sidereal Time (IAU 1982 model) in radians.

        UTC is used as an approximation of UT1.

        References:

            1. D. Vallado, *Fundamentals of Astrodynamics and Applications
               (4th Ed.)*, 2010.
        """
        t_ut1 = self.julian_centuries()

        gmst_sec = (67310.54841
                    + (876600.0 * 3600.0 + 8640184.812866) * t_ut1
                    + 0.093104 * t_ut1 * t_ut1
                    - 6.2e-6 * t_ut1 * t_ut1 * t_ut1)

        two_pi = 2.0 * jnp.pi
        return jnp.mod(gmst_sec / 240.0 * jnp.pi / 180.0, two_pi)

    # String representations

    def __str__(self):
        year, month, day, hour, minute, second = self.caldate()
        return (f'{year:04d}-{month:02d}-{day:02d}T'
                f'{hour:02d}:{minute:02d}:{second:06.3f}Z')

    def __repr__(self):
        return (f'Epoch(_jd={int(self._jd)}, _seconds={float(self._seconds)}, '
                f'_kahan_c={float(self._kahan_c)})')

    def __hash__(self):
        return hash((int(self._jd), round(float(self._compensated_seconds()), 6)))


jax.tree_util.register_pytree_node(
    Epoch,
    lambda e: ((e._jd, e._seconds, e._kahan_c), None),
    lambda _, children: Epoch._from_internal(*children),
)
