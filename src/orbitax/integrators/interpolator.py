"""Dense output over one accepted step.

A cubic Hermite polynomial matching the state and its derivative at both
ends of the step.  Evaluation is host-side NumPy: the event root search
calls it many times per step with scalar times and gains nothing from
tracing.
"""

from __future__ import annotations

from typing import NamedTuple

import numpy as np


class StepInterpolator(NamedTuple):
    """Cubic Hermite interpolant of an accepted step ``[t0, t1]``.

    Attributes:
        t0: Step start time [s].
        t1: Step end time [s].
        y0: State at *t0*.
        y1: State at *t1*.
        f0: Derivative at *t0*.
        f1: Derivative at *t1*.
    """

    t0: float
    t1: float
    y0: np.ndarray
    y1: np.ndarray
    f0: np.ndarray
    f1: np.ndarray

    @property
    def forward(self) -> bool:
        return self.t1 >= self.t0

    @property
    def h(self) -> float:
        return self.t1 - self.t0

    def __call__(self, t: float) -> np.ndarray:
        """Interpolated state at *t*; exact at both step ends."""
        if t == self.t0:
            return self.y0
        if t == self.t1:
            return self.y1
        h = self.h
        s = (t - self.t0) / h
        s2 = s * s
        s3 = s2 * s
        h00 = 2.0 * s3 - 3.0 * s2 + 1.0
        h10 = s3 - 2.0 * s2 + s
        h01 = -2.0 * s3 + 3.0 * s2
        h11 = s3 - s2
        return h00 * self.y0 + h10 * h * self.f0 + h01 * self.y1 + h11 * h * self.f1

    def restricted(self, t_start: float) -> StepInterpolator:
        """Same polynomial, reporting *t_start* as the start of the step.

        Used after a CONTINUE event so the rest of the step can be
        searched again.
        """
        y = self(t_start)
        f = self.derivative(t_start)
        return StepInterpolator(t_start, self.t1, y, self.y1, f, self.f1)

    def derivative(self, t: float) -> np.ndarray:
        """Derivative of the interpolant at *t*."""
        h = self.h
        s = (t - self.t0) / h
        s2 = s * s
        d00 = (6.0 * s2 - 6.0 * s) / h
        d10 = 3.0 * s2 - 4.0 * s + 1.0
        d01 = (-6.0 * s2 + 6.0 * s) / h
        d11 = 3.0 * s2 - 2.0 * s
        return d00 * self.y0 + d10 * self.f0 + d01 * self.y1 + d11 * self.f1
