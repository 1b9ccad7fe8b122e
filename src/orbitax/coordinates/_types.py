"""Orbit parameter and position-angle conventions.

An orbit is encoded as six real numbers whose meaning depends on the
:class:`OrbitType`; for the angular element the :class:`PositionAngle`
selects which anomaly (true, mean or eccentric) is stored.

| Type          | Elements                                      |
|---------------|-----------------------------------------------|
| CARTESIAN     | ``[x, y, z, vx, vy, vz]``                     |
| KEPLERIAN     | ``[a, e, i, RAAN, omega, anomaly]``           |
| CIRCULAR      | ``[a, ex, ey, i, RAAN, alpha]``               |
| EQUINOCTIAL   | ``[a, ex, ey, hx, hy, lambda]``               |

For CIRCULAR, ``ex, ey`` are the eccentricity vector components in the
node frame and ``alpha`` the argument of latitude.  For EQUINOCTIAL,
``ex, ey`` are expressed in the equinoctial frame, ``hx, hy`` are
``tan(i/2) * (cos, sin)(RAAN)`` and ``lambda`` the longitude argument.
"""

from __future__ import annotations

import enum


class OrbitType(enum.Enum):
    """Set of six parameters used to encode an orbit."""

    CARTESIAN = "cartesian"
    KEPLERIAN = "keplerian"
    CIRCULAR = "circular"
    EQUINOCTIAL = "equinoctial"


class PositionAngle(enum.Enum):
    """Anomaly stored as the sixth orbital element."""

    TRUE = "true"
    MEAN = "mean"
    ECCENTRIC = "eccentric"
