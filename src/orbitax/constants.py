"""
The `constants` module defines the physical constants used by the force
models, the orbit conversions and the measurement models.
"""

from jax.numpy import pi as PI

# Mathematical Constants

"""
Constant to convert degrees to radians. Equal to 2pi/360. Units: *rad/deg*
"""
DEG2RAD = 2.0 * PI / 360.0

"""
Constant to convert radians to degrees. Equal to 360/2pi. Units: *deg/rad*
"""
RAD2DEG = 360.0 / (PI * 2.0)

# Time Constants

"""
Offset between Julian Date and Modified Julian Date. Units: *days*
"""
JD_MJD_OFFSET = 2400000.5

"""
Modified Julian Date of the J2000.0 epoch (2000-01-01 12:00:00 TT). Units: *days*
"""
MJD2000 = 51544.5

# Physical Constants

"""
Speed of light in vacuum. Units: *m/s*

References:
1. D. Vallado, *Fundamentals of Astrodynamics and Applications (4th Ed.)*, 2010
"""
C_LIGHT = 299792458.0

"""
Astronomical Unit. TDB-compatible value. Units: *m*

References:
1. G. Petit and B. Luzum, *IERS Technical Note 36*, 2010
"""
AU = 1.49597870700e11

# Earth Constants

"""
Earth's equatorial radius. [m]

References:
1. GGM05s Gravity Model
"""
R_EARTH = 6.378136300e6

"""
Earth's semi-major axis as defined by the WGS84 geodetic system. [m]
"""
WGS84_a = 6378137.0

"""
Earth's ellipsoidal flattening.  WGS84 Value.
"""
WGS84_f = 1.0 / 298.257223563

"""
Earth's Gravitational constant [m^3/s^2]

References:
1. O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and
Applications*, 2012.
"""
GM_EARTH = 3.986004415e14

"""
Earth's second-degree zonal harmonic (unnormalized). [dimensionless]

References:
1. GGM05s Gravity Model.
"""
J2_EARTH = 0.0010826358191967

"""
Earth axial rotation rate. [rad/s]

References:
1. D. Vallado, *Fundamentals of Astrodynamics and Applications (4th Ed.)*, p. 222, 2010
"""
OMEGA_EARTH = 7.292115146706979e-5

# Sun Constants

"""
Nominal solar photospheric radius. [m]
"""
R_SUN = 6.957 * 1e8

"""
Nominal solar radiation pressure at 1 AU. [N/m^2]

References:
1. O. Montenbruck, and E. Gill, *Satellite Orbits: Models, Methods and
Applications*, 2012.
"""
P_SUN = 4.560e-6

"""
Standard acceleration of gravity, used to convert specific impulse to
exhaust velocity. Units: *m/s^2*
"""
G0 = 9.80665
