"""
orbitax is an event-aware numerical orbit propagator and batch least-squares
orbit determination library implemented in JAX.
"""

from .constants import (
    DEG2RAD,
    RAD2DEG,
    JD_MJD_OFFSET,
    MJD2000,
    C_LIGHT,
    AU,
    R_EARTH,
    WGS84_a,
    WGS84_f,
    GM_EARTH,
    J2_EARTH,
    OMEGA_EARTH,
    R_SUN,
    P_SUN,
    G0,
)

from .config import set_dtype, get_dtype
from .epoch import Epoch
from .errors import (
    OrbitaxError,
    ConfigurationError,
    PropagationError,
    EventConvergenceError,
    StepSizeUnderflowError,
    EstimationError,
    EstimationConvergenceError,
    SingularNormalEquationsError,
    EstimationCancelledError,
)

from .frames import (
    Frame,
    rotation_eci_to_ecef,
    rotation_ecef_to_eci,
    state_eci_to_ecef,
    state_ecef_to_eci,
)

from .coordinates import (
    OrbitType,
    PositionAngle,
    elements_to_cartesian,
    cartesian_to_elements,
)

from .orbit_dynamics import (
    ForceModelConfig,
    SpacecraftParams,
    DynamicsModel,
    create_orbit_dynamics,
)

from .integrators import AdaptiveConfig

from .propagation import (
    SpacecraftState,
    StateMapper,
    AdditionalEquations,
    NumericalPropagator,
)

from .events import (
    Action,
    EventDetector,
    EventOccurrence,
)

from .orbit_measurements import (
    Measurement,
    EstimatedMeasurement,
    GroundStation,
)

from .estimation import (
    ParameterDriver,
    ParameterSet,
    PropagatorBuilder,
    LevenbergMarquardt,
    GaussNewton,
    BatchLSEstimator,
    EstimationResult,
)

__all__ = [
    # Constants
    "DEG2RAD",
    "RAD2DEG",
    "JD_MJD_OFFSET",
    "MJD2000",
    "C_LIGHT",
    "AU",
    "R_EARTH",
    "WGS84_a",
    "WGS84_f",
    "GM_EARTH",
    "J2_EARTH",
    "OMEGA_EARTH",
    "R_SUN",
    "P_SUN",
    "G0",
    # Config
    "set_dtype",
    "get_dtype",
    # Time
    "Epoch",
    # Errors
    "OrbitaxError",
    "ConfigurationError",
    "PropagationError",
    "EventConvergenceError",
    "StepSizeUnderflowError",
    "EstimationError",
    "EstimationConvergenceError",
    "SingularNormalEquationsError",
    "EstimationCancelledError",
    # Frames
    "Frame",
    "rotation_eci_to_ecef",
    "rotation_ecef_to_eci",
    "state_eci_to_ecef",
    "state_ecef_to_eci",
    # Coordinates
    "OrbitType",
    "PositionAngle",
    "elements_to_cartesian",
    "cartesian_to_elements",
    # Orbit Dynamics
    "ForceModelConfig",
    "SpacecraftParams",
    "DynamicsModel",
    "create_orbit_dynamics",
    # Integrators
    "AdaptiveConfig",
    # Propagation
    "SpacecraftState",
    "StateMapper",
    "AdditionalEquations",
    "NumericalPropagator",
    # Events
    "Action",
    "EventDetector",
    "EventOccurrence",
    # Measurements
    "Measurement",
    "EstimatedMeasurement",
    "GroundStation",
    # Estimation
    "ParameterDriver",
    "ParameterSet",
    "PropagatorBuilder",
    "LevenbergMarquardt",
    "GaussNewton",
    "BatchLSEstimator",
    "EstimationResult",
]
