"""Event detection during numerical propagation.

A detector pairs a switching function ``g(state)`` with search settings
and a handler deciding what the propagator does when g changes sign:

- :class:`EventDetector` -- the detector value type
- detector factories -- :func:`date_detector`, :func:`apside_detector`,
  :func:`node_detector`, :func:`altitude_detector`,
  :func:`eclipse_detector`, :func:`elevation_detector`,
  :func:`function_detector`
- handlers -- :class:`ContinueOnEvent`, :class:`StopOnEvent`,
  :class:`StopOnIncreasing`, :class:`StopOnDecreasing`,
  :class:`RecordAndContinue`, :class:`ResetDerivativesOnEvent`,
  :class:`ImpulseManeuverHandler`
- :class:`EventState` -- per-run bracketing and root refinement
"""

from orbitax.events._types import Action, DetectorPhase, EventHandler, EventOccurrence
from orbitax.events.detector import (
    DEFAULT_MAX_CHECK,
    DEFAULT_MAX_ITER,
    DEFAULT_THRESHOLD,
    EventDetector,
)
from orbitax.events.detectors import (
    altitude_detector,
    apside_detector,
    date_detector,
    eclipse_detector,
    elevation_detector,
    function_detector,
    node_detector,
)
from orbitax.events.event_state import EventState
from orbitax.events.handlers import (
    ContinueOnEvent,
    ImpulseManeuverHandler,
    RecordAndContinue,
    ResetDerivativesOnEvent,
    StopOnDecreasing,
    StopOnEvent,
    StopOnIncreasing,
)

__all__ = [
    "Action",
    "DetectorPhase",
    "EventHandler",
    "EventOccurrence",
    "DEFAULT_MAX_CHECK",
    "DEFAULT_MAX_ITER",
    "DEFAULT_THRESHOLD",
    "EventDetector",
    "EventState",
    "altitude_detector",
    "apside_detector",
    "date_detector",
    "eclipse_detector",
    "elevation_detector",
    "function_detector",
    "node_detector",
    "ContinueOnEvent",
    "ImpulseManeuverHandler",
    "RecordAndContinue",
    "ResetDerivativesOnEvent",
    "StopOnDecreasing",
    "StopOnEvent",
    "StopOnIncreasing",
]
