"""Numerical orbit propagation with event detection.

- :class:`SpacecraftState` -- immutable state of a spacecraft
- :class:`StateLayout` -- offsets of the blocks of the raw state vector
- :class:`StateMapper` -- raw vector <-> :class:`SpacecraftState`
- :class:`NumericalPropagator` -- adaptive DP54 integration loop with
  event handling and optional sensitivity propagation
- :class:`AdditionalEquations` -- extra states integrated with the orbit
"""

from orbitax.propagation.mapper import StateMapper
from orbitax.propagation.propagator import (
    AdditionalEquations,
    CompiledDynamics,
    NumericalPropagator,
    compile_dynamics,
)
from orbitax.propagation.state import SpacecraftState, StateLayout

__all__ = [
    "SpacecraftState",
    "StateLayout",
    "StateMapper",
    "AdditionalEquations",
    "CompiledDynamics",
    "NumericalPropagator",
    "compile_dynamics",
]
