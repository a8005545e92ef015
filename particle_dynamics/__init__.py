"""
particle_dynamics - particle simulation with rigid distance constraints.

Features:
- Velocity Verlet time integration with SHAKE/RATTLE constraints
- Pluggable force terms with per-term force groups
- Multiple compute backends (NumPy, JAX)
- Immutable, on-demand state snapshots
"""

__version__ = "0.1.0"

from particle_dynamics.errors import (
    ConfigurationError,
    ConvergenceFailure,
    DimensionMismatch,
    NumericalInstability,
    SimulationError,
)
from particle_dynamics.physics.topology import Topology
from particle_dynamics.physics.state import StateFlags, StateSnapshot
from particle_dynamics.physics.integrators import VerletIntegrator
from particle_dynamics.physics.simulator import Simulator
from particle_dynamics.physics.forces import HarmonicBondForce, NonbondedForce, UniformFieldForce
from particle_dynamics.backends.factory import get_backend, list_available_backends

__all__ = [
    "ConfigurationError",
    "ConvergenceFailure",
    "DimensionMismatch",
    "NumericalInstability",
    "SimulationError",
    "Topology",
    "StateFlags",
    "StateSnapshot",
    "VerletIntegrator",
    "Simulator",
    "HarmonicBondForce",
    "NonbondedForce",
    "UniformFieldForce",
    "get_backend",
    "list_available_backends",
]
