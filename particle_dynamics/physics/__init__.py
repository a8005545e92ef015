"""Time integration and constraint projection engine."""

from particle_dynamics.physics.topology import Topology
from particle_dynamics.physics.force_set import ForceSet
from particle_dynamics.physics.constraints import ConstraintSolver, ProjectionResult
from particle_dynamics.physics.state import SimulationState, StateFlags, StateSnapshot
from particle_dynamics.physics.integrators import Integrator, IntegratorStatus, VerletIntegrator
from particle_dynamics.physics.simulator import Simulator

__all__ = [
    "Topology",
    "ForceSet",
    "ConstraintSolver",
    "ProjectionResult",
    "SimulationState",
    "StateFlags",
    "StateSnapshot",
    "Integrator",
    "IntegratorStatus",
    "VerletIntegrator",
    "Simulator",
]
