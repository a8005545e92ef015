"""Force terms."""

from particle_dynamics.physics.forces.base import ForceTerm, ALL_GROUPS, NUM_FORCE_GROUPS
from particle_dynamics.physics.forces.harmonic_bond import HarmonicBondForce
from particle_dynamics.physics.forces.nonbonded import NonbondedForce
from particle_dynamics.physics.forces.external import UniformFieldForce
from particle_dynamics.physics.forces.registry import create_force, list_force_types, register_force

__all__ = [
    "ForceTerm",
    "ALL_GROUPS",
    "NUM_FORCE_GROUPS",
    "HarmonicBondForce",
    "NonbondedForce",
    "UniformFieldForce",
    "create_force",
    "list_force_types",
    "register_force",
]
