"""Numerical integrators for particle simulations."""

from particle_dynamics.physics.integrators.base import Integrator, IntegratorStatus
from particle_dynamics.physics.integrators.verlet import VerletIntegrator

__all__ = ["Integrator", "IntegratorStatus", "VerletIntegrator"]
