"""Velocity Verlet integrator with SHAKE/RATTLE constraints."""

import logging
from typing import Any, Optional, Tuple
from particle_dynamics.physics.integrators.base import Integrator

logger = logging.getLogger(__name__)


class VerletIntegrator(Integrator):
    """Velocity Verlet integrator - second-order, symplectic.
    
    One step of size dt:
    1. v_half = v + 0.5*dt*F(x)/m
    2. x_trial = x + dt*v_half
    3. SHAKE: x_new = project(x_trial) and v_half += (x_new - x_trial)/dt
    4. v_new = v_half + 0.5*dt*F(x_new)/m
    5. RATTLE: remove the components of v_new that change constrained distances
    
    Zero-mass particles have zero inverse mass: they receive no kick and are
    never moved. Forces come only from the integration force groups. F(x_new)
    of one step is reused as F(x) of the next step within a single step() call.
    """
    
    @property
    def name(self) -> str:
        return "verlet"
    
    @property
    def order(self) -> int:
        return 2
    
    def advance(self, simulator, carry: Optional[Any]) -> Tuple[Any, Any, Any]:
        backend = simulator.backend
        state = simulator.state
        solver = simulator.constraint_solver
        dt = self.step_size
        inverse_masses = simulator.inverse_masses
        mobile = simulator.mobile
        
        forces = carry
        if forces is None:
            _, forces = simulator.compute_forces(state.positions, self.integration_groups)
        
        half_kick = backend.multiply(backend.multiply(forces, inverse_masses), 0.5 * dt)
        v_half = backend.add(state.velocities, half_kick)
        trial = backend.add(state.positions, backend.multiply(backend.multiply(v_half, mobile), dt))
        
        if solver.num_active:
            projected = solver.project(
                trial,
                state.positions,
                self.constraint_tolerance,
                self.max_constraint_iterations,
            )
            new_positions = projected.values
            v_half = backend.add(v_half, backend.divide(backend.subtract(new_positions, trial), dt))
        else:
            new_positions = trial
        
        _, new_forces = simulator.compute_forces(new_positions, self.integration_groups)
        half_kick = backend.multiply(backend.multiply(new_forces, inverse_masses), 0.5 * dt)
        new_velocities = backend.add(v_half, half_kick)
        
        if solver.num_active:
            rattled = solver.project_velocities(
                new_velocities,
                new_positions,
                self.constraint_tolerance,
                dt,
                self.max_constraint_iterations,
            )
            new_velocities = rattled.values
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "step %d: SHAKE %d sweeps (error %.2e), RATTLE %d sweeps",
                    state.step_count + 1, projected.iterations, projected.max_error, rattled.iterations,
                )
        
        return new_positions, new_velocities, new_forces
