"""Main simulator controller."""

import logging
from dataclasses import replace
from typing import Any, Optional, Tuple
import numpy as np
from particle_dynamics.backends.base import Backend
from particle_dynamics.backends.factory import get_backend
from particle_dynamics.errors import ConfigurationError, DimensionMismatch
from particle_dynamics.physics.constraints import ConstraintSolver
from particle_dynamics.physics.diagnostics import compute_kinetic_energy, compute_temperature, degrees_of_freedom
from particle_dynamics.physics.force_set import ForceSet
from particle_dynamics.physics.forces.base import ALL_GROUPS
from particle_dynamics.physics.integrators.base import Integrator
from particle_dynamics.physics.state import SimulationState, StateFlags, StateSnapshot
from particle_dynamics.physics.topology import Topology
from particle_dynamics.units import BOLTZ

logger = logging.getLogger(__name__)


class Simulator:
    """Binds a topology, an integrator and a compute backend.

    The simulator owns the dynamical state (positions, velocities, time,
    step count) and is the only path through which it changes: step(),
    set_positions(), set_velocities() and the constraint helpers. Snapshots
    returned by get_state() are immutable copies.

    One simulator per simulation; concurrent calls on the same instance must
    be serialized by the caller.
    """

    def __init__(self, topology: Topology, integrator: Integrator, backend: Optional[Backend] = None):
        """Initialize simulator.

        Args:
            topology: Fully configured topology. It is locked against changes.
            integrator: Integrator to drive the simulation. Must not be bound
                to another simulator.
            backend: Compute backend (default: NumPy)

        Raises:
            ConfigurationError: If a constraint links a zero-mass particle to a
                massive one, a force term is inconsistent with the topology, or
                the integrator is already in use
        """
        if integrator.simulator is not None:
            raise ConfigurationError("Integrator is already bound to a Simulator")
        topology.validate()

        self.backend = backend or get_backend()
        self.topology = topology
        self.integrator = integrator

        masses = topology.masses()
        self.num_particles = len(masses)
        self._masses_np = masses
        inverse = np.zeros_like(masses)
        np.divide(1.0, masses, out=inverse, where=masses > 0.0)
        self._inverse_masses_np = inverse
        self.masses = self.backend.array(masses)
        # Column vectors (n, 1) broadcast against (n, 3) arrays
        self.inverse_masses = self.backend.array(inverse[:, np.newaxis])
        self.mobile = self.backend.array((masses > 0.0).astype(np.float64)[:, np.newaxis])
        self.box_vectors = topology.box_vectors

        self.force_set = ForceSet(topology.forces, self.num_particles, self.backend)
        particle1, particle2, distances = topology.constraint_arrays()
        self.constraint_solver = ConstraintSolver(particle1, particle2, distances, inverse, self.backend)
        self.state = SimulationState.zeros(self.num_particles, self.backend)

        integrator.bind(self)
        topology.lock()
        logger.info(
            "Simulator created: %d particles, %d constraints, %d force terms, backend=%s, integrator=%s",
            self.num_particles, topology.num_constraints, len(self.force_set),
            self.backend.name, integrator.name,
        )
        if self.constraint_solver.num_skipped:
            logger.info(
                "%d constraints between zero-mass particles are not enforced",
                self.constraint_solver.num_skipped,
            )

    @classmethod
    def from_config(cls, topology: Topology, config) -> "Simulator":
        """Create a simulator (integrator and backend included) from a Config."""
        from particle_dynamics.utils.config import create_integrator
        from particle_dynamics.utils.reproducibility import set_all_seeds

        config.validate()
        backend = get_backend(config.backend)
        if config.seed is not None:
            set_all_seeds(config.seed, backend)
        return cls(topology, create_integrator(config), backend)

    @property
    def time(self) -> float:
        return self.state.time

    @property
    def step_count(self) -> int:
        return self.state.step_count

    def set_time(self, time: float):
        self.state = replace(self.state, time=float(time))

    def _as_particle_array(self, name: str, values) -> Any:
        array = np.asarray(values, dtype=np.float64)
        expected = (self.num_particles, 3)
        if array.shape != expected:
            raise DimensionMismatch(name, expected, array.shape)
        return self.backend.array(array)

    def set_positions(self, positions):
        """Overwrite all positions.

        Args:
            positions: Array-like (n, 3)

        Raises:
            DimensionMismatch: If the shape is not (n, 3)
        """
        self.state = replace(self.state, positions=self._as_particle_array("positions", positions))

    def set_velocities(self, velocities):
        """Overwrite all velocities.

        Raises:
            DimensionMismatch: If the shape is not (n, 3)
        """
        self.state = replace(self.state, velocities=self._as_particle_array("velocities", velocities))

    def set_velocities_to_temperature(self, temperature: float, seed: Optional[int] = None):
        """Draw velocities from the Maxwell-Boltzmann distribution.

        Each component is drawn independently from N(0, k_B T / m). Zero-mass
        particles get zero velocity. Velocity constraints are applied
        afterwards, so the realized temperature is that of the constrained
        ensemble.

        Args:
            temperature: Target temperature (K)
            seed: Optional random seed

        Raises:
            ConvergenceFailure: If the velocity constraints do not converge;
                the current velocities are kept
        """
        temperature = float(temperature)
        if temperature < 0.0:
            raise ValueError(f"Temperature must be non-negative, got {temperature}")
        sigma = np.sqrt(BOLTZ * temperature * self._inverse_masses_np)[:, np.newaxis]
        noise = self.backend.random_normal((self.num_particles, 3), seed=seed)
        velocities = self.backend.multiply(noise, self.backend.array(sigma))
        result = self.constraint_solver.project_velocities(
            velocities,
            self.state.positions,
            self.integrator.constraint_tolerance,
            self.integrator.step_size,
            self.integrator.max_constraint_iterations,
        )
        self.state = replace(self.state, velocities=result.values)

    def compute_forces(self, positions, groups: int = ALL_GROUPS) -> Tuple[float, Any]:
        """Potential energy and forces of the selected force groups at positions."""
        return self.force_set.evaluate(positions, groups, self.box_vectors)

    def compute_kinetic_energy(self) -> float:
        return compute_kinetic_energy(self.state.velocities, self.masses, self.backend)

    def compute_temperature(self) -> float:
        """Instantaneous temperature from the kinetic energy and the constrained degrees of freedom."""
        dof = degrees_of_freedom(self._masses_np, self.constraint_solver.num_active)
        return compute_temperature(self.compute_kinetic_energy(), dof)

    def constraint_errors(self) -> np.ndarray:
        """Relative error |r - d| / d of every constraint at the current positions."""
        return self.constraint_solver.constraint_errors(self.state.positions)

    def get_state(self, flags: StateFlags = StateFlags.POSITIONS, groups: int = ALL_GROUPS) -> StateSnapshot:
        """Take an immutable snapshot of the requested quantities.

        Forces and energies are only evaluated when FORCES or ENERGY is set.

        Args:
            flags: Quantities to include
            groups: Force groups contributing to forces and potential energy

        Returns:
            StateSnapshot with unrequested fields set to None
        """
        flags = StateFlags(flags)
        state = self.state
        potential_energy = None
        kinetic_energy = None
        forces = None
        if flags & (StateFlags.FORCES | StateFlags.ENERGY):
            energy, force_array = self.compute_forces(state.positions, groups)
            if flags & StateFlags.FORCES:
                forces = self.backend.to_numpy(force_array)
            if flags & StateFlags.ENERGY:
                potential_energy = energy
                kinetic_energy = self.compute_kinetic_energy()
        with_time = bool(flags & StateFlags.TIME)
        return StateSnapshot.build(
            flags,
            time=state.time if with_time else None,
            step_count=state.step_count if with_time else None,
            positions=self.backend.to_numpy(state.positions) if flags & StateFlags.POSITIONS else None,
            velocities=self.backend.to_numpy(state.velocities) if flags & StateFlags.VELOCITIES else None,
            forces=forces,
            potential_energy=potential_energy,
            kinetic_energy=kinetic_energy,
        )

    def step(self, steps: int = 1):
        """Advance the simulation by a number of integrator steps.

        Raises:
            NumericalInstability: If a step fails; the failing step is not committed
        """
        self.integrator.step(steps)

    def commit(self, positions, velocities, dt: float):
        """Store the result of one integrator step. Called by the integrator only."""
        self.state = SimulationState(
            positions=positions,
            velocities=velocities,
            time=self.state.time + dt,
            step_count=self.state.step_count + 1,
        )

    def _resolve_tolerance(self, tolerance: Optional[float]) -> float:
        if tolerance is None:
            return self.integrator.constraint_tolerance
        tolerance = float(tolerance)
        if not tolerance > 0.0:
            raise ValueError(f"Constraint tolerance must be positive, got {tolerance}")
        return tolerance

    def apply_constraints(self, tolerance: Optional[float] = None):
        """Move the current positions onto the constraint manifold.

        Args:
            tolerance: Relative tolerance (default: the integrator's)

        Raises:
            ValueError: If tolerance is not positive
            ConvergenceFailure: If projection does not converge
        """
        tolerance = self._resolve_tolerance(tolerance)
        result = self.constraint_solver.project(
            self.state.positions,
            self.state.positions,
            tolerance,
            self.integrator.max_constraint_iterations,
        )
        self.state = replace(self.state, positions=result.values)

    def apply_velocity_constraints(self, tolerance: Optional[float] = None):
        """Remove velocity components that would change constrained distances.

        Args:
            tolerance: Relative drift tolerance per step (default: the integrator's)
        """
        tolerance = self._resolve_tolerance(tolerance)
        result = self.constraint_solver.project_velocities(
            self.state.velocities,
            self.state.positions,
            tolerance,
            self.integrator.step_size,
            self.integrator.max_constraint_iterations,
        )
        self.state = replace(self.state, velocities=result.values)

    def reinitialize(self, preserve_state: bool = True):
        """Rebuild the force set from the topology's force terms.

        Parameter changes made to force terms after binding take effect here.

        Args:
            preserve_state: Keep positions, velocities and time. If False, the
                state is reset to zeros.
        """
        self.force_set = ForceSet(self.topology.forces, self.num_particles, self.backend)
        if not preserve_state:
            self.state = SimulationState.zeros(self.num_particles, self.backend)
        logger.info("Simulator reinitialized (preserve_state=%s)", preserve_state)
