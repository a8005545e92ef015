"""Particles, constraints and force terms describing a system."""

from typing import List, Optional, Tuple
import numpy as np
from particle_dynamics.errors import ConfigurationError
from particle_dynamics.physics.forces.base import ForceTerm, validate_group


class Topology:
    """Description of a particle system.

    Holds particle masses, distance constraints, force terms and optional
    periodic box vectors. A topology is configured completely before it is
    bound to a Simulator; once bound it is locked and every mutator raises
    ConfigurationError. Build a new Simulator to change it.

    A mass of zero marks a fixed particle: it is never moved by the
    integrator and acts as an anchor for constraint purposes.
    """

    def __init__(self):
        self._masses: List[float] = []
        self._constraints: List[Tuple[int, int, float]] = []
        self._forces: List[ForceTerm] = []
        self._box_vectors: Optional[np.ndarray] = None
        self._locked = False

    @property
    def num_particles(self) -> int:
        return len(self._masses)

    @property
    def num_constraints(self) -> int:
        return len(self._constraints)

    @property
    def num_forces(self) -> int:
        return len(self._forces)

    @property
    def locked(self) -> bool:
        """True once the topology has been bound to a Simulator."""
        return self._locked

    def _check_unlocked(self):
        if self._locked:
            raise ConfigurationError("Topology is bound to a Simulator and can no longer be modified")

    def _check_particle(self, index: int):
        if not 0 <= index < len(self._masses):
            raise ValueError(f"Particle index {index} out of range [0, {len(self._masses)})")

    def _check_constraint(self, index: int):
        if not 0 <= index < len(self._constraints):
            raise ValueError(f"Constraint index {index} out of range [0, {len(self._constraints)})")

    def add_particle(self, mass: float) -> int:
        """Add a particle.

        Args:
            mass: Particle mass (amu). Zero marks a fixed particle.

        Returns:
            Index of the new particle
        """
        self._check_unlocked()
        mass = float(mass)
        if mass < 0.0:
            raise ValueError(f"Particle mass must be non-negative, got {mass}")
        self._masses.append(mass)
        return len(self._masses) - 1

    def get_particle_mass(self, index: int) -> float:
        self._check_particle(index)
        return self._masses[index]

    def set_particle_mass(self, index: int, mass: float):
        self._check_unlocked()
        self._check_particle(index)
        mass = float(mass)
        if mass < 0.0:
            raise ValueError(f"Particle mass must be non-negative, got {mass}")
        self._masses[index] = mass

    def add_constraint(self, particle1: int, particle2: int, distance: float) -> int:
        """Fix the distance between two particles.

        Args:
            particle1: Index of the first particle
            particle2: Index of the second particle
            distance: Target distance (nm), must be positive

        Returns:
            Index of the new constraint
        """
        self._check_unlocked()
        particle1, particle2, distance = int(particle1), int(particle2), float(distance)
        self._check_particle(particle1)
        self._check_particle(particle2)
        if particle1 == particle2:
            raise ValueError(f"A constraint needs two distinct particles, got {particle1} twice")
        if not distance > 0.0:
            raise ValueError(f"Constraint distance must be positive, got {distance}")
        self._constraints.append((particle1, particle2, distance))
        return len(self._constraints) - 1

    def get_constraint_parameters(self, index: int) -> Tuple[int, int, float]:
        """Return (particle1, particle2, distance) for a constraint."""
        self._check_constraint(index)
        return self._constraints[index]

    def add_force(self, force: ForceTerm, group: Optional[int] = None) -> int:
        """Add a force term.

        Args:
            force: Force term to add
            group: Force group in [0, 31]; overrides the term's own group if given

        Returns:
            Index of the force term

        Raises:
            ConfigurationError: If the term was already added to a topology
        """
        self._check_unlocked()
        if not isinstance(force, ForceTerm):
            raise TypeError(f"Expected a ForceTerm, got {type(force).__name__}")
        if group is not None:
            group = validate_group(group)
        force.attach(self)
        if group is not None:
            force.group = group
        self._forces.append(force)
        return len(self._forces) - 1

    def get_force(self, index: int) -> ForceTerm:
        if not 0 <= index < len(self._forces):
            raise ValueError(f"Force index {index} out of range [0, {len(self._forces)})")
        return self._forces[index]

    @property
    def forces(self) -> List[ForceTerm]:
        return list(self._forces)

    @property
    def box_vectors(self) -> Optional[np.ndarray]:
        """Periodic box vectors (3, 3), or None for a non-periodic system."""
        return None if self._box_vectors is None else self._box_vectors.copy()

    def set_box_vectors(self, a, b, c):
        self._check_unlocked()
        box = np.array([a, b, c], dtype=np.float64)
        if box.shape != (3, 3):
            raise ValueError(f"Box vectors must be three 3-vectors, got shape {box.shape}")
        self._box_vectors = box

    def masses(self) -> np.ndarray:
        """Particle masses as an array (n,)."""
        return np.array(self._masses, dtype=np.float64)

    def constraint_arrays(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return constraint particle indices and distances as arrays."""
        if not self._constraints:
            return np.zeros(0, dtype=np.int64), np.zeros(0, dtype=np.int64), np.zeros(0)
        table = np.array(self._constraints, dtype=np.float64)
        return table[:, 0].astype(np.int64), table[:, 1].astype(np.int64), table[:, 2]

    def validate(self):
        """Check the topology can be simulated.

        Raises:
            ConfigurationError: If a constraint links a zero-mass particle to a
                particle with positive mass, or a force term is inconsistent
                with the particle list
        """
        offending = []
        for index, (i, j, _) in enumerate(self._constraints):
            if (self._masses[i] == 0.0) != (self._masses[j] == 0.0):
                offending.append(index)
        if offending:
            details = ", ".join(
                f"#{index} ({self._constraints[index][0]}, {self._constraints[index][1]})"
                for index in offending
            )
            raise ConfigurationError(
                f"Constraints between a massless and a massive particle are not allowed: {details}",
                constraints=offending,
            )
        for force in self._forces:
            force.validate(len(self._masses))

    def lock(self):
        self._locked = True
