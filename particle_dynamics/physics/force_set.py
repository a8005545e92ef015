"""Group-filtered aggregation of force terms."""

from typing import Any, List, Optional, Sequence, Tuple
from particle_dynamics.backends.base import Backend
from particle_dynamics.physics.forces.base import ALL_GROUPS, ForceTerm


class ForceSet:
    """Ordered collection of force terms evaluated as one.

    Evaluation is a side-effect free map/reduce: each selected term is
    computed independently and the energies and force arrays are summed.
    Terms whose group bit is not set in the mask contribute exactly zero.
    """

    def __init__(self, forces: Sequence[ForceTerm], num_particles: int, backend: Backend):
        """Initialize force set.

        Args:
            forces: Force terms in evaluation order
            num_particles: Particle count every term is validated against
            backend: Compute backend used for evaluation
        """
        self.backend = backend
        self.num_particles = num_particles
        self._forces: List[ForceTerm] = list(forces)
        for force in self._forces:
            force.prepare(num_particles)

    def __len__(self) -> int:
        return len(self._forces)

    @property
    def groups_present(self) -> int:
        """Bitmask of the groups that contain at least one term."""
        mask = 0
        for force in self._forces:
            mask |= 1 << force.group
        return mask

    def selected(self, groups: int = ALL_GROUPS) -> List[ForceTerm]:
        """Terms whose group bit is set in groups."""
        return [force for force in self._forces if groups & (1 << force.group)]

    def evaluate(self, positions, groups: int = ALL_GROUPS, box: Optional[Any] = None) -> Tuple[float, Any]:
        """Compute total energy and forces of the selected groups.

        Args:
            positions: Backend array (n, 3)
            groups: Bitmask of force groups to include
            box: Periodic box vectors, passed through to each term

        Returns:
            Tuple of (energy, forces) with forces a backend array (n, 3)
        """
        energy = 0.0
        forces = self.backend.zeros((self.num_particles, 3))
        for force in self.selected(groups):
            term_energy, term_forces = force.compute(positions, box, self.backend)
            energy += term_energy
            forces = self.backend.add(forces, term_forces)
        return energy, forces
