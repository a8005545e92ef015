"""Uniform external field acting on selected particles."""

from typing import Any, List, Optional, Sequence, Tuple
import numpy as np
from particle_dynamics.backends.base import Backend
from particle_dynamics.physics.forces.base import ForceTerm


class UniformFieldForce(ForceTerm):
    """Linear potential E = sum_i g . x_i over the selected particles.
    
    Each selected particle feels the constant force -g.
    """
    
    def __init__(self, gradient: Sequence[float] = (0.0, 0.0, 0.0), group: int = 0):
        super().__init__(group)
        gradient = np.asarray(gradient, dtype=np.float64)
        if gradient.shape != (3,):
            raise ValueError(f"gradient must have 3 components, got shape {gradient.shape}")
        self._gradient = gradient
        self._particles: List[int] = []
    
    @property
    def name(self) -> str:
        return "uniform_field"
    
    @property
    def gradient(self) -> np.ndarray:
        return self._gradient.copy()
    
    @property
    def num_particles(self) -> int:
        return len(self._particles)
    
    def add_particle(self, index: int) -> int:
        """Apply the field to a particle. Returns the entry index."""
        self._particles.append(int(index))
        return len(self._particles) - 1
    
    def validate(self, num_particles: int) -> None:
        for index in self._particles:
            self._check_index(index, num_particles)
    
    def compute(self, positions, box: Optional[Any], backend: Backend) -> Tuple[float, Any]:
        forces = backend.zeros_like(positions)
        if not self._particles:
            return 0.0, forces
        
        indices = self._pack(backend, "particles", lambda: np.array(self._particles, dtype=np.int64))
        gradient = self._pack(backend, "gradient", lambda: self._gradient)
        selected = backend.take(positions, indices)
        energy = backend.sum(backend.multiply(selected, gradient))
        pull = backend.subtract(backend.zeros_like(selected), gradient)
        forces = backend.scatter_add(forces, indices, pull)
        return float(backend.to_numpy(energy)), forces
