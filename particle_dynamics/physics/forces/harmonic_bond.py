"""Harmonic bond stretching: E = 1/2 k (r - r0)^2."""

from typing import Any, List, Optional, Tuple
import numpy as np
from particle_dynamics.backends.base import Backend
from particle_dynamics.physics.forces.base import ForceTerm


class HarmonicBondForce(ForceTerm):
    """Harmonic springs between pairs of particles."""
    
    def __init__(self, group: int = 0):
        super().__init__(group)
        self._bonds: List[Tuple[int, int, float, float]] = []
    
    @property
    def name(self) -> str:
        return "harmonic_bond"
    
    @property
    def num_bonds(self) -> int:
        return len(self._bonds)
    
    def add_bond(self, particle1: int, particle2: int, length: float, k: float) -> int:
        """Add a bond and return its index.
        
        Args:
            particle1: Index of the first particle
            particle2: Index of the second particle
            length: Equilibrium length r0 (nm)
            k: Force constant (kJ/mol/nm^2)
        """
        self._bonds.append((int(particle1), int(particle2), float(length), float(k)))
        return len(self._bonds) - 1
    
    def get_bond_parameters(self, index: int) -> Tuple[int, int, float, float]:
        return self._bonds[index]
    
    def set_bond_parameters(self, index: int, particle1: int, particle2: int, length: float, k: float):
        self._bonds[index] = (int(particle1), int(particle2), float(length), float(k))
    
    def _column(self, col: int) -> np.ndarray:
        return np.array([bond[col] for bond in self._bonds], dtype=np.float64)
    
    def validate(self, num_particles: int) -> None:
        for i, j, _, _ in self._bonds:
            self._check_index(i, num_particles)
            self._check_index(j, num_particles)
    
    def compute(self, positions, box: Optional[Any], backend: Backend) -> Tuple[float, Any]:
        forces = backend.zeros_like(positions)
        if not self._bonds:
            return 0.0, forces
        
        idx_i = self._pack(backend, "i", lambda: self._column(0).astype(np.int64))
        idx_j = self._pack(backend, "j", lambda: self._column(1).astype(np.int64))
        r0 = self._pack(backend, "r0", lambda: self._column(2))
        k = self._pack(backend, "k", lambda: self._column(3))
        
        delta = backend.subtract(backend.take(positions, idx_j), backend.take(positions, idx_i))
        dist = backend.sqrt(backend.sum(backend.square(delta), axis=1))
        stretch = backend.subtract(dist, r0)
        energy = backend.sum(backend.multiply(0.5, backend.multiply(k, backend.square(stretch))))
        
        # Coincident particles get no force direction
        safe_dist = backend.where(dist > 0.0, dist, 1.0)
        coef = backend.divide(backend.multiply(k, stretch), safe_dist)
        pair_force = backend.multiply(delta, backend.expand_dims(coef, 1))
        forces = backend.scatter_add(forces, idx_i, pair_force)
        forces = backend.scatter_add(forces, idx_j, backend.multiply(pair_force, -1.0))
        return float(backend.to_numpy(energy)), forces
