"""Coulomb plus Lennard-Jones interactions between all particle pairs."""

from typing import Any, List, Optional, Set, Tuple
import numpy as np
from particle_dynamics.backends.base import Backend
from particle_dynamics.errors import ConfigurationError
from particle_dynamics.physics.forces.base import ForceTerm
from particle_dynamics.units import ONE_4PI_EPS0


class NonbondedForce(ForceTerm):
    """Direct-sum Coulomb and Lennard-Jones interactions, no cutoff.
    
    Pair energy:
        E_ij = ONE_4PI_EPS0 * q_i q_j / r + 4 eps_ij ((sigma_ij/r)^12 - (sigma_ij/r)^6)
    with Lorentz-Berthelot combining rules
        sigma_ij = (sigma_i + sigma_j) / 2,  eps_ij = sqrt(eps_i eps_j).
    
    Every particle of the topology must be given parameters, in order.
    Excluded pairs do not interact at all. Evaluation builds (n, n) pair
    matrices, so memory grows quadratically with particle count.
    """
    
    def __init__(self, group: int = 0):
        super().__init__(group)
        self._particles: List[Tuple[float, float, float]] = []
        self._exclusions: Set[Tuple[int, int]] = set()
    
    @property
    def name(self) -> str:
        return "nonbonded"
    
    @property
    def num_particles(self) -> int:
        return len(self._particles)
    
    @property
    def num_exclusions(self) -> int:
        return len(self._exclusions)
    
    def add_particle(self, charge: float, sigma: float, epsilon: float) -> int:
        """Add per-particle parameters and return the particle index.
        
        Args:
            charge: Charge in elementary charges
            sigma: Lennard-Jones size (nm)
            epsilon: Lennard-Jones well depth (kJ/mol)
        """
        self._particles.append((float(charge), float(sigma), float(epsilon)))
        return len(self._particles) - 1
    
    def get_particle_parameters(self, index: int) -> Tuple[float, float, float]:
        return self._particles[index]
    
    def set_particle_parameters(self, index: int, charge: float, sigma: float, epsilon: float):
        self._particles[index] = (float(charge), float(sigma), float(epsilon))
    
    def add_exclusion(self, particle1: int, particle2: int) -> None:
        """Remove all interaction between two particles."""
        i, j = int(particle1), int(particle2)
        if i == j:
            raise ValueError("A particle cannot be excluded from itself")
        self._exclusions.add((min(i, j), max(i, j)))
    
    def validate(self, num_particles: int) -> None:
        if len(self._particles) != num_particles:
            raise ConfigurationError(
                f"nonbonded force defines {len(self._particles)} particles, "
                f"but the topology has {num_particles}"
            )
        for i, j in self._exclusions:
            self._check_index(i, num_particles)
            self._check_index(j, num_particles)
    
    def _pair_mask(self) -> np.ndarray:
        n = len(self._particles)
        mask = ~np.eye(n, dtype=bool)
        for i, j in self._exclusions:
            mask[i, j] = False
            mask[j, i] = False
        return mask
    
    def _pair_tables(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        params = np.array(self._particles, dtype=np.float64)
        charge, sigma, epsilon = params[:, 0], params[:, 1], params[:, 2]
        mask = self._pair_mask()
        qq = np.where(mask, ONE_4PI_EPS0 * np.outer(charge, charge), 0.0)
        sig = 0.5 * (sigma[:, np.newaxis] + sigma[np.newaxis, :])
        eps = np.where(mask, np.sqrt(np.outer(epsilon, epsilon)), 0.0)
        return qq, sig, eps
    
    def compute(self, positions, box: Optional[Any], backend: Backend) -> Tuple[float, Any]:
        n = positions.shape[0]
        if n < 2:
            return 0.0, backend.zeros_like(positions)
        
        mask = self._pack(backend, "mask", self._pair_mask)
        qq = self._pack(backend, "qq", lambda: self._pair_tables()[0])
        sig = self._pack(backend, "sigma", lambda: self._pair_tables()[1])
        eps = self._pack(backend, "epsilon", lambda: self._pair_tables()[2])
        
        # delta[i, j] = x_j - x_i
        pos_i = backend.reshape(positions, (n, 1, 3))
        pos_j = backend.reshape(positions, (1, n, 3))
        delta = backend.subtract(pos_j, pos_i)
        r_sq = backend.sum(backend.square(delta), axis=2)
        r_sq = backend.where(mask, r_sq, 1.0)
        inv_r2 = backend.divide(1.0, r_sq)
        inv_r = backend.sqrt(inv_r2)
        
        sr6 = backend.power(backend.multiply(backend.square(sig), inv_r2), 3)
        sr12 = backend.square(sr6)
        coulomb = backend.multiply(qq, inv_r)
        lj = backend.multiply(backend.multiply(4.0, eps), backend.subtract(sr12, sr6))
        # Each pair appears twice in the (n, n) matrix
        energy = backend.multiply(0.5, backend.sum(backend.add(coulomb, lj)))
        
        # -(dE/dr) / r
        lj_deriv = backend.multiply(
            backend.multiply(4.0, eps),
            backend.subtract(backend.multiply(12.0, sr12), backend.multiply(6.0, sr6)),
        )
        scale = backend.multiply(backend.add(coulomb, lj_deriv), inv_r2)
        pair_force = backend.multiply(backend.expand_dims(scale, 2), delta)
        forces = backend.multiply(backend.sum(pair_force, axis=1), -1.0)
        return float(backend.to_numpy(energy)), forces
