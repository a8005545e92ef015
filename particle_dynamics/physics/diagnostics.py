"""Diagnostics for particle simulations."""

import numpy as np
from particle_dynamics.backends.base import Backend
from particle_dynamics.units import BOLTZ


def compute_kinetic_energy(velocities, masses, backend: Backend) -> float:
    """Kinetic energy K = 0.5 * sum_i m_i |v_i|^2.
    
    Args:
        velocities: Backend array (n, 3)
        masses: Backend array (n,)
        backend: Compute backend
        
    Returns:
        Kinetic energy (kJ/mol)
    """
    v_sq = backend.sum(backend.square(velocities), axis=1)
    return float(backend.to_numpy(backend.multiply(0.5, backend.sum(backend.multiply(masses, v_sq)))))


def degrees_of_freedom(masses: np.ndarray, num_constraints: int) -> int:
    """Translational degrees of freedom: 3 per massive particle minus one per constraint.
    
    Zero-mass particles never move and contribute nothing. Constraints between
    two zero-mass particles should not be counted by the caller.
    """
    return max(0, 3 * int(np.count_nonzero(np.asarray(masses) > 0.0)) - int(num_constraints))


def compute_temperature(kinetic_energy: float, dof: int) -> float:
    """Instantaneous temperature T = 2 K / (dof * k_B).
    
    Returns:
        Temperature (K), or 0.0 if the system has no degrees of freedom
    """
    if dof <= 0:
        return 0.0
    return 2.0 * kinetic_energy / (dof * BOLTZ)

