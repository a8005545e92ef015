"""Shared test helpers."""

import numpy as np


def assert_equal_tol(expected, found, tol):
    """Relative comparison, scaled by max(|expected|, 1)."""
    scale = max(abs(expected), 1.0)
    assert abs(expected - found) / scale <= tol, f"expected {expected}, found {found} (tol {tol})"


def random_velocities(num_particles, seed=0):
    """Velocity components uniform in [-0.5, 0.5)."""
    rng = np.random.default_rng(seed)
    return rng.uniform(-0.5, 0.5, (num_particles, 3))


def distances(positions, topology):
    """Realized distance of every constraint."""
    result = []
    for index in range(topology.num_constraints):
        i, j, _ = topology.get_constraint_parameters(index)
        result.append(np.linalg.norm(positions[i] - positions[j]))
    return np.array(result)
