"""SHAKE/RATTLE projection onto holonomic distance constraints.

Position stage (SHAKE): given unconstrained trial positions x' and the
reference positions x from the start of the step, each constraint (i, j, d)
is corrected along its reference bond vector r_ij = x_i - x_j:

    g = (d^2 - |r'_ij|^2) / (2 (w_i + w_j) r_ij . r'_ij)
    x'_i += g w_i r_ij
    x'_j -= g w_j r_ij

with w the inverse masses. Velocity stage (RATTLE): the relative velocity
along each bond is removed,

    k = -(r_ij . v_ij) / ((w_i + w_j) |r_ij|^2)
    v_i += k w_i r_ij
    v_j -= k w_j r_ij

Constraints sharing a particle interact, so corrections are applied in
sweeps until every constraint is within tolerance. Constraints are split into
colour classes with no shared particle; a class is corrected in one
vectorised update and the classes are applied one after the other inside a
sweep (Gauss-Seidel order between classes).
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List
import numpy as np
from particle_dynamics.backends.base import Backend
from particle_dynamics.errors import ConvergenceFailure

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 150


@dataclass(frozen=True)
class ProjectionResult:
    """Outcome of a converged projection."""
    values: Any
    iterations: int
    max_error: float


def color_constraints(particle1: np.ndarray, particle2: np.ndarray) -> List[np.ndarray]:
    """Partition constraints into classes whose members share no particle.

    Greedy colouring in constraint order: each constraint takes the lowest
    class not yet used by either of its particles. A chain needs two classes,
    a particle with k constraints forces at least k.

    Args:
        particle1: First particle index of each constraint (m,)
        particle2: Second particle index of each constraint (m,)

    Returns:
        List of constraint index arrays, one per class
    """
    used: Dict[int, set] = {}
    classes: List[List[int]] = []
    for c, (i, j) in enumerate(zip(particle1.tolist(), particle2.tolist())):
        taken = used.setdefault(i, set()) | used.setdefault(j, set())
        color = 0
        while color in taken:
            color += 1
        if color == len(classes):
            classes.append([])
        classes[color].append(c)
        used[i].add(color)
        used[j].add(color)
    return [np.array(members, dtype=np.int64) for members in classes]


class _ConstraintBlock:
    """Backend arrays for one colour class."""

    def __init__(self, backend: Backend, i, j, distance, w_i, w_j):
        self.i = backend.array(i)
        self.j = backend.array(j)
        self.distance_sq = backend.array(distance * distance)
        self.w_i = backend.array(w_i)
        self.w_j = backend.array(w_j)
        self.w_sum = backend.array(w_i + w_j)


class ConstraintSolver:
    """Iterative mass-weighted projector for distance constraints.

    Particles with zero mass have zero inverse mass and are never displaced.
    Constraints between two zero-mass particles are skipped entirely.
    """

    def __init__(
        self,
        particle1: np.ndarray,
        particle2: np.ndarray,
        distances: np.ndarray,
        inverse_masses: np.ndarray,
        backend: Backend,
    ):
        """Initialize constraint solver.

        Args:
            particle1: First particle index of each constraint (m,)
            particle2: Second particle index of each constraint (m,)
            distances: Target distances (m,)
            inverse_masses: Inverse particle masses (n,), zero for zero-mass particles
            backend: Compute backend
        """
        self.backend = backend
        particle1 = np.asarray(particle1, dtype=np.int64)
        particle2 = np.asarray(particle2, dtype=np.int64)
        distances = np.asarray(distances, dtype=np.float64)
        inverse_masses = np.asarray(inverse_masses, dtype=np.float64)

        self._all_i = backend.array(particle1)
        self._all_j = backend.array(particle2)
        self._all_distance = backend.array(distances)
        self.num_constraints = len(distances)

        active = (inverse_masses[particle1] + inverse_masses[particle2]) > 0.0
        self.num_active = int(np.count_nonzero(active))
        self.num_skipped = self.num_constraints - self.num_active
        active_i, active_j, active_d = particle1[active], particle2[active], distances[active]
        self._active_i = backend.array(active_i)
        self._active_j = backend.array(active_j)
        self._active_distance = backend.array(active_d)

        self._blocks = []
        for members in color_constraints(active_i, active_j):
            i, j = active_i[members], active_j[members]
            self._blocks.append(
                _ConstraintBlock(backend, i, j, active_d[members], inverse_masses[i], inverse_masses[j])
            )
        logger.debug(
            "Constraint solver: %d constraints (%d skipped) in %d classes",
            self.num_constraints, self.num_skipped, len(self._blocks),
        )

    @property
    def num_classes(self) -> int:
        return len(self._blocks)

    def _bond_vectors(self, positions, i, j):
        return self.backend.subtract(self.backend.take(positions, i), self.backend.take(positions, j))

    def _row_dot(self, a, b):
        return self.backend.sum(self.backend.multiply(a, b), axis=1)

    def _relative_errors(self, positions, i, j, distance):
        b = self.backend
        dist = b.sqrt(b.sum(b.square(self._bond_vectors(positions, i, j)), axis=1))
        return b.divide(b.abs(b.subtract(dist, distance)), distance)

    def constraint_errors(self, positions) -> np.ndarray:
        """Relative error |r - d| / d of every constraint, including skipped ones."""
        if self.num_constraints == 0:
            return np.zeros(0)
        errors = self._relative_errors(positions, self._all_i, self._all_j, self._all_distance)
        return np.asarray(self.backend.to_numpy(errors), dtype=np.float64)

    def max_position_error(self, positions) -> float:
        """Largest relative distance error over the enforced constraints."""
        if self.num_active == 0:
            return 0.0
        errors = self._relative_errors(positions, self._active_i, self._active_j, self._active_distance)
        return float(self.backend.to_numpy(self.backend.max(errors)))

    def max_velocity_error(self, velocities, positions, time_scale: float) -> float:
        """Largest relative distance drift |r . v_ij| * time_scale / d^2."""
        if self.num_active == 0:
            return 0.0
        b = self.backend
        r = self._bond_vectors(positions, self._active_i, self._active_j)
        v = self._bond_vectors(velocities, self._active_i, self._active_j)
        drift = b.multiply(b.abs(self._row_dot(r, v)), time_scale)
        return float(b.to_numpy(b.max(b.divide(drift, b.square(self._active_distance)))))

    def _shake_block(self, block: _ConstraintBlock, positions, reference):
        b = self.backend
        r_ref = self._bond_vectors(reference, block.i, block.j)
        r = self._bond_vectors(positions, block.i, block.j)
        mismatch = b.subtract(block.distance_sq, b.sum(b.square(r), axis=1))
        denominator = b.multiply(2.0, b.multiply(block.w_sum, self._row_dot(r_ref, r)))
        g = b.divide(mismatch, denominator)
        positions = b.scatter_add(positions, block.i, b.multiply(r_ref, b.expand_dims(b.multiply(g, block.w_i), 1)))
        positions = b.scatter_add(positions, block.j, b.multiply(r_ref, b.expand_dims(b.multiply(g, b.multiply(block.w_j, -1.0)), 1)))
        return positions

    def _rattle_block(self, block: _ConstraintBlock, velocities, positions):
        b = self.backend
        r = self._bond_vectors(positions, block.i, block.j)
        v = self._bond_vectors(velocities, block.i, block.j)
        r_sq = b.sum(b.square(r), axis=1)
        k = b.divide(b.multiply(self._row_dot(r, v), -1.0), b.multiply(block.w_sum, r_sq))
        velocities = b.scatter_add(velocities, block.i, b.multiply(r, b.expand_dims(b.multiply(k, block.w_i), 1)))
        velocities = b.scatter_add(velocities, block.j, b.multiply(r, b.expand_dims(b.multiply(k, b.multiply(block.w_j, -1.0)), 1)))
        return velocities

    def project(
        self,
        trial_positions,
        reference_positions,
        tolerance: float,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> ProjectionResult:
        """Project trial positions onto the constraint manifold.

        Args:
            trial_positions: Unconstrained positions (n, 3)
            reference_positions: Positions at the start of the step (n, 3),
                whose bond vectors give the correction directions
            tolerance: Required max relative error |r - d| / d
            max_iterations: Maximum number of sweeps

        Returns:
            ProjectionResult with the corrected positions

        Raises:
            ConvergenceFailure: If the tolerance is not reached within max_iterations
                sweeps, or the correction became non-finite
        """
        positions = trial_positions
        if self.num_active == 0:
            return ProjectionResult(positions, 0, 0.0)
        iteration = 0
        while True:
            max_error = self.max_position_error(positions)
            if not np.isfinite(max_error):
                raise ConvergenceFailure(
                    f"Constraint projection produced non-finite positions after {iteration} sweeps",
                    iterations=iteration,
                    max_error=max_error,
                )
            if max_error <= tolerance:
                return ProjectionResult(positions, iteration, max_error)
            if iteration >= max_iterations:
                break
            for block in self._blocks:
                positions = self._shake_block(block, positions, reference_positions)
            iteration += 1
        logger.warning("SHAKE did not converge: max error %.3e after %d sweeps", max_error, iteration)
        raise ConvergenceFailure(
            f"Constraints did not converge within {max_iterations} iterations "
            f"(max relative error {max_error:.3e}, tolerance {tolerance:.1e})",
            iterations=iteration,
            max_error=max_error,
        )

    def project_velocities(
        self,
        velocities,
        positions,
        tolerance: float,
        time_scale: float,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
    ) -> ProjectionResult:
        """Remove velocity components that would change constrained distances.

        Args:
            velocities: Velocities to correct (n, 3)
            positions: Constrained positions (n, 3)
            tolerance: Allowed relative distance drift over time_scale
            time_scale: Time over which the residual drift is measured (the step size)
            max_iterations: Maximum number of sweeps

        Returns:
            ProjectionResult with the corrected velocities

        Raises:
            ConvergenceFailure: If the tolerance is not reached within max_iterations sweeps
        """
        if self.num_active == 0:
            return ProjectionResult(velocities, 0, 0.0)
        iteration = 0
        while True:
            max_error = self.max_velocity_error(velocities, positions, time_scale)
            if not np.isfinite(max_error):
                raise ConvergenceFailure(
                    f"Velocity constraints produced non-finite velocities after {iteration} sweeps",
                    iterations=iteration,
                    max_error=max_error,
                )
            if max_error <= tolerance:
                return ProjectionResult(velocities, iteration, max_error)
            if iteration >= max_iterations:
                break
            for block in self._blocks:
                velocities = self._rattle_block(block, velocities, positions)
            iteration += 1
        logger.warning("RATTLE did not converge: max drift %.3e after %d sweeps", max_error, iteration)
        raise ConvergenceFailure(
            f"Velocity constraints did not converge within {max_iterations} iterations "
            f"(max relative drift {max_error:.3e}, tolerance {tolerance:.1e})",
            iterations=iteration,
            max_error=max_error,
        )
