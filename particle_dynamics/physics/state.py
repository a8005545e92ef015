"""Dynamical state and immutable snapshots of it."""

from dataclasses import dataclass
from enum import IntFlag
from typing import Any, Optional
import numpy as np


class StateFlags(IntFlag):
    """Quantities to include in a StateSnapshot."""
    NONE = 0
    POSITIONS = 1
    VELOCITIES = 2
    FORCES = 4
    ENERGY = 8
    TIME = 16
    ALL = POSITIONS | VELOCITIES | FORCES | ENERGY | TIME


@dataclass
class SimulationState:
    """Mutable positions, velocities, time and step count.

    Owned by exactly one Simulator, which is the only writer. Arrays are
    backend arrays of shape (n, 3).
    """
    positions: Any
    velocities: Any
    time: float = 0.0
    step_count: int = 0

    @classmethod
    def zeros(cls, num_particles: int, backend) -> "SimulationState":
        return cls(
            positions=backend.zeros((num_particles, 3)),
            velocities=backend.zeros((num_particles, 3)),
        )


def _frozen_copy(array) -> np.ndarray:
    result = np.array(array, dtype=np.float64, copy=True)
    result.setflags(write=False)
    return result


@dataclass(frozen=True)
class StateSnapshot:
    """Immutable, point-in-time view of a simulation.

    Only the quantities requested through StateFlags are filled in; the rest
    are None. Arrays are read-only NumPy copies, so a snapshot can be shared
    freely between readers.
    """
    flags: StateFlags
    time: Optional[float] = None
    step_count: Optional[int] = None
    positions: Optional[np.ndarray] = None
    velocities: Optional[np.ndarray] = None
    forces: Optional[np.ndarray] = None
    potential_energy: Optional[float] = None
    kinetic_energy: Optional[float] = None

    @classmethod
    def build(
        cls,
        flags: StateFlags,
        time: Optional[float] = None,
        step_count: Optional[int] = None,
        positions=None,
        velocities=None,
        forces=None,
        potential_energy: Optional[float] = None,
        kinetic_energy: Optional[float] = None,
    ) -> "StateSnapshot":
        """Create a snapshot, copying arrays into read-only NumPy arrays."""
        return cls(
            flags=StateFlags(flags),
            time=time,
            step_count=step_count,
            positions=None if positions is None else _frozen_copy(positions),
            velocities=None if velocities is None else _frozen_copy(velocities),
            forces=None if forces is None else _frozen_copy(forces),
            potential_energy=potential_energy,
            kinetic_energy=kinetic_energy,
        )

    @property
    def total_energy(self) -> Optional[float]:
        if self.potential_energy is None or self.kinetic_energy is None:
            return None
        return self.potential_energy + self.kinetic_energy
