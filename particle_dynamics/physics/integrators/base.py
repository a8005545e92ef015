"""Abstract base class for time integrators."""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional, Tuple
from particle_dynamics.errors import ConfigurationError
from particle_dynamics.physics.constraints import DEFAULT_MAX_ITERATIONS
from particle_dynamics.physics.forces.base import ALL_GROUPS

logger = logging.getLogger(__name__)


class IntegratorStatus(Enum):
    IDLE = "idle"
    STEPPING = "stepping"


class Integrator(ABC):
    """Stepping policy driving a bound Simulator forward in time.
    
    Configuration (step size, constraint tolerance, integration force groups)
    is the only thing an integrator keeps between calls to step(); all
    dynamical quantities live in the Simulator's state.
    """
    
    def __init__(
        self,
        step_size: float,
        constraint_tolerance: float = 1e-5,
        integration_groups: int = ALL_GROUPS,
        max_constraint_iterations: int = DEFAULT_MAX_ITERATIONS,
    ):
        """Initialize integrator.
        
        Args:
            step_size: Time step (ps), must be positive
            constraint_tolerance: Required relative constraint accuracy,
                |current distance - target| / target <= tolerance
            integration_groups: Bitmask of force groups that drive the motion
            max_constraint_iterations: Sweep cap for constraint projection
        """
        self.step_size = step_size
        self.constraint_tolerance = constraint_tolerance
        self.integration_groups = integration_groups
        self.max_constraint_iterations = max_constraint_iterations
        self._status = IntegratorStatus.IDLE
        self._simulator = None
    
    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of this integrator."""
        pass
    
    @property
    @abstractmethod
    def order(self) -> int:
        """Return the order of accuracy (e.g., 2 for velocity Verlet)."""
        pass
    
    @property
    def step_size(self) -> float:
        return self._step_size
    
    @step_size.setter
    def step_size(self, value: float):
        value = float(value)
        if not value > 0.0:
            raise ValueError(f"Step size must be positive, got {value}")
        self._step_size = value
    
    @property
    def constraint_tolerance(self) -> float:
        return self._constraint_tolerance
    
    @constraint_tolerance.setter
    def constraint_tolerance(self, value: float):
        value = float(value)
        if not value > 0.0:
            raise ValueError(f"Constraint tolerance must be positive, got {value}")
        self._constraint_tolerance = value
    
    @property
    def integration_groups(self) -> int:
        """Bitmask of force groups included when computing forces for a step."""
        return self._integration_groups
    
    @integration_groups.setter
    def integration_groups(self, value: int):
        value = int(value)
        if value < 0 or value > ALL_GROUPS:
            raise ValueError(f"Integration groups must be a 32-bit mask, got {value:#x}")
        self._integration_groups = value
    
    @property
    def max_constraint_iterations(self) -> int:
        return self._max_constraint_iterations
    
    @max_constraint_iterations.setter
    def max_constraint_iterations(self, value: int):
        value = int(value)
        if value < 1:
            raise ValueError(f"max_constraint_iterations must be at least 1, got {value}")
        self._max_constraint_iterations = value
    
    @property
    def status(self) -> IntegratorStatus:
        return self._status
    
    @property
    def simulator(self):
        """The Simulator this integrator is bound to, or None."""
        return self._simulator
    
    def bind(self, simulator) -> None:
        """Attach to a Simulator. An integrator can only be bound once."""
        if self._simulator is not None:
            raise ConfigurationError("Integrator is already bound to a Simulator")
        self._simulator = simulator
    
    def step(self, steps: int = 1) -> None:
        """Advance the bound Simulator by a number of steps.
        
        Each step either commits completely or raises; a failing step leaves
        the state as it was after the previous step.
        
        Args:
            steps: Number of steps to take
            
        Raises:
            ValueError: If steps is negative
            NumericalInstability: If constraint projection fails
        """
        steps = int(steps)
        if steps < 0:
            raise ValueError(f"Number of steps must be non-negative, got {steps}")
        simulator = self._simulator
        if simulator is None:
            raise ConfigurationError("Integrator is not bound to a Simulator")
        if self._status is IntegratorStatus.STEPPING:
            raise RuntimeError("step() called while the integrator is already stepping")
        self._status = IntegratorStatus.STEPPING
        try:
            carry = None
            for _ in range(steps):
                positions, velocities, carry = self.advance(simulator, carry)
                simulator.commit(positions, velocities, self.step_size)
        finally:
            self._status = IntegratorStatus.IDLE
    
    @abstractmethod
    def advance(self, simulator, carry: Optional[Any]) -> Tuple[Any, Any, Optional[Any]]:
        """Compute the next positions and velocities without committing them.
        
        Args:
            simulator: Bound Simulator (read-only access to its state)
            carry: Value returned by the previous advance() of the same
                step() call, or None on the first step
            
        Returns:
            Tuple of (new_positions, new_velocities, carry)
        """
        pass
