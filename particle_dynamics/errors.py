"""Error kinds raised by the simulation engine."""

from typing import List, Optional, Sequence, Tuple


class SimulationError(Exception):
    """Base class for all errors raised by particle_dynamics."""


class ConfigurationError(SimulationError, ValueError):
    """Raised when a topology or integrator configuration is ill-posed.
    
    Attributes:
        constraints: Indices of the offending constraints, if any
    """
    
    def __init__(self, message: str, constraints: Optional[Sequence[int]] = None):
        super().__init__(message)
        self.constraints: List[int] = list(constraints or [])


class NumericalInstability(SimulationError, ArithmeticError):
    """Raised when a step cannot be completed. The step is not committed."""


class ConvergenceFailure(NumericalInstability):
    """Raised when constraint projection does not converge.
    
    Attributes:
        iterations: Number of sweeps performed before giving up
        max_error: Largest remaining relative constraint error
    """
    
    def __init__(self, message: str, iterations: int, max_error: float):
        super().__init__(message)
        self.iterations = iterations
        self.max_error = max_error


class DimensionMismatch(SimulationError, ValueError):
    """Raised when an array does not match the number of particles."""
    
    def __init__(self, name: str, expected: Tuple[int, ...], actual: Tuple[int, ...]):
        super().__init__(f"{name} must have shape {expected}, got {actual}")
        self.expected = expected
        self.actual = actual
