"""Abstract base class for force terms."""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional, Tuple
from particle_dynamics.backends.base import Backend
from particle_dynamics.errors import ConfigurationError

NUM_FORCE_GROUPS = 32
ALL_GROUPS = (1 << NUM_FORCE_GROUPS) - 1


def validate_group(group: int) -> int:
    """Check that a force group index lies in [0, 31]."""
    group = int(group)
    if not 0 <= group < NUM_FORCE_GROUPS:
        raise ValueError(f"Force group must be in [0, {NUM_FORCE_GROUPS - 1}], got {group}")
    return group


class ForceTerm(ABC):
    """A contributor to the potential energy.
    
    A force term maps positions (n, 3) to a scalar energy and per-particle
    forces (n, 3). It is tagged with a force group so that integrators can
    include or exclude it per step.
    
    Per-term parameters are packed into backend arrays the first time the
    term is evaluated on a backend and reused afterwards. ``prepare()``
    discards the packed arrays; a Simulator calls it when it binds (or
    reinitializes), so parameter edits made after binding take effect only
    on ``Simulator.reinitialize()``.
    """
    
    def __init__(self, group: int = 0):
        self._group = validate_group(group)
        self._packed: Dict[Tuple[str, str], Any] = {}
        self._topology = None
    
    @property
    @abstractmethod
    def name(self) -> str:
        """Registry name of this force type."""
        pass
    
    @property
    def group(self) -> int:
        """Force group index in [0, 31]."""
        return self._group
    
    @group.setter
    def group(self, value: int):
        self._group = validate_group(value)
    
    def attach(self, topology) -> None:
        """Record the topology this term belongs to.
        
        Raises:
            ConfigurationError: If the term already belongs to a topology
        """
        if self._topology is not None:
            raise ConfigurationError(f"{self.name} force term already belongs to a topology")
        self._topology = topology
    
    def prepare(self, num_particles: int) -> None:
        """Validate against the particle count and drop packed parameters.
        
        Raises:
            ConfigurationError: If the term references particles that do not exist
        """
        self.validate(num_particles)
        self._packed.clear()
    
    def validate(self, num_particles: int) -> None:
        """Check that all particle indices are in range."""
        pass
    
    def _check_index(self, index: int, num_particles: int) -> None:
        if not 0 <= index < num_particles:
            raise ConfigurationError(
                f"{self.name} references particle {index}, but the topology has {num_particles} particles"
            )
    
    def _pack(self, backend: Backend, key: str, builder: Callable[[], Any]) -> Any:
        cache_key = (backend.name, key)
        if cache_key not in self._packed:
            self._packed[cache_key] = backend.array(builder())
        return self._packed[cache_key]
    
    @abstractmethod
    def compute(self, positions, box: Optional[Any], backend: Backend) -> Tuple[float, Any]:
        """Evaluate the term.
        
        Args:
            positions: Backend array (n, 3)
            box: Periodic box vectors (3, 3) or None. Passed through only.
            backend: Compute backend
            
        Returns:
            Tuple of (energy, forces) where forces is a backend array (n, 3)
        """
        pass
