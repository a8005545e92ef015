"""Name registry for force term types."""

from typing import Dict, List, Type
from particle_dynamics.physics.forces.base import ForceTerm
from particle_dynamics.physics.forces.external import UniformFieldForce
from particle_dynamics.physics.forces.harmonic_bond import HarmonicBondForce
from particle_dynamics.physics.forces.nonbonded import NonbondedForce

_FORCE_TYPES: Dict[str, Type[ForceTerm]] = {
    "harmonic_bond": HarmonicBondForce,
    "nonbonded": NonbondedForce,
    "uniform_field": UniformFieldForce,
}


def register_force(name: str, force_type: Type[ForceTerm]) -> None:
    """Register a force term type under a name.
    
    Raises:
        ValueError: If the name is taken or the type is not a ForceTerm
    """
    if not (isinstance(force_type, type) and issubclass(force_type, ForceTerm)):
        raise ValueError(f"{force_type!r} is not a ForceTerm subclass")
    if name in _FORCE_TYPES:
        raise ValueError(f"Force type '{name}' is already registered")
    _FORCE_TYPES[name] = force_type


def list_force_types() -> List[str]:
    """List registered force type names."""
    return sorted(_FORCE_TYPES)


def create_force(name: str, **kwargs) -> ForceTerm:
    """Instantiate a registered force type.
    
    Args:
        name: Registered name (e.g. 'harmonic_bond')
        **kwargs: Constructor arguments (e.g. group=1)
        
    Raises:
        ValueError: If no force type is registered under name
    """
    try:
        force_type = _FORCE_TYPES[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown force type '{name}'. Available: {list_force_types()}") from None
    return force_type(**kwargs)
