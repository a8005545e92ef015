"""Configuration management."""

import json
import yaml
from typing import Optional
from pathlib import Path
from dataclasses import dataclass, asdict, fields
from particle_dynamics.errors import ConfigurationError
from particle_dynamics.physics.constraints import DEFAULT_MAX_ITERATIONS
from particle_dynamics.physics.forces.base import ALL_GROUPS
from particle_dynamics.physics.integrators.base import Integrator
from particle_dynamics.physics.integrators.verlet import VerletIntegrator


@dataclass
class Config:
    """Simulation configuration."""
    # Integration parameters
    step_size: float = 0.001
    integrator: str = "verlet"
    constraint_tolerance: float = 1e-5
    max_constraint_iterations: int = DEFAULT_MAX_ITERATIONS
    integration_groups: int = ALL_GROUPS
    
    # Execution
    backend: str = "numpy"
    
    # Reproducibility
    seed: Optional[int] = None
    
    def validate(self):
        """Check value ranges.
        
        Raises:
            ConfigurationError: If a value is out of range
        """
        if not self.step_size > 0:
            raise ConfigurationError(f"step_size must be positive, got {self.step_size}")
        if not self.constraint_tolerance > 0:
            raise ConfigurationError(f"constraint_tolerance must be positive, got {self.constraint_tolerance}")
        if self.max_constraint_iterations < 1:
            raise ConfigurationError(
                f"max_constraint_iterations must be at least 1, got {self.max_constraint_iterations}"
            )
        if not 0 <= self.integration_groups <= ALL_GROUPS:
            raise ConfigurationError(f"integration_groups must be a 32-bit mask, got {self.integration_groups}")
        if self.integrator.lower() not in _INTEGRATORS:
            raise ConfigurationError(f"Unknown integrator '{self.integrator}'. Available: {sorted(_INTEGRATORS)}")


_INTEGRATORS = {
    "verlet": VerletIntegrator,
}


def create_integrator(config: Config) -> Integrator:
    """Build the integrator described by a Config."""
    config.validate()
    integrator_cls = _INTEGRATORS[config.integrator.lower()]
    return integrator_cls(
        config.step_size,
        constraint_tolerance=config.constraint_tolerance,
        integration_groups=config.integration_groups,
        max_constraint_iterations=config.max_constraint_iterations,
    )


def load_config(config_path: str) -> Config:
    """Load configuration from file.
    
    Args:
        config_path: Path to config file (.json or .yaml)
        
    Returns:
        Config object
        
    Raises:
        ConfigurationError: If the file contains unknown keys
    """
    config_path = Path(config_path)
    
    with open(config_path, 'r') as f:
        if config_path.suffix == '.yaml' or config_path.suffix == '.yml':
            data = yaml.safe_load(f) or {}
        else:
            data = json.load(f)
    
    known = {field.name for field in fields(Config)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys in {config_path}: {unknown}")
    
    config = Config(**data)
    config.validate()
    return config


def save_config(config: Config, output_path: str):
    """Save configuration to file.
    
    Args:
        config: Config object
        output_path: Output file path (.json or .yaml)
    """
    output_path = Path(output_path)
    data = asdict(config)
    
    with open(output_path, 'w') as f:
        if output_path.suffix == '.yaml' or output_path.suffix == '.yml':
            yaml.dump(data, f, default_flow_style=False)
        else:
            json.dump(data, f, indent=2)
