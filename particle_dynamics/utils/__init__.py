"""Utility functions for configuration, logging and reproducibility."""

from particle_dynamics.utils.reproducibility import set_all_seeds
from particle_dynamics.utils.config import load_config, save_config, create_integrator, Config
from particle_dynamics.utils.logging_config import setup_logging

__all__ = ["set_all_seeds", "load_config", "save_config", "create_integrator", "Config", "setup_logging"]
