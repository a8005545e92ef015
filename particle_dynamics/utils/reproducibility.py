"""Reproducibility utilities for deterministic simulations."""

import random
import numpy as np
from typing import Optional
from particle_dynamics.backends.base import Backend


def set_all_seeds(seed: int, backend: Optional[Backend] = None):
    """Set random seeds for reproducibility.
    
    Args:
        seed: Random seed
        backend: Optional backend to set seed for
    """
    random.seed(seed)
    np.random.seed(seed)
    
    if backend is not None:
        backend.set_seed(seed)
