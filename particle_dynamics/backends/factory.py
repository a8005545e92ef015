"""Backend factory for creating and managing compute backends."""

import logging
from typing import List, Optional
from particle_dynamics.backends.base import Backend
from particle_dynamics.backends.numpy_backend import NumPyBackend

logger = logging.getLogger(__name__)

# Optional backends - will be imported if available
_jax_backend = None

try:
    from particle_dynamics.backends.jax_backend import JAXBackend, JAX_AVAILABLE
    if JAX_AVAILABLE:
        _jax_backend = JAXBackend
except ImportError:
    pass


def list_available_backends() -> List[str]:
    """List all available backends.
    
    Returns:
        List of backend names that can be instantiated
    """
    backends = ["numpy"]  # Always available
    
    if _jax_backend is not None:
        backends.append("jax")
    
    return backends


def get_backend(name: Optional[str] = None, prefer_gpu: bool = False) -> Backend:
    """Get a backend instance.
    
    Args:
        name: Backend name ('numpy', 'jax'). If None, auto-selects.
        prefer_gpu: If True and name is None, prefer an accelerated backend
            over NumPy when one is installed.
        
    Returns:
        Backend instance
        
    Raises:
        ValueError: If requested backend is not available
    """
    if name is None:
        if prefer_gpu and _jax_backend is not None:
            backend = _jax_backend()
            logger.info("Auto-selected backend %s on %s", backend.name, backend.device)
            return backend
        return NumPyBackend()
    
    name_lower = name.lower()
    
    if name_lower == "numpy":
        return NumPyBackend()
    elif name_lower == "jax":
        if _jax_backend is None:
            raise ValueError("JAX backend not available. Install with: pip install jax jaxlib")
        return _jax_backend()
    else:
        available = list_available_backends()
        raise ValueError(f"Unknown backend '{name}'. Available: {available}")
