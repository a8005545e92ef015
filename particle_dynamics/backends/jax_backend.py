"""JAX backend implementation (optional, GPU support)."""

from typing import Any, Tuple, Union
import numpy as np
from particle_dynamics.backends.base import Backend

try:
    import jax
    import jax.numpy as jnp
    JAX_AVAILABLE = True
except ImportError:
    JAX_AVAILABLE = False


class JAXBackend(Backend):
    """JAX-based backend with GPU support."""
    
    def __init__(self, device: str = None, use_float32: bool = False):
        """Initialize JAX backend.
        
        Args:
            device: Device string (e.g., 'cpu', 'gpu:0'). Auto-selects if None.
            use_float32: Use float32 for arrays (faster on GPU, but constraint
                tolerances below ~1e-6 are then out of reach).
        """
        if not JAX_AVAILABLE:
            raise ImportError("JAX not available. Install with: pip install jax jaxlib")
        
        if not use_float32:
            jax.config.update("jax_enable_x64", True)
        self._device = device or jax.devices()[0]
        self._key = jax.random.PRNGKey(0)
        self._float32 = use_float32
        self._dtype = jnp.float32 if use_float32 else jnp.float64
    
    @property
    def name(self) -> str:
        return "jax"
    
    @property
    def device(self) -> str:
        return str(self._device)
    
    def array(self, data: Any, dtype=None) -> Any:
        data = np.asarray(data)
        if dtype is None and np.issubdtype(data.dtype, np.floating):
            dtype = self._dtype
        return jnp.array(data, dtype=dtype)
    
    def zeros(self, shape: Tuple[int, ...], dtype=None) -> Any:
        return jnp.zeros(shape, dtype=dtype or self._dtype)
    
    def zeros_like(self, array: Any) -> Any:
        return jnp.zeros_like(array)
    
    def sum(self, array: Any, axis: Union[int, Tuple[int, ...]] = None, keepdims: bool = False) -> Any:
        return jnp.sum(array, axis=axis, keepdims=keepdims)
    
    def max(self, array: Any, axis: Union[int, Tuple[int, ...]] = None) -> Any:
        return jnp.max(array, axis=axis)
    
    def abs(self, array: Any) -> Any:
        return jnp.abs(array)
    
    def sqrt(self, array: Any) -> Any:
        return jnp.sqrt(array)
    
    def square(self, array: Any) -> Any:
        return jnp.square(array)
    
    def add(self, a: Any, b: Any) -> Any:
        return jnp.add(a, b)
    
    def subtract(self, a: Any, b: Any) -> Any:
        return jnp.subtract(a, b)
    
    def multiply(self, a: Any, b: Any) -> Any:
        return jnp.multiply(a, b)
    
    def divide(self, a: Any, b: Any) -> Any:
        return jnp.divide(a, b)
    
    def power(self, base: Any, exponent: Any) -> Any:
        return jnp.power(base, exponent)
    
    def where(self, condition: Any, x: Any, y: Any) -> Any:
        return jnp.where(condition, x, y)

    def reshape(self, array: Any, newshape: Tuple[int, ...]) -> Any:
        return jnp.reshape(array, newshape)

    def expand_dims(self, array: Any, axis: int) -> Any:
        return jnp.expand_dims(array, axis=axis)

    def take(self, array: Any, indices: Any) -> Any:
        return jnp.take(array, indices, axis=0)

    def scatter_add(self, array: Any, indices: Any, values: Any) -> Any:
        return jnp.asarray(array).at[indices].add(values)

    def to_numpy(self, array: Any) -> np.ndarray:
        return np.asarray(array)
    
    def random_normal(self, shape: Tuple[int, ...], mean: float = 0.0, std: float = 1.0, seed: int = None) -> Any:
        if seed is not None:
            key = jax.random.PRNGKey(seed)
        else:
            self._key, key = jax.random.split(self._key)
        return jax.random.normal(key, shape, dtype=self._dtype) * std + mean
    
    def set_seed(self, seed: int) -> None:
        self._key = jax.random.PRNGKey(seed)
