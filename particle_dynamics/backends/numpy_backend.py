"""NumPy backend implementation."""

from typing import Any, Tuple, Union
import numpy as np
from particle_dynamics.backends.base import Backend


class NumPyBackend(Backend):
    """NumPy-based backend (baseline, always available)."""
    
    def __init__(self):
        self._rng = np.random.default_rng()
    
    @property
    def name(self) -> str:
        return "numpy"
    
    @property
    def device(self) -> str:
        return "cpu"
    
    def array(self, data: Any, dtype=None) -> np.ndarray:
        return np.array(data, dtype=dtype)
    
    def zeros(self, shape: Tuple[int, ...], dtype=None) -> np.ndarray:
        return np.zeros(shape, dtype=dtype or np.float64)
    
    def zeros_like(self, array: Any) -> np.ndarray:
        return np.zeros_like(array)
    
    def sum(self, array: Any, axis: Union[int, Tuple[int, ...]] = None, keepdims: bool = False) -> np.ndarray:
        return np.sum(array, axis=axis, keepdims=keepdims)
    
    def max(self, array: Any, axis: Union[int, Tuple[int, ...]] = None) -> np.ndarray:
        return np.max(array, axis=axis)
    
    def abs(self, array: Any) -> np.ndarray:
        return np.abs(array)
    
    def sqrt(self, array: Any) -> np.ndarray:
        return np.sqrt(array)
    
    def square(self, array: Any) -> np.ndarray:
        return np.square(array)
    
    def add(self, a: Any, b: Any) -> np.ndarray:
        return np.add(a, b)
    
    def subtract(self, a: Any, b: Any) -> np.ndarray:
        return np.subtract(a, b)
    
    def multiply(self, a: Any, b: Any) -> np.ndarray:
        return np.multiply(a, b)
    
    def divide(self, a: Any, b: Any) -> np.ndarray:
        return np.divide(a, b)
    
    def power(self, base: Any, exponent: Any) -> np.ndarray:
        return np.power(base, exponent)
    
    def where(self, condition: Any, x: Any, y: Any) -> np.ndarray:
        return np.where(condition, x, y)

    def reshape(self, array: Any, newshape: Tuple[int, ...]) -> np.ndarray:
        return np.reshape(array, newshape)

    def expand_dims(self, array: Any, axis: int) -> np.ndarray:
        return np.expand_dims(array, axis=axis)

    def take(self, array: Any, indices: Any) -> np.ndarray:
        return np.take(array, indices, axis=0)

    def scatter_add(self, array: Any, indices: Any, values: Any) -> np.ndarray:
        result = np.array(array, copy=True)
        np.add.at(result, indices, values)
        return result

    def to_numpy(self, array: Any) -> np.ndarray:
        return np.asarray(array)
    
    def random_normal(self, shape: Tuple[int, ...], mean: float = 0.0, std: float = 1.0, seed: int = None) -> np.ndarray:
        if seed is not None:
            rng = np.random.default_rng(seed)
            return rng.normal(mean, std, shape)
        return self._rng.normal(mean, std, shape)
    
    def set_seed(self, seed: int) -> None:
        self._rng = np.random.default_rng(seed)
