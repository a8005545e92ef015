"""Abstract base class for compute backends."""

from abc import ABC, abstractmethod
from typing import Any, Tuple, Union
import numpy as np


class Backend(ABC):
    """Abstract interface for array computation backends.
    
    Force terms, the integrator and the constraint solver are written against
    this interface only, so the same simulation code runs on different
    execution engines (NumPy, JAX). Every operation returns a new array;
    callers never rely on in-place mutation.
    """
    
    @property
    @abstractmethod
    def name(self) -> str:
        """Return the name of this backend."""
        pass
    
    @property
    @abstractmethod
    def device(self) -> str:
        """Return the device type (e.g., 'cpu', 'cuda:0')."""
        pass
    
    @abstractmethod
    def array(self, data: Any, dtype=None) -> Any:
        """Create an array from data.
        
        Args:
            data: Input data (list, numpy array, etc.)
            dtype: Optional data type
            
        Returns:
            Backend array object
        """
        pass
    
    @abstractmethod
    def zeros(self, shape: Tuple[int, ...], dtype=None) -> Any:
        """Create an array of zeros.
        
        Args:
            shape: Array shape
            dtype: Optional data type
            
        Returns:
            Zero-filled array
        """
        pass
    
    @abstractmethod
    def zeros_like(self, array: Any) -> Any:
        """Create an array of zeros with same shape as input."""
        pass
    
    @abstractmethod
    def sum(self, array: Any, axis: Union[int, Tuple[int, ...]] = None, keepdims: bool = False) -> Any:
        """Sum array elements along axis."""
        pass
    
    @abstractmethod
    def max(self, array: Any, axis: Union[int, Tuple[int, ...]] = None) -> Any:
        """Maximum of array elements along axis."""
        pass
    
    @abstractmethod
    def abs(self, array: Any) -> Any:
        """Element-wise absolute value."""
        pass
    
    @abstractmethod
    def sqrt(self, array: Any) -> Any:
        """Compute square root."""
        pass
    
    @abstractmethod
    def square(self, array: Any) -> Any:
        """Compute square."""
        pass
    
    @abstractmethod
    def add(self, a: Any, b: Any) -> Any:
        """Element-wise addition."""
        pass
    
    @abstractmethod
    def subtract(self, a: Any, b: Any) -> Any:
        """Element-wise subtraction."""
        pass
    
    @abstractmethod
    def multiply(self, a: Any, b: Any) -> Any:
        """Element-wise multiplication."""
        pass
    
    @abstractmethod
    def divide(self, a: Any, b: Any) -> Any:
        """Element-wise division."""
        pass
    
    @abstractmethod
    def power(self, base: Any, exponent: Any) -> Any:
        """Element-wise power."""
        pass
    
    @abstractmethod
    def where(self, condition: Any, x: Any, y: Any) -> Any:
        """Conditional selection."""
        pass
    
    @abstractmethod
    def reshape(self, array: Any, newshape: Tuple[int, ...]) -> Any:
        """Reshape array to newshape (for broadcasting, etc.)."""
        pass

    @abstractmethod
    def expand_dims(self, array: Any, axis: int) -> Any:
        """Expand the shape by inserting a new axis at axis (e.g. (n,) -> (n, 1))."""
        pass

    @abstractmethod
    def take(self, array: Any, indices: Any) -> Any:
        """Gather rows of array (along axis 0) at the given integer indices."""
        pass

    @abstractmethod
    def scatter_add(self, array: Any, indices: Any, values: Any) -> Any:
        """Return a copy of array with values added to rows at indices.
        
        Repeated indices accumulate, so this is the reduction step of a
        per-pair force kernel.
        
        Args:
            array: Target array (n, ...)
            indices: Integer row indices (m,)
            values: Values to add (m, ...)
            
        Returns:
            New array with the contributions accumulated
        """
        pass

    @abstractmethod
    def to_numpy(self, array: Any) -> np.ndarray:
        """Convert backend array to NumPy array.
        
        This is needed for snapshots and convergence checks.
        """
        pass
    
    @abstractmethod
    def random_normal(self, shape: Tuple[int, ...], mean: float = 0.0, std: float = 1.0, seed: int = None) -> Any:
        """Generate random normal distribution."""
        pass
    
    @abstractmethod
    def set_seed(self, seed: int) -> None:
        """Set random seed for reproducibility."""
        pass
