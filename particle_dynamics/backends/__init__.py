"""Compute backend abstractions for particle simulation."""

from particle_dynamics.backends.base import Backend
from particle_dynamics.backends.factory import get_backend, list_available_backends

__all__ = ["Backend", "get_backend", "list_available_backends"]
