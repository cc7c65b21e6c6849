"""Error store implementations."""
from .base import BaseErrorStore
from .memory import MemoryErrorStore

__all__ = [
    'BaseErrorStore',
    'MemoryErrorStore'
]
