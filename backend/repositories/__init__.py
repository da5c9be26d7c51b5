"""
Repository layer for in-process state.

The session map and the active-execution registry live only for the
lifetime of the server process.
"""

from .memory_store import InMemoryStore

__all__ = [
    "InMemoryStore",
]
