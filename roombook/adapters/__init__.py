"""
Adapters layer - Room store implementations.
"""

from .memory_store import InMemoryRoomStore
from .rest_store import RestRoomStore

__all__ = ["InMemoryRoomStore", "RestRoomStore"]
