"""
Adapters layer - Repository implementations for the engine's collaborators.
"""

from .memory_repository import InMemoryRepository

__all__ = ["InMemoryRepository"]
