"""Backend implementations."""

from idea_manager.backends.http import HttpBackend
from idea_manager.backends.memory import MemoryBackend

__all__ = ["HttpBackend", "MemoryBackend"]
