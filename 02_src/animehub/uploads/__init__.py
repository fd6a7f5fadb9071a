"""Upload storage module."""

from .store import FileStore

__all__ = ["FileStore"]
