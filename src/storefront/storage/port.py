"""Local key-value storage port (abstract interface).

The client keeps its cart, loyalty cache and reconciliation records in a
small durable store. Values are JSON-serialisable objects. Adapters decide
where the bytes go; callers only ever see keys and decoded values.
"""

from abc import ABC, abstractmethod
from typing import Any


class StorageError(Exception):
    """Raised when the underlying store cannot be read or written."""


class KeyValueStore(ABC):
    """Abstract durable key-value store."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under ``key``, or ``default``."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Durably store ``value`` under ``key`` before returning."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""
        ...
