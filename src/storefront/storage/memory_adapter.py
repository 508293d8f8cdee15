"""In-memory key-value store for tests and throwaway sessions."""

import copy
from typing import Any

from storefront.storage.port import KeyValueStore, StorageError


class MemoryStore(KeyValueStore):
    """Dict-backed store. Values are deep-copied in and out like a real codec would."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self.data: dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.writes: list[str] = []
        self.fail_writes: bool = False

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self.data:
            return default
        return copy.deepcopy(self.data[key])

    def set(self, key: str, value: Any) -> None:
        if self.fail_writes:
            raise StorageError(f"Write to {key} rejected")
        self.data[key] = copy.deepcopy(value)
        self.writes.append(key)

    def delete(self, key: str) -> None:
        self.data.pop(key, None)
        self.writes.append(key)
