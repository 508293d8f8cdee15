"""Local storage factory.

Provides get_storage() / set_storage() to swap implementations:
- JsonFileStore for real sessions (durable across restarts)
- MemoryStore for tests and throwaway sessions
"""

from storefront.config import StorefrontSettings
from storefront.storage.port import KeyValueStore

_current_storage: KeyValueStore | None = None


def build_storage(settings: StorefrontSettings) -> KeyValueStore:
    """Create the store named by ``settings.storage``."""
    if settings.storage == "memory":
        from storefront.storage.memory_adapter import MemoryStore

        return MemoryStore()
    if settings.storage == "file":
        from storefront.storage.json_file_adapter import JsonFileStore

        return JsonFileStore(settings.state_path)
    raise ValueError(f"Unknown storage backend: {settings.storage}")


def get_storage() -> KeyValueStore:
    """Return the active store, creating it from STOREFRONT_STORAGE on first use."""
    global _current_storage
    if _current_storage is None:
        _current_storage = build_storage(StorefrontSettings.from_env())
    return _current_storage


def set_storage(storage: KeyValueStore) -> None:
    """Override the active store (useful for tests)."""
    global _current_storage
    _current_storage = storage


def reset_storage() -> None:
    """Reset to the default store."""
    global _current_storage
    _current_storage = None
