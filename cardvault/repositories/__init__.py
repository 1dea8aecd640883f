"""Storage boundary for persisting imported cards."""

from .storage_adapter import StorageAdapter, CreatedCard, CreatedAsset

__all__ = [
    "StorageAdapter",
    "CreatedCard",
    "CreatedAsset",
]
