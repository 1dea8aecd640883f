"""Services package."""

from .card_import import UnifiedImportService, ImportResult

__all__ = [
    "UnifiedImportService",
    "ImportResult",
]
