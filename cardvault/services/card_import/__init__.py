"""
Card Import Pipeline
====================

Imports character cards from any supported container into a storage backend.

Supports:
- PNG cards with base64 JSON in a text chunk (ccv3 / chara)
- CHARX packages (ZIP with card.json and assets/)
- Voxta packages (.voxpkg, one or more characters plus scenarios)
- JSON cards (CCv2, CCv3, standalone lorebooks, legacy spec-less cards)
"""

from .errors import (
    CardImportError,
    UnsupportedFormatError,
    MalformedContainerError,
    MissingEmbeddedDataError,
    UnrecognizedSchemaError,
    ValidationFailedError,
    StorageWriteFailedError,
)
from .format_detector import FormatDetector
from .metadata_handler import PNGMetadataHandler
from .png_parser import parse_png
from .json_parser import parse_json, classify_card_document
from .charx_parser import parse_charx
from .voxta_parser import parse_voxta
from .asset_processor import process_asset, process_assets
from .card_processor import process_card, process_collection
from .unified_import import (
    UnifiedImportService,
    ImportResult,
    EntityImportResult,
    parse_file,
    prepare_import,
)

__all__ = [
    'CardImportError',
    'UnsupportedFormatError',
    'MalformedContainerError',
    'MissingEmbeddedDataError',
    'UnrecognizedSchemaError',
    'ValidationFailedError',
    'StorageWriteFailedError',
    'FormatDetector',
    'PNGMetadataHandler',
    'parse_png',
    'parse_json',
    'classify_card_document',
    'parse_charx',
    'parse_voxta',
    'process_asset',
    'process_assets',
    'process_card',
    'process_collection',
    'UnifiedImportService',
    'ImportResult',
    'EntityImportResult',
    'parse_file',
    'prepare_import',
]
