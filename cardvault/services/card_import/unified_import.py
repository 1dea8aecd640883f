"""
Unified Import Service
======================

Central orchestrator for card imports across all formats:

    detect -> parse -> process -> persist

Detection, parsing and processing have no side effects; any error there is
raised to the caller before storage is touched. Persistence goes through a
StorageAdapter one entity at a time (card first, then its image and assets,
so every asset has an owner to link to). A storage failure stops the calls
for that entity only and is reported in the ImportResult; sibling
characters in the same package are still attempted.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from cardvault.config import ImportConfig
from cardvault.models import (
    AssetLink,
    AssetData,
    AssetType,
    FileFormat,
    ParsedData,
    ProcessedCharacter,
    ProcessedCollection,
    ProcessedImport,
)
from cardvault.repositories import StorageAdapter

from .asset_processor import process_assets
from .card_processor import process_card, process_collection
from .charx_parser import parse_charx
from .errors import CardImportError, StorageWriteFailedError
from .format_detector import FormatDetector
from .json_parser import parse_json
from .png_parser import parse_png
from .voxta_parser import parse_voxta

logger = logging.getLogger(__name__)

ORIGINAL_PACKAGE_NAME = "original-package"
ORIGINAL_PACKAGE_EXT = "voxpkg"


# ===========================
# Results
# ===========================

@dataclass
class EntityImportResult:
    """Outcome of persisting one character or collection."""
    name: str
    kind: str                                   # 'character' or 'collection'
    card_id: Optional[str] = None               # id from create_card, if it got that far
    asset_ids: List[str] = field(default_factory=list)
    error: Optional[StorageWriteFailedError] = None

    @property
    def success(self) -> bool:
        return self.error is None and self.card_id is not None


@dataclass
class ImportResult:
    """Per-entity outcome of one import call."""
    format: FileFormat
    filename: Optional[str] = None
    characters: List[EntityImportResult] = field(default_factory=list)
    collection: Optional[EntityImportResult] = None

    @property
    def entities(self) -> List[EntityImportResult]:
        return ([self.collection] if self.collection else []) + self.characters

    @property
    def card_ids(self) -> List[str]:
        """Persisted card ids: collection first, then members in order."""
        return [e.card_id for e in self.entities if e.success]

    @property
    def failures(self) -> List[EntityImportResult]:
        return [e for e in self.entities if not e.success]

    @property
    def is_complete(self) -> bool:
        """Every entity was persisted."""
        return not self.failures

    @property
    def is_partial(self) -> bool:
        """Some, but not all, entities were persisted."""
        return bool(self.failures) and bool(self.card_ids)

    def summary(self) -> str:
        saved = sum(1 for c in self.characters if c.success)
        return f"{saved} of {len(self.characters)} character(s) saved"


# ===========================
# Side-effect-free stages
# ===========================

def parse_file(
    data: bytes,
    filename: Optional[str] = None,
    config: Optional[ImportConfig] = None,
) -> Tuple[FileFormat, ParsedData]:
    """
    Detect the format of a file and parse it.

    Raises:
        UnsupportedFormatError, MalformedContainerError,
        MissingEmbeddedDataError, UnrecognizedSchemaError
    """
    config = config or ImportConfig()
    file_format = FormatDetector.detect(data, filename)
    logger.info(f"[Unified Import] Detected format: {FormatDetector.get_format_name(file_format)}")

    parsers: Dict[FileFormat, Callable[[], ParsedData]] = {
        FileFormat.PNG: lambda: parse_png(data, filename, keywords=config.png_keywords),
        FileFormat.CHARX: lambda: parse_charx(data, filename, limits=config.limits),
        FileFormat.VOXTA: lambda: parse_voxta(
            data, filename, limits=config.limits,
            keep_original_package=config.keep_original_package,
        ),
        FileFormat.JSON: lambda: parse_json(data, filename),
    }
    return file_format, parsers[file_format]()


def process_import(parsed: ParsedData) -> ProcessedImport:
    """
    Run card, asset and collection processing over parser output.

    Raises:
        ValidationFailedError: When a processor rejects the data
    """
    characters = []
    for character in parsed.characters:
        processed = process_card(character)
        processed = processed.model_copy(update={"assets": process_assets(processed.assets)})
        characters.append(processed)

    collection = process_collection(parsed.collection) if parsed.collection is not None else None

    return ProcessedImport(
        characters=characters,
        collection=collection,
        is_collection=parsed.is_collection,
    )


def prepare_import(
    data: bytes,
    filename: Optional[str] = None,
    config: Optional[ImportConfig] = None,
) -> Tuple[FileFormat, ProcessedImport]:
    """Detect, parse and process a file without persisting anything."""
    file_format, parsed = parse_file(data, filename, config)
    try:
        return file_format, process_import(parsed)
    except CardImportError as e:
        raise e.with_filename(filename)


# ===========================
# Service
# ===========================

class UnifiedImportService:
    """Import card files into any StorageAdapter."""

    def __init__(self, storage: StorageAdapter, config: Optional[ImportConfig] = None):
        """
        Initialize service.

        Args:
            storage: Backend that receives cards, assets and links
            config: Import settings (defaults when omitted)
        """
        self.storage = storage
        self.config = config or ImportConfig()

    async def import_file(self, data: bytes, filename: Optional[str] = None) -> ImportResult:
        """
        Import a file.

        Args:
            data: File bytes
            filename: Original file name (format hint and error context)

        Returns:
            ImportResult with per-character and collection outcomes

        Raises:
            CardImportError: For detection, parse or validation failures
                (nothing has been written in that case)
        """
        logger.info(f"[Unified Import] Importing {filename or 'upload'} ({len(data)} bytes)")

        # Parsing and image decoding are CPU-bound; keep the event loop free
        file_format, processed = await asyncio.to_thread(prepare_import, data, filename, self.config)

        result = await self.persist(processed, file_format, filename)

        if result.is_complete:
            logger.info(f"[Unified Import] Completed {filename or 'upload'}: {result.summary()}")
        else:
            logger.warning(
                f"[Unified Import] {filename or 'upload'} imported with failures: {result.summary()}, "
                f"{len(result.failures)} entity(ies) failed"
            )
        return result

    async def persist(
        self,
        processed: ProcessedImport,
        file_format: FileFormat,
        filename: Optional[str] = None,
    ) -> ImportResult:
        """Store processed data via the storage adapter."""
        result = ImportResult(format=file_format, filename=filename)

        for character in processed.characters:
            result.characters.append(await self._persist_character(character, filename))

        if processed.is_collection and processed.collection is not None:
            result.collection = await self._persist_collection(
                processed.collection, result.characters, filename
            )

        return result

    async def _persist_character(
        self,
        character: ProcessedCharacter,
        filename: Optional[str],
    ) -> EntityImportResult:
        entity = EntityImportResult(name=character.card.meta.name, kind="character")
        operation = "create_card"

        try:
            async with self.storage.transaction():
                created = await self.storage.create_card(character.card)
                entity.card_id = created.card_id

                if character.thumbnail:
                    operation = "set_card_image"
                    await self.storage.set_card_image(created.card_id, character.thumbnail)

                for asset in character.assets:
                    operation = "create_asset"
                    stored = await self.storage.create_asset(asset.to_asset_data())
                    operation = "link_asset_to_card"
                    await self.storage.link_asset_to_card(created.card_id, stored.asset_id, asset.link)
                    entity.asset_ids.append(stored.asset_id)

        except Exception as e:
            entity.error = self._storage_error(entity, operation, e, filename)
            return entity

        logger.info(
            f"[Unified Import] Saved character '{entity.name}' as {entity.card_id} "
            f"with {len(entity.asset_ids)} asset(s)"
        )
        return entity

    async def _persist_collection(
        self,
        collection: ProcessedCollection,
        members: List[EntityImportResult],
        filename: Optional[str],
    ) -> EntityImportResult:
        entity = EntityImportResult(name=collection.card.meta.name, kind="collection")
        operation = "create_card"

        saved_members = [m for m in members if m.success]
        if not saved_members:
            logger.error(f"[Unified Import] No members of collection '{entity.name}' were saved, skipping it")
            entity.error = StorageWriteFailedError(
                f"collection '{entity.name}' has no saved members",
                operation="link_card_to_collection",
                filename=filename,
            )
            return entity

        if len(saved_members) < len(members):
            logger.warning(
                f"[Unified Import] Collection '{entity.name}' will link "
                f"{len(saved_members)} of {len(members)} member(s)"
            )

        try:
            async with self.storage.transaction():
                created = await self.storage.create_card(collection.card)
                entity.card_id = created.card_id

                if collection.thumbnail:
                    operation = "set_card_image"
                    await self.storage.set_card_image(created.card_id, collection.thumbnail)

                if collection.original_package:
                    operation = "create_asset"
                    stored = await self.storage.create_asset(AssetData(
                        buffer=collection.original_package,
                        filename=f"{ORIGINAL_PACKAGE_NAME}.{ORIGINAL_PACKAGE_EXT}",
                        mimetype="application/octet-stream",
                        size=len(collection.original_package),
                    ))
                    operation = "link_asset_to_card"
                    await self.storage.link_asset_to_card(created.card_id, stored.asset_id, AssetLink(
                        type=AssetType.PACKAGE_ORIGINAL,
                        name=ORIGINAL_PACKAGE_NAME,
                        ext=ORIGINAL_PACKAGE_EXT,
                        order=0,
                        is_main=False,
                        tags=[],
                    ))
                    entity.asset_ids.append(stored.asset_id)

                operation = "link_card_to_collection"
                for member in saved_members:
                    await self.storage.link_card_to_collection(member.card_id, created.card_id)

                # Record which stored card each member became
                operation = "update_card"
                member_card_ids = {m.order: r.card_id for m, r in zip(collection.members, members) if r.success}
                if isinstance(collection.card.data, dict):
                    data = dict(collection.card.data)
                    data["members"] = [
                        {**member.model_dump(), "card_id": member_card_ids.get(member.order)}
                        for member in collection.members
                    ]
                    await self.storage.update_card(created.card_id, {"data": data})

        except Exception as e:
            entity.error = self._storage_error(entity, operation, e, filename)
            return entity

        logger.info(
            f"[Unified Import] Saved collection '{entity.name}' as {entity.card_id} "
            f"with {len(saved_members)} member(s)"
        )
        return entity

    @staticmethod
    def _storage_error(
        entity: EntityImportResult,
        operation: str,
        error: Exception,
        filename: Optional[str],
    ) -> StorageWriteFailedError:
        logger.error(
            f"[Unified Import] Failed to save {entity.kind} '{entity.name}' during {operation}: {error}"
        )
        failure = StorageWriteFailedError(
            f"{operation} failed for {entity.kind} '{entity.name}': {error}",
            operation=operation,
            filename=filename,
        )
        failure.__cause__ = error
        return failure
