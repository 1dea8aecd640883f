"""Models package for cardvault."""

from .cards import (
    CardSpec,
    AssetType,
    FileFormat,
    CardMeta,
    CardData,
    AssetLink,
    AssetData,
    ParsedAsset,
    ParsedCharacter,
    ParsedCollectionMember,
    ParsedScenario,
    ParsedCollection,
    ParsedData,
    ProcessedCharacter,
    ProcessedCollection,
    ProcessedImport,
)

__all__ = [
    "CardSpec",
    "AssetType",
    "FileFormat",
    "CardMeta",
    "CardData",
    "AssetLink",
    "AssetData",
    "ParsedAsset",
    "ParsedCharacter",
    "ParsedCollectionMember",
    "ParsedScenario",
    "ParsedCollection",
    "ParsedData",
    "ProcessedCharacter",
    "ProcessedCollection",
    "ProcessedImport",
]
