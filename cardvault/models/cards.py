"""
Card Import Data Models
=======================

Pydantic models for the transient values produced by one import call:
parsed characters, assets and collections, and their processed counterparts.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ===========================
# Enumerations
# ===========================

class CardSpec(str, Enum):
    """Card schema version or category."""
    V2 = "v2"
    V3 = "v3"
    COLLECTION = "collection"
    LOREBOOK = "lorebook"


class AssetType(str, Enum):
    """Closed set of asset roles a card can link to."""
    ICON = "icon"
    BACKGROUND = "background"
    EMOTION = "emotion"
    AVATAR = "avatar"
    GALLERY = "gallery"
    AUDIO = "audio"
    VIDEO = "video"
    SOUND = "sound"
    CUSTOM = "custom"
    OTHER = "other"
    PACKAGE_ORIGINAL = "package-original"


class FileFormat(str, Enum):
    """Container formats the import pipeline understands."""
    PNG = "png"
    CHARX = "charx"
    VOXTA = "voxta"
    JSON = "json"


# ===========================
# Cards
# ===========================

class CardMeta(BaseModel):
    """Normalized card metadata."""

    model_config = ConfigDict(validate_assignment=True)

    name: str
    spec: CardSpec = Field(frozen=True)
    tags: List[str] = Field(default_factory=list)
    creator: Optional[str] = None
    character_version: Optional[str] = None
    member_count: Optional[int] = None
    package_id: Optional[str] = None


class CardData(BaseModel):
    """Card metadata plus the spec-specific payload (opaque to the pipeline)."""
    meta: CardMeta
    data: Any = None


# ===========================
# Assets
# ===========================

class AssetLink(BaseModel):
    """How an asset is attached to a card."""
    type: AssetType
    name: str
    ext: str
    order: int = Field(default=0, ge=0)
    is_main: bool = False
    tags: List[str] = Field(default_factory=list)

    @field_validator('tags')
    @classmethod
    def dedupe_tags(cls, v: List[str]) -> List[str]:
        """Keep tags unique, first occurrence wins."""
        return list(dict.fromkeys(v))


class AssetData(BaseModel):
    """Binary asset as handed to a storage adapter."""
    buffer: bytes
    filename: str
    mimetype: str
    size: int
    width: Optional[int] = None
    height: Optional[int] = None


class ParsedAsset(AssetData):
    """Asset extracted by a parser, with its card link."""
    link: AssetLink

    def to_asset_data(self) -> AssetData:
        """Project onto the storage-facing shape (drops the link)."""
        return AssetData(
            buffer=self.buffer,
            filename=self.filename,
            mimetype=self.mimetype,
            size=self.size,
            width=self.width,
            height=self.height,
        )


# ===========================
# Parser output
# ===========================

class ParsedCharacter(BaseModel):
    """One character produced by a parser."""
    card: CardData
    thumbnail: Optional[bytes] = None
    assets: List[ParsedAsset] = Field(default_factory=list)


class ParsedCollectionMember(BaseModel):
    """Reference from a collection to a member character, by name and order."""
    external_id: Optional[str] = None
    name: str
    order: int = Field(ge=0)
    scenario_ids: Optional[List[str]] = None


class ParsedScenario(BaseModel):
    """Scenario metadata bundled with a package."""
    external_id: str
    name: str
    description: Optional[str] = None
    version: Optional[str] = None
    creator: Optional[str] = None
    character_ids: List[str] = Field(default_factory=list)
    order: int = Field(ge=0)
    explicit_content: Optional[bool] = None
    has_thumbnail: Optional[bool] = None


class ParsedCollection(BaseModel):
    """Collection card grouping several characters."""
    card: CardData
    thumbnail: Optional[bytes] = None
    members: List[ParsedCollectionMember] = Field(default_factory=list)
    scenarios: Optional[List[ParsedScenario]] = None
    original_package: Optional[bytes] = None


class ParsedData(BaseModel):
    """Top-level parser output."""
    characters: List[ParsedCharacter] = Field(default_factory=list)
    collection: Optional[ParsedCollection] = None
    is_collection: bool = False


# ===========================
# Processor output
# ===========================

class ProcessedCharacter(ParsedCharacter):
    """Character that passed the processing stage and is ready for storage."""


class ProcessedCollection(ParsedCollection):
    """Collection that passed the processing stage and is ready for storage."""


class ProcessedImport(BaseModel):
    """Processor output for a whole import."""
    characters: List[ProcessedCharacter] = Field(default_factory=list)
    collection: Optional[ProcessedCollection] = None
    is_collection: bool = False
