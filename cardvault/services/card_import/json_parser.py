"""
JSON Card Parser
================

Classifies a JSON document as a character card (CCv3, CCv2), a standalone
lorebook, or a legacy spec-less card, and converts it to ParsedData.

Classification runs in a fixed order over the untyped document and yields
one variant per rule; each variant only carries the fields its rule reads.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from cardvault.models import CardData, CardMeta, CardSpec, ParsedCharacter, ParsedData

from .errors import UnrecognizedSchemaError

logger = logging.getLogger(__name__)

SPEC_V2 = "chara_card_v2"
SPEC_V3 = "chara_card_v3"
CARD_SPECS = (SPEC_V2, SPEC_V3)

DEFAULT_CHARACTER_NAME = "Unknown Character"
DEFAULT_LOREBOOK_NAME = "Imported Lorebook"


# ===========================
# Variants
# ===========================

@dataclass(frozen=True)
class V3Card:
    """Document with spec chara_card_v3; fields come from the nested data object."""
    document: Dict[str, Any]
    name: str
    tags: List[str] = field(default_factory=list)
    creator: Optional[str] = None
    character_version: Optional[str] = None


@dataclass(frozen=True)
class V2Card:
    """Document with spec chara_card_v2; fields at top level or under data."""
    document: Dict[str, Any]
    name: str
    tags: List[str] = field(default_factory=list)
    creator: Optional[str] = None
    character_version: Optional[str] = None


@dataclass(frozen=True)
class Lorebook:
    """Standalone lorebook (entries collection or bare name, no spec marker)."""
    document: Dict[str, Any]
    name: str


@dataclass(frozen=True)
class LegacyV2:
    """Spec-less card with a description (pre-V2 exports)."""
    document: Dict[str, Any]
    name: str
    tags: List[str] = field(default_factory=list)
    creator: Optional[str] = None


CardVariant = Union[V3Card, V2Card, Lorebook, LegacyV2]


# ===========================
# Field helpers
# ===========================

def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _first_text(*values: Any) -> Optional[str]:
    for value in values:
        text = _text(value)
        if text is not None:
            return text
    return None


def _tags(*values: Any) -> List[str]:
    """First list-valued candidate, keeping only string items."""
    for value in values:
        if isinstance(value, list):
            return [t for t in value if isinstance(t, str)]
    return []


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


# ===========================
# Classification
# ===========================

def unwrap_definition(document: Dict[str, Any]) -> Dict[str, Any]:
    """Unwrap third-party exports that nest the card under `definition`."""
    definition = document.get("definition")
    if isinstance(definition, dict) and definition.get("spec") in CARD_SPECS:
        logger.debug("Unwrapping card from 'definition' wrapper")
        return definition
    return document


def classify_card_document(document: Any) -> CardVariant:
    """
    Classify a decoded JSON document.

    Args:
        document: Decoded JSON value

    Returns:
        One of V3Card, V2Card, Lorebook, LegacyV2

    Raises:
        UnrecognizedSchemaError: If no rule matches
    """
    if not isinstance(document, dict):
        raise UnrecognizedSchemaError(
            f"Expected a JSON object, got {type(document).__name__}"
        )

    document = unwrap_definition(document)
    spec = document.get("spec")

    if spec == SPEC_V3:
        data = _as_dict(document.get("data"))
        return V3Card(
            document=document,
            name=_text(data.get("name")) or DEFAULT_CHARACTER_NAME,
            tags=_tags(data.get("tags")),
            creator=_text(data.get("creator")),
            character_version=_text(data.get("character_version")),
        )

    if spec == SPEC_V2:
        data = document.get("data")
        v2_data = data if isinstance(data, dict) else document
        return V2Card(
            document=document,
            name=_first_text(v2_data.get("name"), document.get("name")) or DEFAULT_CHARACTER_NAME,
            tags=_tags(v2_data.get("tags"), document.get("tags")),
            creator=_first_text(v2_data.get("creator"), document.get("creator")),
            character_version=_first_text(
                v2_data.get("character_version"), document.get("character_version")
            ),
        )

    if isinstance(document.get("entries"), (list, dict)) or document.get("name"):
        return Lorebook(
            document=document,
            name=_text(document.get("name")) or DEFAULT_LOREBOOK_NAME,
        )

    if document.get("description"):
        return LegacyV2(
            document=document,
            name=_text(document.get("name")) or DEFAULT_CHARACTER_NAME,
            tags=_tags(document.get("tags")),
            creator=_text(document.get("creator")),
        )

    raise UnrecognizedSchemaError(
        "Not a recognized character card or lorebook (no spec marker, entries, name or description)"
    )


def variant_to_character(variant: CardVariant) -> ParsedCharacter:
    """Build the ParsedCharacter for a classified document."""
    if isinstance(variant, V3Card):
        meta = CardMeta(
            name=variant.name,
            spec=CardSpec.V3,
            tags=list(variant.tags),
            creator=variant.creator,
            character_version=variant.character_version,
        )
    elif isinstance(variant, V2Card):
        meta = CardMeta(
            name=variant.name,
            spec=CardSpec.V2,
            tags=list(variant.tags),
            creator=variant.creator,
            character_version=variant.character_version,
        )
    elif isinstance(variant, Lorebook):
        meta = CardMeta(name=variant.name, spec=CardSpec.LOREBOOK, tags=["lorebook"])
    else:
        meta = CardMeta(
            name=variant.name,
            spec=CardSpec.V2,
            tags=list(variant.tags),
            creator=variant.creator,
        )

    return ParsedCharacter(card=CardData(meta=meta, data=variant.document), assets=[])


# ===========================
# Entry points
# ===========================

def parse_card_document(document: Any) -> ParsedData:
    """Classify an already-decoded JSON document into ParsedData."""
    variant = classify_card_document(document)
    logger.info(f"Classified JSON card as {type(variant).__name__}: {variant.name}")
    return ParsedData(characters=[variant_to_character(variant)], is_collection=False)


def decode_json_text(text: str) -> Any:
    """Decode JSON text, reporting syntax errors as UnrecognizedSchemaError."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise UnrecognizedSchemaError(f"Invalid JSON: {e}") from e


def parse_json(data: bytes, filename: Optional[str] = None) -> ParsedData:
    """
    Parse a JSON card file.

    Args:
        data: Raw file bytes (UTF-8, optional BOM)
        filename: Original file name for error context

    Returns:
        ParsedData with exactly one character and no assets

    Raises:
        UnrecognizedSchemaError: If the bytes are not JSON or match no known shape
    """
    try:
        text = bytes(data).decode("utf-8-sig")
        return parse_card_document(decode_json_text(text))
    except UnicodeDecodeError as e:
        raise UnrecognizedSchemaError(f"JSON is not valid UTF-8: {e}", filename=filename) from e
    except UnrecognizedSchemaError as e:
        raise e.with_filename(filename)
