"""
Voxta Package Parser
====================

A .voxpkg file is a ZIP laid out as:

    package.json                              (optional package manifest)
    Characters/<id>/character.json
    Characters/<id>/thumbnail.<ext>
    Characters/<id>/Assets/Avatars/Default/<Emotion>_<State>_<Variant>.webp
    Characters/<id>/Assets/VoiceSamples/<name>.wav
    Scenarios/<id>/scenario.json
    Scenarios/<id>/thumbnail.<ext>
    Books/<id>/book.json

Each character is mapped onto a CCv3 card. Packages with more than one
character also produce a collection card with member and scenario metadata.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from cardvault.config import ImportLimitsConfig
from cardvault.models import (
    AssetType,
    CardData,
    CardMeta,
    CardSpec,
    ParsedAsset,
    ParsedCharacter,
    ParsedCollection,
    ParsedCollectionMember,
    ParsedData,
    ParsedScenario,
)

from .asset_factory import build_parsed_asset
from .errors import CardImportError, MalformedContainerError
from .json_parser import DEFAULT_CHARACTER_NAME, SPEC_V3
from .mime_types import split_extension
from .package_reader import PackageReader

logger = logging.getLogger(__name__)

PACKAGE_MANIFEST = "package.json"

# ThumbnailResource.Kind values
RESOURCE_KIND_CHARACTER = 1
RESOURCE_KIND_SCENARIO = 3

VOXTA_TAG = "voxta"


def _text(value: Any, default: Optional[str] = None) -> Optional[str]:
    return value if isinstance(value, str) and value else default


def _list(value: Any, field: str) -> List[Any]:
    """List-valued manifest field; anything else is ignored with a warning."""
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning(f"Ignoring {field}: expected a list, got {type(value).__name__}")
        return []
    return value


@dataclass
class VoxtaEntity:
    """A character, scenario or book folder inside the package."""
    id: str
    folder: str
    data: Dict[str, Any]
    thumbnail: Optional[bytes] = None


def parse_voxta(
    data: bytes,
    filename: Optional[str] = None,
    limits: Optional[ImportLimitsConfig] = None,
    keep_original_package: bool = True,
) -> ParsedData:
    """
    Parse a Voxta package.

    Args:
        data: ZIP bytes
        filename: Original file name for error context
        limits: Package size limits
        keep_original_package: Attach the raw package bytes to the collection

    Returns:
        ParsedData; is_collection is True when the package holds several characters

    Raises:
        MalformedContainerError: If the ZIP or a manifest cannot be read, or
            the package contains no characters
    """
    try:
        with PackageReader(data, limits, kind="Voxta") as package:
            package_meta = None
            if package.has(PACKAGE_MANIFEST):
                package_meta = package.read_json(PACKAGE_MANIFEST)
                if not isinstance(package_meta, dict):
                    raise MalformedContainerError("package.json is not a JSON object")

            books = {b.id: b.data for b in _read_entities(package, "Books", "book.json")}
            scenarios = _read_entities(package, "Scenarios", "scenario.json")
            raw_characters = _read_entities(package, "Characters", "character.json")

            if not raw_characters:
                raise MalformedContainerError("Voxta package contains no characters")

            characters = [_build_character(package, entity, books) for entity in raw_characters]

        is_collection = len(characters) > 1
        collection = None
        if is_collection:
            collection = _build_collection(
                raw_characters,
                scenarios,
                package_meta,
                original_package=bytes(data) if keep_original_package else None,
            )
    except CardImportError as e:
        raise e.with_filename(filename)
    except ValidationError as e:
        raise MalformedContainerError(f"Invalid Voxta manifest data: {e}", filename=filename) from e

    logger.info(
        f"Parsed Voxta package: {len(characters)} character(s), {len(scenarios)} scenario(s), "
        f"{len(books)} book(s), collection={is_collection}"
    )
    return ParsedData(characters=characters, collection=collection, is_collection=is_collection)


# ===========================
# Package layout
# ===========================

def _read_entities(package: PackageReader, root: str, manifest: str) -> List[VoxtaEntity]:
    """Read every `<root>/<id>/<manifest>` entry, in archive order."""
    entities = []
    for name in package.names:
        parts = name.split("/")
        if len(parts) != 3 or parts[0] != root or parts[2] != manifest:
            continue

        folder = f"{parts[0]}/{parts[1]}"
        payload = package.read_json(name)
        if not isinstance(payload, dict):
            raise MalformedContainerError(f"{name} is not a JSON object")

        entity_id = payload.get("Id") if isinstance(payload.get("Id"), str) else parts[1]
        entities.append(VoxtaEntity(
            id=entity_id,
            folder=folder,
            data=payload,
            thumbnail=_read_thumbnail(package, folder),
        ))
    return entities


def _read_thumbnail(package: PackageReader, folder: str) -> Optional[bytes]:
    prefix = f"{folder}/thumbnail."
    for name in package.names:
        if name.startswith(prefix):
            return package.read(name)
    return None


def parse_asset_path(path: str) -> Tuple[AssetType, List[str]]:
    """
    Classify a character asset by its folder.

    Avatars/<...>/<Emotion>_<State>_<Variant>.<ext> -> icon with emotion/state/variant tags
    VoiceSamples/<name>.<ext> -> sound tagged 'voice'
    anything else -> custom
    """
    if "/Avatars/" in path:
        stem = path.rsplit("/", 1)[-1]
        stem = stem.rsplit(".", 1)[0] if "." in stem else stem
        parts = stem.split("_")
        tags = [f"emotion:{parts[0].lower()}"]
        if len(parts) >= 2:
            tags.append(f"state:{parts[1].lower()}")
        if len(parts) >= 3:
            tags.append(f"variant:{parts[2]}")
        return AssetType.ICON, tags

    if "/VoiceSamples/" in path:
        return AssetType.SOUND, ["voice"]

    return AssetType.CUSTOM, []


def _character_assets(package: PackageReader, entity: VoxtaEntity) -> List[ParsedAsset]:
    prefix = f"{entity.folder}/Assets/"
    assets = []
    for name in package.names:
        if not name.startswith(prefix):
            continue
        filename = name.rsplit("/", 1)[-1]
        ext = split_extension(filename)
        asset_type, tags = parse_asset_path(name)
        assets.append(build_parsed_asset(
            buffer=package.read(name),
            filename=filename,
            ext=ext,
            asset_type=asset_type,
            name=filename,
            order=len(assets),
            tags=tags,
        ))
    return assets


# ===========================
# Voxta -> CCv3
# ===========================

def _build_character_book(character: Dict[str, Any], books: Dict[str, Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Merge the character's memory books into a CCv3 character_book."""
    entries = []
    names = []
    for book_id in _list(character.get("MemoryBooks"), "MemoryBooks"):
        book = books.get(book_id) if isinstance(book_id, str) else None
        if book is None:
            logger.warning(f"Memory book {book_id} referenced but not in package")
            continue
        if _text(book.get("Name")):
            names.append(book["Name"])
        for item in _list(book.get("Items"), "Items"):
            if not isinstance(item, dict) or item.get("Deleted"):
                continue
            keywords = item.get("Keywords")
            entries.append({
                "keys": [k for k in keywords if isinstance(k, str)] if isinstance(keywords, list) else [],
                "content": item.get("Text") or "",
                "enabled": True,
                "insertion_order": len(entries),
                "extensions": {VOXTA_TAG: {"id": item.get("Id"), "weight": item.get("Weight")}},
            })

    if not entries:
        return None
    return {
        "name": ", ".join(names) or None,
        "entries": entries,
        "extensions": {},
    }


def voxta_to_ccv3(character: Dict[str, Any], books: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Map a Voxta character.json onto a CCv3 card; Voxta-only settings go under extensions.voxta."""
    data = {
        "name": _text(character.get("Name"), DEFAULT_CHARACTER_NAME),
        "description": _text(character.get("Profile"), ""),
        "personality": _text(character.get("Personality"), ""),
        "scenario": _text(character.get("Scenario"), ""),
        "first_mes": _text(character.get("FirstMessage"), ""),
        "mes_example": _text(character.get("MessageExamples"), ""),
        "creator_notes": _text(character.get("CreatorNotes"), ""),
        "system_prompt": "",
        "post_history_instructions": "",
        "alternate_greetings": [],
        "tags": [t for t in _list(character.get("Tags"), "Tags") if isinstance(t, str)],
        "creator": _text(character.get("Creator"), ""),
        "character_version": _text(character.get("Version"), ""),
        "extensions": {
            VOXTA_TAG: {
                "id": character.get("Id"),
                "version": character.get("Version"),
                "packageId": character.get("PackageId"),
                "appearance": character.get("Description"),
                "textToSpeech": character.get("TextToSpeech"),
                "chatSettings": {
                    "chatStyle": character.get("ChatStyle"),
                    "enableThinkingSpeech": character.get("EnableThinkingSpeech"),
                    "notifyUserAwayReturn": character.get("NotifyUserAwayReturn"),
                    "timeAware": character.get("TimeAware"),
                    "useMemory": character.get("UseMemory"),
                    "maxTokens": character.get("MaxTokens"),
                    "maxSentences": character.get("MaxSentences"),
                },
                "scripts": character.get("Scripts"),
            },
        },
    }

    book = _build_character_book(character, books)
    if book is not None:
        data["character_book"] = book

    return {"spec": SPEC_V3, "spec_version": "3.0", "data": data}


def _build_character(package: PackageReader, entity: VoxtaEntity, books: Dict[str, Dict[str, Any]]) -> ParsedCharacter:
    ccv3 = voxta_to_ccv3(entity.data, books)
    card_data = ccv3["data"]

    meta = CardMeta(
        name=card_data["name"],
        spec=CardSpec.V3,
        tags=list(dict.fromkeys(card_data["tags"] + [VOXTA_TAG])),
        creator=card_data["creator"] or None,
        character_version=card_data["character_version"] or None,
    )
    return ParsedCharacter(
        card=CardData(meta=meta, data=ccv3),
        thumbnail=entity.thumbnail,
        assets=_character_assets(package, entity),
    )


# ===========================
# Collections
# ===========================

def _scenario_character_ids(scenario: Dict[str, Any]) -> List[str]:
    ids: List[str] = []
    for role in _list(scenario.get("Roles"), "Roles"):
        character_id = _text(role.get("CharacterId")) if isinstance(role, dict) else None
        if character_id and character_id not in ids:
            ids.append(character_id)
    return ids


def build_character_scenario_map(characters: List[VoxtaEntity], scenarios: List[VoxtaEntity]) -> Dict[str, List[str]]:
    """Character id -> scenario ids, from scenario roles and each character's DefaultScenarios."""
    mapping: Dict[str, List[str]] = {}

    for scenario in scenarios:
        for character_id in _scenario_character_ids(scenario.data):
            ids = mapping.setdefault(character_id, [])
            if scenario.id not in ids:
                ids.append(scenario.id)

    for character in characters:
        for scenario_id in _list(character.data.get("DefaultScenarios"), "DefaultScenarios"):
            if not _text(scenario_id):
                logger.warning(f"Skipping invalid default scenario id {scenario_id!r} on {character.id}")
                continue
            ids = mapping.setdefault(character.id, [])
            if scenario_id not in ids:
                ids.append(scenario_id)

    return mapping


def _package_thumbnail(
    package_meta: Optional[Dict[str, Any]],
    characters: List[VoxtaEntity],
    scenarios: List[VoxtaEntity],
) -> Optional[bytes]:
    """Resolve package.json ThumbnailResource, falling back to the first character."""
    fallback = characters[0].thumbnail if characters else None
    resource = (package_meta or {}).get("ThumbnailResource")
    if not isinstance(resource, dict):
        return fallback

    kind, resource_id = resource.get("Kind"), resource.get("Id")
    if kind == RESOURCE_KIND_SCENARIO:
        pool = scenarios
    elif kind == RESOURCE_KIND_CHARACTER:
        pool = characters
    else:
        return fallback

    match = next((e for e in pool if e.id == resource_id and e.thumbnail), None)
    return match.thumbnail if match else fallback


def _build_collection(
    characters: List[VoxtaEntity],
    scenarios: List[VoxtaEntity],
    package_meta: Optional[Dict[str, Any]],
    original_package: Optional[bytes],
) -> ParsedCollection:
    scenario_map = build_character_scenario_map(characters, scenarios)

    members = [
        ParsedCollectionMember(
            external_id=entity.id,
            name=_text(entity.data.get("Name"), "Unknown"),
            order=index,
            scenario_ids=scenario_map.get(entity.id) or None,
        )
        for index, entity in enumerate(characters)
    ]

    parsed_scenarios = [
        ParsedScenario(
            external_id=entity.id,
            name=_text(entity.data.get("Name"), "Untitled Scenario"),
            description=_text(entity.data.get("Description")),
            version=_text(entity.data.get("Version")),
            creator=_text(entity.data.get("Creator")),
            character_ids=_scenario_character_ids(entity.data),
            order=index,
            explicit_content=entity.data.get("ExplicitContent") if isinstance(entity.data.get("ExplicitContent"), bool) else None,
            has_thumbnail=bool(entity.data.get("Thumbnail") or entity.thumbnail),
        )
        for index, entity in enumerate(scenarios)
    ]

    meta_source = package_meta or {}
    fallback_name = f"{members[0].name} Collection" if members else "Voxta Collection"
    collection_data = {
        "name": _text(meta_source.get("Name"), fallback_name),
        "description": _text(meta_source.get("Description")) or f"Collection of {len(members)} characters",
        "version": meta_source.get("Version"),
        "creator": meta_source.get("Creator"),
        "voxta_package_id": meta_source.get("Id"),
        "members": [m.model_dump() for m in members],
        "scenarios": [s.model_dump() for s in parsed_scenarios] or None,
        "explicit_content": meta_source.get("ExplicitContent"),
        "date_created": meta_source.get("DateCreated"),
        "date_modified": meta_source.get("DateModified"),
    }

    meta = CardMeta(
        name=collection_data["name"],
        spec=CardSpec.COLLECTION,
        tags=["Collection", VOXTA_TAG],
        creator=_text(collection_data["creator"]),
        member_count=len(members),
    )

    return ParsedCollection(
        card=CardData(meta=meta, data=collection_data),
        thumbnail=_package_thumbnail(package_meta, characters, scenarios),
        members=members,
        scenarios=parsed_scenarios,
        original_package=original_package,
    )
