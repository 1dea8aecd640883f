"""
CHARX Package Parser
====================

A CHARX file is a ZIP holding `card.json` (a CCv3 card, occasionally an older
spec) plus media under `assets/<type>/...`. The card's `data.assets` list
describes each asset and points at ZIP entries through `embeded://` URIs.
"""

import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from cardvault.config import ImportLimitsConfig
from cardvault.models import (
    AssetType,
    CardData,
    CardMeta,
    CardSpec,
    ParsedAsset,
    ParsedCharacter,
    ParsedData,
)

from .asset_factory import (
    asset_type_for_extension,
    build_parsed_asset,
    coerce_asset_type,
    decode_data_uri,
)
from .errors import CardImportError, MalformedContainerError
from .json_parser import CARD_SPECS, DEFAULT_CHARACTER_NAME, SPEC_V3
from .mime_types import split_extension
from .package_reader import PackageReader

logger = logging.getLogger(__name__)

CARD_ENTRY = "card.json"
EMBEDDED_URI_PREFIXES = ("embeded://", "embedded://")

# Package metadata, never imported as assets
NON_ASSET_ENTRIES = {CARD_ENTRY, "module.risum"}
NON_ASSET_PREFIXES = ("x_meta/",)


def parse_charx(
    data: bytes,
    filename: Optional[str] = None,
    limits: Optional[ImportLimitsConfig] = None,
) -> ParsedData:
    """
    Parse a CHARX package.

    Args:
        data: ZIP bytes
        filename: Original file name for error context
        limits: Package size limits

    Returns:
        ParsedData with exactly one character

    Raises:
        MalformedContainerError: If the ZIP or card.json cannot be read
    """
    try:
        with PackageReader(data, limits, kind="CHARX") as package:
            if not package.has(CARD_ENTRY):
                raise MalformedContainerError("CHARX package does not contain card.json")

            card = package.read_json(CARD_ENTRY)
            if not isinstance(card, dict):
                raise MalformedContainerError("card.json is not a JSON object")

            meta = build_card_meta(card)
            thumbnail, assets = extract_assets(package, card)
    except CardImportError as e:
        raise e.with_filename(filename)

    logger.info(
        f"Parsed CHARX card '{meta.name}' ({meta.spec.value}) with {len(assets)} asset(s)"
        f"{' and thumbnail' if thumbnail else ''}"
    )
    character = ParsedCharacter(card=CardData(meta=meta, data=card), thumbnail=thumbnail, assets=assets)
    return ParsedData(characters=[character], is_collection=False)


def build_card_meta(card: Dict[str, Any]) -> CardMeta:
    """
    Derive card metadata from a package manifest.

    chara_card_v3 is v3; anything else (v2 or an unknown marker) is read as
    v2 rather than rejected.
    """
    marker = card.get("spec")
    spec = CardSpec.V3 if marker == SPEC_V3 else CardSpec.V2
    if marker not in CARD_SPECS:
        logger.warning(f"Unrecognized card spec marker {marker!r}, reading package as v2")

    data = card.get("data") if isinstance(card.get("data"), dict) else {}

    if spec == CardSpec.V3:
        name = data.get("name")
        tags = data.get("tags")
    else:
        name = card.get("name") or data.get("name")
        tags = data.get("tags") if isinstance(data.get("tags"), list) else card.get("tags")

    creator = data.get("creator") or card.get("creator")
    version = data.get("character_version") or card.get("character_version")

    return CardMeta(
        name=name if isinstance(name, str) and name else DEFAULT_CHARACTER_NAME,
        spec=spec,
        tags=[t for t in tags if isinstance(t, str)] if isinstance(tags, list) else [],
        creator=creator if isinstance(creator, str) else None,
        character_version=version if isinstance(version, str) else None,
    )


def _resolve_descriptor(package: PackageReader, uri: Any) -> Tuple[Optional[bytes], Optional[str]]:
    """Return (bytes, zip path) for a descriptor URI; bytes is None if not embedded."""
    if not isinstance(uri, str):
        return None, None

    for prefix in EMBEDDED_URI_PREFIXES:
        if uri.startswith(prefix):
            path = uri[len(prefix):]
            if not package.has(path):
                logger.warning(f"Asset {uri} referenced by card.json is missing from the package")
                return None, path
            return package.read(path), path

    if uri.startswith("data:"):
        return decode_data_uri(uri), None

    logger.debug(f"Skipping non-embedded asset URI: {uri[:60]}")
    return None, None


def _is_asset_entry(path: str) -> bool:
    return path not in NON_ASSET_ENTRIES and not path.startswith(NON_ASSET_PREFIXES)


def _classify_entry(path: str, ext: str) -> AssetType:
    """assets/<type>/... convention first, then the extension."""
    parts = path.split("/")
    fallback = asset_type_for_extension(ext)
    if len(parts) > 2 and parts[0] == "assets":
        return coerce_asset_type(parts[1], default=fallback)
    return fallback


def _stem(path: str) -> str:
    base = path.rsplit("/", 1)[-1]
    return base.rsplit(".", 1)[0] if "." in base else base


def extract_assets(package: PackageReader, card: Dict[str, Any]) -> Tuple[Optional[bytes], List[ParsedAsset]]:
    """
    Collect the thumbnail and assets of a CHARX package.

    Descriptors in card.json are matched first; remaining files are classified
    by directory and extension. The main icon (icon named 'main', else the
    first icon) becomes the thumbnail instead of an asset.
    """
    data = card.get("data") if isinstance(card.get("data"), dict) else {}
    declared = data.get("assets")
    descriptors = [d for d in declared if isinstance(d, dict)] if isinstance(declared, list) else []

    # (buffer, filename, ext, type, name)
    candidates: List[Tuple[bytes, str, str, AssetType, str]] = []
    claimed: Set[str] = set()

    for descriptor in descriptors:
        buffer, path = _resolve_descriptor(package, descriptor.get("uri"))
        if path:
            claimed.add(path)
        if buffer is None:
            continue

        name = descriptor.get("name") if isinstance(descriptor.get("name"), str) else None
        ext = descriptor.get("ext") if isinstance(descriptor.get("ext"), str) and descriptor.get("ext") else None
        ext = (ext or split_extension(path or name or "", default="png")).lower()
        asset_type = coerce_asset_type(descriptor.get("type"))
        name = name or (_stem(path) if path else f"asset-{ext}")
        filename = path.rsplit("/", 1)[-1] if path else f"{name}.{ext}"
        candidates.append((buffer, filename, ext, asset_type, name))

    for path in package.names:
        if path in claimed or not _is_asset_entry(path):
            continue
        ext = split_extension(path)
        candidates.append((package.read(path), path.rsplit("/", 1)[-1], ext, _classify_entry(path, ext), _stem(path)))

    icons = [i for i, c in enumerate(candidates) if c[3] == AssetType.ICON]
    main_icon = next((i for i in icons if candidates[i][4] == "main"), icons[0] if icons else None)

    thumbnail = None
    assets: List[ParsedAsset] = []
    has_main_background = False
    for index, (buffer, filename, ext, asset_type, name) in enumerate(candidates):
        if index == main_icon:
            thumbnail = buffer
            continue

        is_main = False
        if asset_type == AssetType.BACKGROUND and name == "main" and not has_main_background:
            is_main = has_main_background = True

        assets.append(build_parsed_asset(
            buffer=buffer,
            filename=filename,
            ext=ext,
            asset_type=asset_type,
            name=name,
            order=len(assets),
            is_main=is_main,
        ))

    return thumbnail, assets
