"""
PNG Card Parser
===============

Extracts card JSON embedded as base64 in a PNG text chunk and hands it to the
JSON parser. The PNG itself becomes the character thumbnail.
"""

import logging
from typing import Dict, List, Optional, Sequence

from cardvault.models import AssetType, CardData, ParsedAsset, ParsedData

from .asset_factory import build_parsed_asset, coerce_asset_type
from .errors import CardImportError, MissingEmbeddedDataError
from .json_parser import decode_json_text, parse_card_document
from .metadata_handler import PNGMetadataHandler
from .mime_types import split_extension

logger = logging.getLogger(__name__)

DEFAULT_KEYWORDS = ("ccv3", "chara")

# CCv3 embedded assets: data.assets[].uri "__asset:<n>" -> chunk "chara-ext-asset_:<n>"
EMBEDDED_ASSET_URI_PREFIX = "__asset:"
EMBEDDED_ASSET_CHUNK_PREFIXES = ("chara-ext-asset_:", "chara-ext-asset_")


def parse_png(
    data: bytes,
    filename: Optional[str] = None,
    keywords: Sequence[str] = DEFAULT_KEYWORDS,
) -> ParsedData:
    """
    Parse a PNG character card.

    Args:
        data: PNG file bytes
        filename: Original file name for error context
        keywords: Text chunk keywords to look for, in priority order

    Returns:
        ParsedData with exactly one character

    Raises:
        MalformedContainerError: If the PNG chunk stream is invalid
        MissingEmbeddedDataError: If no card chunk is present
        UnrecognizedSchemaError: If the embedded JSON is not a known card shape
    """
    try:
        chunks = PNGMetadataHandler.read_text_chunks(data)

        raw = None
        for keyword in keywords:
            raw = PNGMetadataHandler.find_text_chunk(chunks, keyword)
            if raw is not None:
                logger.info(f"Found card metadata in '{keyword}' chunk")
                break

        if raw is None:
            raise MissingEmbeddedDataError(
                f"No card metadata chunk found (looked for: {', '.join(keywords)})"
            )

        document = decode_json_text(PNGMetadataHandler.decode_payload(raw))
        parsed = parse_card_document(document)
    except CardImportError as e:
        raise e.with_filename(filename)

    character = parsed.characters[0]
    assets = extract_embedded_assets(chunks, character.card)

    character = character.model_copy(update={"thumbnail": bytes(data), "assets": assets})
    return ParsedData(characters=[character], is_collection=False)


def extract_embedded_assets(chunks: Dict[str, str], card: CardData) -> List[ParsedAsset]:
    """
    Pull assets stored as extra text chunks and referenced from data.assets.

    Descriptors pointing anywhere other than an embedded chunk (the PNG itself,
    remote URLs) are left alone.
    """
    payload = card.data if isinstance(card.data, dict) else {}
    card_data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    descriptors = card_data.get("assets")
    if not isinstance(descriptors, list):
        return []

    assets: List[ParsedAsset] = []
    for descriptor in descriptors:
        if not isinstance(descriptor, dict):
            continue
        uri = descriptor.get("uri")
        if not isinstance(uri, str) or not uri.startswith(EMBEDDED_ASSET_URI_PREFIX):
            continue

        index = uri[len(EMBEDDED_ASSET_URI_PREFIX):]
        raw = None
        for prefix in EMBEDDED_ASSET_CHUNK_PREFIXES:
            raw = PNGMetadataHandler.find_text_chunk(chunks, f"{prefix}{index}")
            if raw is not None:
                break
        if raw is None:
            logger.warning(f"Embedded asset {uri} referenced but no chunk found")
            continue

        buffer = PNGMetadataHandler.decode_binary(raw)
        if buffer is None:
            continue

        name = descriptor.get("name") if isinstance(descriptor.get("name"), str) else None
        ext = descriptor.get("ext") if isinstance(descriptor.get("ext"), str) else None
        ext = (ext or split_extension(name or "", default="png")).lower()
        asset_type = coerce_asset_type(descriptor.get("type"))

        # The PNG is already the main icon
        if asset_type == AssetType.ICON and name == "main":
            continue

        assets.append(build_parsed_asset(
            buffer=buffer,
            filename=f"{name or 'asset'}.{ext}",
            ext=ext,
            asset_type=asset_type,
            name=name,
            order=len(assets),
        ))

    if assets:
        logger.info(f"Extracted {len(assets)} embedded asset(s) from PNG")
    return assets
