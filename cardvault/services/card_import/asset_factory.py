"""Helpers shared by parsers for turning extracted bytes into ParsedAssets."""

import base64
import binascii
from typing import Iterable, Optional

from cardvault.models import AssetLink, AssetType, ParsedAsset

from .mime_types import get_mime_type


# Directory names used inside packages that are not AssetType values
DIRECTORY_ALIASES = {
    "backgrounds": AssetType.BACKGROUND,
    "emotions": AssetType.EMOTION,
    "expressions": AssetType.EMOTION,
    "icons": AssetType.ICON,
    "avatars": AssetType.AVATAR,
    "user_icon": AssetType.AVATAR,
    "sounds": AssetType.SOUND,
    "other": AssetType.OTHER,
}


def coerce_asset_type(value: Optional[str], default: AssetType = AssetType.CUSTOM) -> AssetType:
    """Map a descriptor type or directory name onto AssetType."""
    if not value:
        return default
    key = value.strip().lower()
    try:
        return AssetType(key)
    except ValueError:
        return DIRECTORY_ALIASES.get(key, default)


def asset_type_for_extension(ext: str) -> AssetType:
    """Fallback classification when neither descriptor nor directory says."""
    mimetype = get_mime_type(ext)
    if mimetype.startswith("audio/"):
        return AssetType.SOUND
    if mimetype.startswith("video/"):
        return AssetType.VIDEO
    return AssetType.CUSTOM


def build_parsed_asset(
    buffer: bytes,
    filename: str,
    ext: str,
    asset_type: AssetType,
    name: Optional[str] = None,
    order: int = 0,
    is_main: bool = False,
    tags: Optional[Iterable[str]] = None,
) -> ParsedAsset:
    """Create a ParsedAsset with MIME type and size derived from its bytes."""
    ext = ext.lower().lstrip('.')
    return ParsedAsset(
        buffer=buffer,
        filename=filename,
        mimetype=get_mime_type(ext),
        size=len(buffer),
        link=AssetLink(
            type=asset_type,
            name=name or f"asset-{ext}",
            ext=ext,
            order=order,
            is_main=is_main,
            tags=list(tags or []),
        ),
    )


def decode_data_uri(uri: str) -> Optional[bytes]:
    """Decode a base64 `data:` URI; returns None for other encodings or bad data."""
    header, sep, payload = uri.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        return None
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None
