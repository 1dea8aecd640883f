"""
Asset Processor
===============

Enriches parsed assets before storage: image dimensions from the header and
an 'animated' tag for animated WebP/GIF. Both are advisory; failures leave
the field unset and log a warning.

Processing returns a new asset and never mutates its input, so running it
twice gives the same result as running it once.
"""

import logging
from io import BytesIO
from typing import Iterable, List, Optional, Tuple

from PIL import Image

from cardvault.models import ParsedAsset

logger = logging.getLogger(__name__)

ANIMATED_TAG = "animated"

WEBP_ANIMATION_CHUNK = b"ANIM"
GIF_LOOP_EXTENSION = b"NETSCAPE2.0"
GIF_GRAPHIC_CONTROL = b"\x21\xf9\x04"


def read_dimensions(buffer: bytes, filename: str = "") -> Optional[Tuple[int, int]]:
    """
    Read (width, height) from an image header.

    Returns None (and logs a warning) if the image cannot be decoded.
    """
    try:
        with Image.open(BytesIO(buffer)) as image:
            width, height = image.size
            return width, height
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        logger.warning(f"[Asset Processor] Failed to get dimensions for {filename}: {e}")
        return None


def detect_animated(buffer: bytes, mimetype: str) -> bool:
    """
    Scan an image for an animation signature.

    WebP: an ANIM chunk. GIF: a NETSCAPE2.0 looping extension, or more than
    one graphic control extension (one per frame).
    """
    if mimetype == "image/webp":
        return WEBP_ANIMATION_CHUNK in buffer
    if mimetype == "image/gif":
        return GIF_LOOP_EXTENSION in buffer or buffer.count(GIF_GRAPHIC_CONTROL) > 1
    return False


def process_asset(asset: ParsedAsset) -> ParsedAsset:
    """
    Process one asset.

    Args:
        asset: Parsed asset

    Returns:
        The same asset if nothing changed, otherwise an updated copy
    """
    updates = {}

    if asset.mimetype.startswith("image/") and (asset.width is None or asset.height is None):
        dimensions = read_dimensions(asset.buffer, asset.filename)
        if dimensions is not None:
            updates["width"], updates["height"] = dimensions

    if asset.mimetype in ("image/webp", "image/gif") and ANIMATED_TAG not in asset.link.tags:
        if detect_animated(asset.buffer, asset.mimetype):
            logger.debug(f"[Asset Processor] {asset.filename} is animated")
            updates["link"] = asset.link.model_copy(
                update={"tags": [*asset.link.tags, ANIMATED_TAG]}
            )

    return asset.model_copy(update=updates) if updates else asset


def process_assets(assets: Iterable[ParsedAsset]) -> List[ParsedAsset]:
    """Process a character's assets in order."""
    return [process_asset(asset) for asset in assets]
