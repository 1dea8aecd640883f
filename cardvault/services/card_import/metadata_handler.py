"""
PNG Metadata Handler
===================

Reads the text chunks (tEXt/zTXt/iTXt) in PNG images that carry
character card metadata.
"""

import base64
import binascii
import logging
from io import BytesIO
from typing import Dict, Optional

from PIL import Image

from .errors import MalformedContainerError

logger = logging.getLogger(__name__)


class PNGMetadataHandler:
    """Handle PNG text chunk operations for character card metadata."""

    @staticmethod
    def read_text_chunks(png_data: bytes) -> Dict[str, str]:
        """
        Read every text chunk from PNG data.

        Args:
            png_data: PNG file data as bytes

        Returns:
            Mapping of chunk keyword to (still base64-encoded) value

        Raises:
            MalformedContainerError: If the bytes are not a readable PNG
        """
        try:
            with Image.open(BytesIO(png_data)) as image:
                if image.format != "PNG":
                    raise MalformedContainerError(f"Expected PNG image, got {image.format}")
                # Reading .text walks the whole chunk stream, including chunks after IDAT
                text = getattr(image, "text", None)
                chunks = dict(text) if isinstance(text, dict) else {}
        except MalformedContainerError:
            raise
        except (OSError, SyntaxError, ValueError, EOFError, Image.DecompressionBombError) as e:
            raise MalformedContainerError(f"Invalid PNG chunk stream: {e}") from e

        logger.debug(f"Found {len(chunks)} PNG text chunk(s): {list(chunks)}")
        return chunks

    @classmethod
    def find_text_chunk(cls, chunks: Dict[str, str], keyword: str) -> Optional[str]:
        """Look up a chunk by keyword (case-insensitive)."""
        for key, value in chunks.items():
            if key.lower() == keyword.lower():
                logger.debug(f"Found text chunk with keyword '{key}'")
                return value
        return None

    @staticmethod
    def decode_payload(value: str) -> str:
        """
        Decode a base64 card payload to text.

        Character cards store base64-encoded JSON in the chunk. Some writers
        store the JSON as-is, so undecodable values are returned unchanged.
        """
        try:
            return base64.b64decode("".join(value.split()), validate=True).decode('utf-8')
        except (binascii.Error, ValueError) as e:
            logger.warning(f"Chunk payload is not base64 UTF-8, using raw text: {e}")
            return value

    @staticmethod
    def decode_binary(value: str) -> Optional[bytes]:
        """Decode a base64 chunk holding binary data (embedded asset)."""
        try:
            return base64.b64decode("".join(value.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            logger.warning(f"Failed to decode base64 asset chunk: {e}")
            return None
