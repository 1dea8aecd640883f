"""
Card Format Detector
===================

Detects the container format of an uploaded card file from its leading bytes,
falling back to the file name extension only when content is inconclusive.
"""

import io
import logging
import zipfile
from typing import Optional

from cardvault.models import FileFormat

from .errors import UnsupportedFormatError

logger = logging.getLogger(__name__)


class FormatDetector:
    """Detect card file format from magic bytes and file name."""

    PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
    ZIP_SIGNATURES = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")
    UTF8_BOM = b"\xef\xbb\xbf"

    # Bytes inspected for signature/JSON sniffing
    LOOKAHEAD = 1024

    EXTENSIONS = {
        ".png": FileFormat.PNG,
        ".charx": FileFormat.CHARX,
        ".voxpkg": FileFormat.VOXTA,
        ".json": FileFormat.JSON,
    }

    @classmethod
    def detect(cls, data: bytes, filename: Optional[str] = None) -> FileFormat:
        """
        Detect the format of a card file.

        Args:
            data: Raw file bytes
            filename: Optional original file name used as a hint

        Returns:
            Detected FileFormat

        Raises:
            UnsupportedFormatError: If neither content nor extension is recognized
        """
        head = bytes(data[:cls.LOOKAHEAD])
        hinted = cls._format_from_extension(filename)

        if head.startswith(cls.PNG_SIGNATURE[:4]):
            return FileFormat.PNG

        if head[:4] in cls.ZIP_SIGNATURES:
            return cls._detect_package(data, hinted)

        if cls._looks_like_json(head):
            return FileFormat.JSON

        if hinted is not None:
            logger.debug(f"Content not recognized, using extension hint: {hinted.value}")
            return hinted

        raise UnsupportedFormatError(
            "Unable to detect format (not a PNG, ZIP package or JSON document)",
            filename=filename,
        )

    @classmethod
    def _detect_package(cls, data: bytes, hinted: Optional[FileFormat]) -> FileFormat:
        """Tell CHARX and Voxta packages apart from the ZIP central directory."""
        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                names = archive.namelist()
        except (zipfile.BadZipFile, OSError, ValueError) as e:
            # Let the package parser report the broken container
            logger.debug(f"Could not list ZIP entries during detection: {e}")
            names = []

        if "card.json" in names:
            return FileFormat.CHARX

        if any(n.startswith("Characters/") for n in names) or "package.json" in names:
            return FileFormat.VOXTA

        if hinted in (FileFormat.CHARX, FileFormat.VOXTA):
            return hinted

        # Unknown ZIP layouts go to the CHARX parser
        return FileFormat.CHARX

    @classmethod
    def _looks_like_json(cls, head: bytes) -> bool:
        if head.startswith(cls.UTF8_BOM):
            head = head[len(cls.UTF8_BOM):]
        stripped = head.lstrip()
        return stripped[:1] in (b"{", b"[")

    @classmethod
    def _format_from_extension(cls, filename: Optional[str]) -> Optional[FileFormat]:
        if not filename:
            return None
        lowered = filename.lower()
        for ext, file_format in cls.EXTENSIONS.items():
            if lowered.endswith(ext):
                return file_format
        return None

    @classmethod
    def get_format_name(cls, file_format: FileFormat) -> str:
        """Get human-readable format name."""
        names = {
            FileFormat.PNG: "PNG character card",
            FileFormat.CHARX: "CHARX package",
            FileFormat.VOXTA: "Voxta package",
            FileFormat.JSON: "JSON card",
        }
        return names.get(file_format, "Unknown")
