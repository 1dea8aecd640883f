"""
Package Reader
==============

Thin wrapper around zipfile used by the CHARX and Voxta parsers. Enforces
size limits from the central directory before anything is decompressed and
reports every structural problem as MalformedContainerError.
"""

import io
import json
import logging
import zipfile
import zlib
from typing import Any, Dict, List, Optional

from cardvault.config import ImportLimitsConfig

from .errors import MalformedContainerError

logger = logging.getLogger(__name__)


class PackageReader:
    """Read entries from a ZIP-based card package."""

    def __init__(
        self,
        data: bytes,
        limits: Optional[ImportLimitsConfig] = None,
        kind: str = "package",
    ):
        """
        Open a package.

        Args:
            data: Raw ZIP bytes
            limits: Size limits (defaults apply when omitted)
            kind: Label used in error messages (e.g. 'CHARX', 'Voxta')

        Raises:
            MalformedContainerError: If the central directory cannot be read
                or the package exceeds the total size limit
        """
        self.kind = kind
        self.limits = limits or ImportLimitsConfig()

        try:
            self._zip = zipfile.ZipFile(io.BytesIO(data))
            infos = self._zip.infolist()
        except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError) as e:
            raise MalformedContainerError(f"Cannot read {kind} ZIP directory: {e}") from e

        # Normalized path -> entry, directories skipped
        self._entries: Dict[str, zipfile.ZipInfo] = {}
        total = 0
        for info in infos:
            if info.is_dir():
                continue
            self._entries[info.filename.replace("\\", "/")] = info
            total += info.file_size

        if total > self.limits.max_total_bytes:
            self.close()
            raise MalformedContainerError(
                f"{kind} package expands to {total} bytes, "
                f"over the {self.limits.max_total_bytes} byte limit"
            )

        logger.debug(f"Opened {kind} package with {len(self._entries)} file entries")

    def __enter__(self) -> "PackageReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._zip.close()

    @property
    def names(self) -> List[str]:
        """File entry paths in archive order."""
        return list(self._entries)

    def has(self, name: str) -> bool:
        return name in self._entries

    def size(self, name: str) -> int:
        return self._entries[name].file_size

    def read(self, name: str, max_bytes: Optional[int] = None) -> bytes:
        """
        Read one entry.

        Raises:
            MalformedContainerError: If the entry is missing, too large or corrupt
        """
        info = self._entries.get(name)
        if info is None:
            raise MalformedContainerError(f"{self.kind} package has no entry '{name}'")

        limit = max_bytes if max_bytes is not None else self.limits.max_asset_bytes
        if info.file_size > limit:
            raise MalformedContainerError(
                f"Entry '{name}' is {info.file_size} bytes, over the {limit} byte limit"
            )

        try:
            return self._zip.read(info)
        except (zipfile.BadZipFile, zlib.error, OSError, EOFError, NotImplementedError) as e:
            raise MalformedContainerError(f"Corrupt {self.kind} entry '{name}': {e}") from e

    def read_json(self, name: str) -> Any:
        """Read and decode a JSON manifest entry (manifest size limit applies)."""
        raw = self.read(name, max_bytes=self.limits.max_manifest_bytes)
        try:
            return json.loads(raw.decode("utf-8-sig"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedContainerError(f"Invalid JSON in {self.kind} entry '{name}': {e}") from e
