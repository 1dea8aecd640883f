"""Tests for card models and import errors."""

import pytest
from pydantic import ValidationError

from cardvault.models import AssetLink, AssetType, CardMeta, CardSpec
from cardvault.services.card_import import (
    MalformedContainerError,
    StorageWriteFailedError,
    UnsupportedFormatError,
)
from cardvault.services.card_import.asset_factory import build_parsed_asset, coerce_asset_type, decode_data_uri
from cardvault.services.card_import.mime_types import get_mime_type, split_extension


class TestCardMeta:
    """Test suite for CardMeta."""

    def test_spec_cannot_change(self):
        """Test spec is fixed once the card is created."""
        meta = CardMeta(name="Aria", spec=CardSpec.V2)

        with pytest.raises(ValidationError):
            meta.spec = CardSpec.V3

    def test_other_fields_assignable(self):
        """Test non-spec fields can still be updated."""
        meta = CardMeta(name="Aria", spec=CardSpec.V2)
        meta.name = "Aria II"

        assert meta.name == "Aria II"


class TestAssetLink:
    """Test suite for AssetLink."""

    def test_tags_deduplicated(self):
        """Test tags keep first-occurrence order without duplicates."""
        link = AssetLink(type=AssetType.ICON, name="a", ext="png", tags=["x", "y", "x"])

        assert link.tags == ["x", "y"]

    def test_negative_order_rejected(self):
        """Test order must be non-negative."""
        with pytest.raises(ValidationError):
            AssetLink(type=AssetType.ICON, name="a", ext="png", order=-1)

    def test_to_asset_data(self):
        """Test the storage view carries everything but the link."""
        asset = build_parsed_asset(b"abc", "a.webp", "WEBP", AssetType.EMOTION, name="a")

        data = asset.to_asset_data()

        assert data.buffer == b"abc"
        assert data.mimetype == "image/webp"
        assert data.size == 3
        assert asset.link.ext == "webp"


class TestLookups:
    """Test suite for MIME and asset type lookups."""

    def test_mime_table(self):
        """Test every documented extension maps to its MIME type."""
        assert get_mime_type("png") == "image/png"
        assert get_mime_type(".JPG") == "image/jpeg"
        assert get_mime_type("jpeg") == "image/jpeg"
        assert get_mime_type("webp") == "image/webp"
        assert get_mime_type("gif") == "image/gif"
        assert get_mime_type("wav") == "audio/wav"
        assert get_mime_type("mp3") == "audio/mpeg"
        assert get_mime_type("ogg") == "audio/ogg"
        assert get_mime_type("mp4") == "video/mp4"
        assert get_mime_type("webm") == "video/webm"
        assert get_mime_type("exe") == "application/octet-stream"

    def test_split_extension(self):
        """Test extensions are taken from the last path segment."""
        assert split_extension("assets/icon.v2/Main.PNG") == "png"
        assert split_extension("assets/icon.v2/README") == "bin"
        assert split_extension("noext", default="png") == "png"

    def test_coerce_asset_type(self):
        """Test descriptor types and directory aliases."""
        assert coerce_asset_type("Background") == AssetType.BACKGROUND
        assert coerce_asset_type("expressions") == AssetType.EMOTION
        assert coerce_asset_type("x-risu-special") == AssetType.CUSTOM
        assert coerce_asset_type(None) == AssetType.CUSTOM

    def test_decode_data_uri(self):
        """Test only base64 data URIs decode."""
        assert decode_data_uri("data:image/png;base64,aGk=") == b"hi"
        assert decode_data_uri("data:text/plain,hi") is None
        assert decode_data_uri("data:image/png;base64,@@@") is None


class TestImportErrors:
    """Test suite for import error formatting."""

    def test_message_includes_stage_and_file(self):
        """Test the message names the stage and file."""
        error = MalformedContainerError("bad zip", filename="x.charx")

        assert str(error) == "[parse] (x.charx) bad zip"

    def test_with_filename(self):
        """Test a file name is attached only when missing."""
        error = UnsupportedFormatError("unknown").with_filename("a.bin")
        assert error.filename == "a.bin"
        assert "a.bin" in str(error)

        error.with_filename("b.bin")
        assert error.filename == "a.bin"

    def test_storage_error_operation(self):
        """Test storage errors record the failed operation."""
        error = StorageWriteFailedError("boom", operation="create_asset")

        assert error.stage == "persist"
        assert error.operation == "create_asset"
