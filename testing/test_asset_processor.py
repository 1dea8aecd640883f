"""
Tests for the asset processor.

Tests cover:
- Image dimensions from the header
- Animated WebP / GIF detection
- Idempotence and immutability of inputs
- Non-fatal handling of undecodable images
"""

import logging

from cardvault.models import AssetType
from cardvault.services.card_import import process_asset, process_assets
from cardvault.services.card_import.asset_factory import build_parsed_asset
from cardvault.services.card_import.asset_processor import detect_animated, read_dimensions

from conftest import make_gif, make_jpeg, make_png

ANIMATED_WEBP = b"RIFF\x00\x00\x00\x00WEBPVP8X\x0a\x00\x00\x00ANIM\x06\x00\x00\x00"
STATIC_WEBP = b"RIFF\x00\x00\x00\x00WEBPVP8 \x0a\x00\x00\x00"


def asset(buffer: bytes, ext: str, tags=None):
    return build_parsed_asset(
        buffer=buffer,
        filename=f"asset.{ext}",
        ext=ext,
        asset_type=AssetType.EMOTION,
        name="asset",
        tags=tags,
    )


class TestDimensions:
    """Test suite for reading dimensions."""

    def test_png_dimensions(self):
        """Test PNG width and height are filled in."""
        processed = process_asset(asset(make_png(size=(12, 5)), "png"))

        assert (processed.width, processed.height) == (12, 5)

    def test_jpeg_dimensions(self):
        """Test JPEG width and height are filled in."""
        processed = process_asset(asset(make_jpeg(size=(8, 6)), "jpg"))

        assert (processed.width, processed.height) == (8, 6)

    def test_existing_dimensions_kept(self):
        """Test dimensions already set are not read again."""
        original = asset(make_png(size=(12, 5)), "png").model_copy(update={"width": 100, "height": 50})

        processed = process_asset(original)

        assert (processed.width, processed.height) == (100, 50)

    def test_non_image_skipped(self):
        """Test audio assets are not opened as images."""
        processed = process_asset(asset(b"ID3 audio", "mp3"))

        assert processed.width is None
        assert processed.height is None

    def test_undecodable_image_warns(self, caplog):
        """Test a broken image logs a warning and leaves dimensions unset."""
        with caplog.at_level(logging.WARNING):
            processed = process_asset(asset(b"not really a png", "png"))

        assert processed.width is None
        assert processed.height is None
        assert "Failed to get dimensions" in caplog.text

    def test_read_dimensions_invalid(self):
        """Test read_dimensions returns None for garbage."""
        assert read_dimensions(b"\x00\x01\x02") is None


class TestAnimation:
    """Test suite for animation detection."""

    def test_animated_webp(self):
        """Test a WebP with an ANIM chunk is tagged animated."""
        processed = process_asset(asset(ANIMATED_WEBP, "webp"))

        assert "animated" in processed.link.tags

    def test_static_webp(self):
        """Test a WebP without ANIM is not tagged."""
        processed = process_asset(asset(STATIC_WEBP, "webp"))

        assert "animated" not in processed.link.tags

    def test_animated_gif(self):
        """Test a looping multi-frame GIF is tagged animated."""
        processed = process_asset(asset(make_gif(frames=3), "gif"))

        assert "animated" in processed.link.tags
        assert (processed.width, processed.height) == (5, 7)

    def test_static_gif(self):
        """Test a single-frame GIF is not tagged."""
        processed = process_asset(asset(make_gif(frames=1), "gif"))

        assert "animated" not in processed.link.tags

    def test_gif_graphic_control_count(self):
        """Test two graphic control extensions mark a GIF animated without a loop marker."""
        buffer = b"GIF89a" + b"\x21\xf9\x04\x00" * 2

        assert detect_animated(buffer, "image/gif") is True
        assert detect_animated(b"GIF89a\x21\xf9\x04\x00", "image/gif") is False

    def test_png_never_animated(self):
        """Test formats other than WebP/GIF are not scanned."""
        assert detect_animated(b"ANIM NETSCAPE2.0", "image/png") is False

    def test_existing_tags_preserved(self):
        """Test the animated tag is appended after existing tags."""
        processed = process_asset(asset(ANIMATED_WEBP, "webp", tags=["emotion:happy"]))

        assert processed.link.tags == ["emotion:happy", "animated"]


class TestIdempotence:
    """Test suite for repeated processing."""

    def test_second_pass_is_noop(self):
        """Test processing twice equals processing once."""
        once = process_asset(asset(make_gif(frames=2), "gif"))
        twice = process_asset(once)

        assert twice == once
        assert twice.link.tags.count("animated") == 1

    def test_input_not_mutated(self):
        """Test the original asset is left unchanged."""
        original = asset(ANIMATED_WEBP, "webp")

        process_asset(original)

        assert original.link.tags == []
        assert original.width is None

    def test_unchanged_asset_returned_as_is(self):
        """Test an asset needing no changes is returned unchanged."""
        original = asset(b"ID3 audio", "mp3")

        assert process_asset(original) is original

    def test_process_assets_keeps_order(self):
        """Test batch processing preserves order."""
        assets = [asset(make_png(size=(1, 2)), "png"), asset(make_png(size=(3, 4)), "png")]

        processed = process_assets(assets)

        assert [(a.width, a.height) for a in processed] == [(1, 2), (3, 4)]
