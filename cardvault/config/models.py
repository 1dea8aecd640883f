"""Pydantic models for configuration validation."""

from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIB = 1024 * 1024


class ImportLimitsConfig(BaseModel):
    """Size limits applied when extracting package (ZIP) entries."""

    max_manifest_bytes: int = Field(
        default=10 * MIB,
        gt=0,
        description="Largest card.json / character.json accepted"
    )
    max_asset_bytes: int = Field(
        default=50 * MIB,
        gt=0,
        description="Largest single asset entry accepted"
    )
    max_total_bytes: int = Field(
        default=200 * MIB,
        gt=0,
        description="Largest total uncompressed package size accepted"
    )


class ImportConfig(BaseModel):
    """Card import pipeline configuration."""

    png_keywords: List[str] = Field(
        default_factory=lambda: ["ccv3", "chara"],
        description="PNG text chunk keywords holding card JSON, in priority order"
    )
    keep_original_package: bool = Field(
        default=True,
        description="Keep the raw bytes of multi-character packages for re-export"
    )
    limits: ImportLimitsConfig = Field(default_factory=ImportLimitsConfig)

    @field_validator('png_keywords')
    @classmethod
    def validate_keywords(cls, v: List[str]) -> List[str]:
        """Keywords are matched case-insensitively; at least one is required."""
        keywords = [k.strip().lower() for k in v if k and k.strip()]
        if not keywords:
            raise ValueError('png_keywords must contain at least one keyword')
        return keywords


class SystemConfig(BaseModel):
    """Top-level system configuration."""

    model_config = ConfigDict(extra='ignore')

    card_import: ImportConfig = Field(default_factory=ImportConfig)
    debug: bool = False
    log_dir: Path = Path("data/debug_logs")

    @field_validator('log_dir')
    @classmethod
    def validate_path(cls, v: Path) -> Path:
        """Ensure paths are cross-platform."""
        return Path(v)
