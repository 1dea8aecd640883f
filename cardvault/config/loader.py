"""
Loading of cardvault settings from YAML.

Settings live in `<config_dir>/config/system.yaml`. Every key is optional;
a missing file means all defaults. Problems are reported as ConfigLoadError
(unreadable or non-mapping YAML) or ConfigValidationError (values the
pydantic models reject).
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from .models import ImportConfig, SystemConfig

logger = logging.getLogger(__name__)

SYSTEM_CONFIG_PATH = Path("config") / "system.yaml"


class ConfigLoadError(Exception):
    """Settings file could not be read."""


class ConfigValidationError(ConfigLoadError):
    """Settings file was read but holds invalid values."""

    def __init__(self, errors: List[Dict[str, Any]], file_path: Path):
        self.errors = errors
        self.file_path = file_path
        problems = [
            f"  {'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in errors
        ]
        super().__init__(f"Invalid settings in {file_path}:\n" + "\n".join(problems))


class ConfigLoader:
    """Reads system.yaml into a SystemConfig."""

    def __init__(self, config_dir: Path = Path(".")):
        self.config_dir = Path(config_dir)

    @property
    def system_config_path(self) -> Path:
        return self.config_dir / SYSTEM_CONFIG_PATH

    def load_yaml(self, file_path: Path) -> Dict[str, Any]:
        """Parse a YAML file whose top level must be a mapping (empty file -> {})."""
        try:
            text = Path(file_path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigLoadError(f"Cannot read settings file {file_path}: {e}") from e

        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigLoadError(f"Settings file {file_path} is not valid YAML: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigLoadError(
                f"Settings file {file_path} must hold a mapping, not {type(data).__name__}"
            )
        return data

    def load_system_config(self, file_path: Optional[Path] = None) -> SystemConfig:
        """
        Load all settings.

        Args:
            file_path: Explicit settings file (defaults to config/system.yaml
                under the config directory)

        Returns:
            SystemConfig; defaults when the file does not exist
        """
        path = Path(file_path) if file_path is not None else self.system_config_path

        if not path.exists():
            logger.info(f"No settings file at {path}, using default import settings")
            return SystemConfig()

        raw = self.load_yaml(path)
        try:
            config = SystemConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigValidationError(e.errors(), path) from e

        logger.info(
            f"Loaded settings from {path} (png keywords: {', '.join(config.card_import.png_keywords)})"
        )
        return config

    def load_import_config(self, file_path: Optional[Path] = None) -> ImportConfig:
        """Just the card import section of the settings."""
        return self.load_system_config(file_path).card_import
