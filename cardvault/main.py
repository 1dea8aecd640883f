"""Command-line entry point for cardvault."""

import argparse
import io
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from cardvault.config import ConfigLoader, ConfigLoadError, SystemConfig
from cardvault.models import FileFormat, ProcessedImport
from cardvault.services.card_import import CardImportError, prepare_import


def setup_logging(debug: bool = False, log_dir: Path = Path("data/debug_logs")):
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO

    # Force UTF-8 encoding for stdout/stderr on Windows
    if sys.platform == 'win32':
        sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')
        sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8', errors='replace')

    # Logs go to stderr so stdout stays clean for the report
    handlers = [logging.StreamHandler(sys.stderr)]

    log_file = None
    if debug:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_dir / f"import_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s'))
        handlers.append(file_handler)

    logging.basicConfig(
        level=logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True  # Force reconfiguration even if already configured
    )

    # Only our loggers get DEBUG/INFO, not third-party libraries
    app_logger = logging.getLogger('cardvault')
    app_logger.setLevel(level)

    logging.getLogger('PIL').setLevel(logging.WARNING)

    if log_file:
        logging.getLogger(__name__).info(f"[STARTUP] Log file: {log_file}")

    return log_file


def _asset_summary(asset) -> Dict[str, Any]:
    summary = {
        "filename": asset.filename,
        "type": asset.link.type.value,
        "mimetype": asset.mimetype,
        "size": asset.size,
    }
    if asset.width is not None:
        summary["dimensions"] = f"{asset.width}x{asset.height}"
    if asset.link.tags:
        summary["tags"] = list(asset.link.tags)
    if asset.link.is_main:
        summary["main"] = True
    return summary


def build_report(filename: str, file_format: FileFormat, processed: ProcessedImport) -> Dict[str, Any]:
    """Plain-data summary of a processed import, for printing."""
    report: Dict[str, Any] = {
        "file": filename,
        "format": file_format.value,
        "is_collection": processed.is_collection,
        "characters": [],
    }

    for character in processed.characters:
        meta = character.card.meta
        report["characters"].append({
            "name": meta.name,
            "spec": meta.spec.value,
            "tags": list(meta.tags),
            "creator": meta.creator,
            "version": meta.character_version,
            "thumbnail_bytes": len(character.thumbnail) if character.thumbnail else 0,
            "assets": [_asset_summary(a) for a in character.assets],
        })

    if processed.collection is not None:
        collection = processed.collection
        report["collection"] = {
            "name": collection.card.meta.name,
            "members": [m.name for m in collection.members],
            "scenarios": [s.name for s in collection.scenarios or []],
            "original_package_bytes": len(collection.original_package or b""),
        }

    return report


def inspect_file(path: Path, config: SystemConfig) -> int:
    """Parse and process a card file without storing it; print a YAML report."""
    logger = logging.getLogger(__name__)

    try:
        data = path.read_bytes()
    except OSError as e:
        print(f"Cannot read {path}: {e}", file=sys.stderr)
        return 1

    try:
        file_format, processed = prepare_import(data, path.name, config.card_import)
    except CardImportError as e:
        logger.debug("Import failed", exc_info=True)
        print(f"Import failed: {e}", file=sys.stderr)
        return 1

    report = build_report(path.name, file_format, processed)
    yaml.safe_dump(report, sys.stdout, default_flow_style=False, allow_unicode=True, sort_keys=False)
    return 0


def main(argv: Optional[list] = None) -> int:
    """Run the cardvault CLI."""
    parser = argparse.ArgumentParser(
        prog="cardvault",
        description="Inspect character card files (PNG, CHARX, Voxta, JSON)"
    )
    parser.add_argument("--config", type=Path, default=Path("."),
                        help="Directory containing config/system.yaml")
    parser.add_argument("--debug", action="store_true",
                        help="Verbose logging and a log file under the log directory")

    subparsers = parser.add_subparsers(dest="command", required=True)
    inspect_parser = subparsers.add_parser("inspect", help="Parse a card file and print what would be imported")
    inspect_parser.add_argument("file", type=Path, help="Card file to inspect")

    args = parser.parse_args(argv)

    try:
        system_config = ConfigLoader(args.config).load_system_config()
    except ConfigLoadError as e:
        # Use basic logging since logger isn't configured yet
        logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        logging.getLogger(__name__).warning(f"[STARTUP WARNING] Could not load system config: {e}, using defaults")
        system_config = SystemConfig()

    setup_logging(debug=args.debug or system_config.debug, log_dir=system_config.log_dir)

    if args.command == "inspect":
        return inspect_file(args.file, system_config)

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
