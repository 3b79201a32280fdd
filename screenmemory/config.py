"""
Centralized Configuration for ScreenMemory

Configuration is loaded from:
1. Default values (hardcoded)
2. Environment variables
3. Settings file (~/.screenmemory/settings.json)

Priority: Settings file > Environment variables > Defaults
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)


# === Default Configuration Values ===

DEFAULT_HOME = Path.home() / ".screenmemory"


@dataclass
class CaptureConfig:
    """Configuration for screen capture and OCR."""
    interval: int = 30  # seconds between captures in watch mode
    screenshots_dir: Path = field(
        default_factory=lambda: Path.home() / "Screenshots" / "ScreenMemory"
    )
    ocr_timeout: float = 0.0  # seconds, 0 disables the timeout
    ocr_language: str = "eng"
    tesseract_config: str = "--oem 3 --psm 3"


@dataclass
class StorageConfig:
    """Configuration for the record index."""
    data_dir: Path = field(default_factory=lambda: DEFAULT_HOME)
    index_filename: str = "index.json"

    @property
    def index_path(self) -> Path:
        return self.data_dir / self.index_filename


@dataclass
class ExportConfig:
    """Configuration for exporting screenshots."""
    export_dir: Path = field(default_factory=lambda: Path.home() / "Desktop")


@dataclass
class Config:
    """Main configuration container."""
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    export: ExportConfig = field(default_factory=ExportConfig)


# === Configuration Loading ===

SETTINGS_FILE = DEFAULT_HOME / "settings.json"


def _load_from_env(config: Config) -> None:
    """Load configuration from environment variables."""
    if os.environ.get("SCREENMEMORY_HOME"):
        config.storage.data_dir = Path(os.environ["SCREENMEMORY_HOME"]).expanduser()
    if os.environ.get("SCREENMEMORY_SCREENSHOTS_DIR"):
        config.capture.screenshots_dir = Path(
            os.environ["SCREENMEMORY_SCREENSHOTS_DIR"]
        ).expanduser()
    if os.environ.get("SCREENMEMORY_INTERVAL"):
        try:
            config.capture.interval = int(os.environ["SCREENMEMORY_INTERVAL"])
        except ValueError:
            logger.warning(
                f"Ignoring invalid SCREENMEMORY_INTERVAL: {os.environ['SCREENMEMORY_INTERVAL']!r}"
            )
    if os.environ.get("SCREENMEMORY_EXPORT_DIR"):
        config.export.export_dir = Path(os.environ["SCREENMEMORY_EXPORT_DIR"]).expanduser()


def _load_from_file(config: Config) -> None:
    """Load configuration from settings file."""
    if not SETTINGS_FILE.exists():
        return

    try:
        settings = json.loads(SETTINGS_FILE.read_text())

        # Capture settings
        if "capture" in settings:
            cap = settings["capture"]
            if "interval" in cap:
                config.capture.interval = int(cap["interval"])
            if "screenshots_dir" in cap:
                config.capture.screenshots_dir = Path(cap["screenshots_dir"]).expanduser()
            if "ocr_timeout" in cap:
                config.capture.ocr_timeout = float(cap["ocr_timeout"])
            if "ocr_language" in cap:
                config.capture.ocr_language = cap["ocr_language"]
            if "tesseract_config" in cap:
                config.capture.tesseract_config = cap["tesseract_config"]

        # Storage settings
        if "storage" in settings:
            stor = settings["storage"]
            if "data_dir" in stor:
                config.storage.data_dir = Path(stor["data_dir"]).expanduser()
            if "index_filename" in stor:
                config.storage.index_filename = stor["index_filename"]

        # Export settings
        if "export" in settings:
            exp = settings["export"]
            if "export_dir" in exp:
                config.export.export_dir = Path(exp["export_dir"]).expanduser()

    except Exception as e:
        logger.warning(f"Failed to load settings file: {e}")


def load_config() -> Config:
    """
    Load configuration from all sources.

    Priority: Settings file > Environment variables > Defaults
    """
    config = Config()

    # Load from environment first
    _load_from_env(config)

    # Load from file (overrides env)
    _load_from_file(config)

    return config


def save_config(config: Config) -> bool:
    """Save configuration to settings file."""
    try:
        SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)

        settings = {
            "capture": {
                "interval": config.capture.interval,
                "screenshots_dir": str(config.capture.screenshots_dir),
                "ocr_timeout": config.capture.ocr_timeout,
                "ocr_language": config.capture.ocr_language,
                "tesseract_config": config.capture.tesseract_config,
            },
            "storage": {
                "data_dir": str(config.storage.data_dir),
                "index_filename": config.storage.index_filename,
            },
            "export": {
                "export_dir": str(config.export.export_dir),
            },
        }

        SETTINGS_FILE.write_text(json.dumps(settings, indent=2))
        return True
    except Exception as e:
        logger.error(f"Failed to save config: {e}")
        return False


# === Global Config Instance ===

_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration from sources."""
    global _config
    _config = load_config()
    return _config
