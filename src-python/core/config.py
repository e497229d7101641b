"""Global application configuration."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from core.detection.detection_config import DEDUP_OVERLAP_RATIO

logger = logging.getLogger(__name__)


def _default_data_dir() -> Path:
    """Return the platform-appropriate data directory."""
    if os.name == "nt":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    elif os.uname().sysname == "Darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "scanshield"


class AppConfig(BaseSettings):
    """Application-wide settings — loaded once at startup.

    Every field can be overridden with a ``SCANSHIELD_<NAME>`` environment
    variable; keys in ``_PERSISTABLE_KEYS`` are also read from (and saved
    to) ``settings.json`` in the data directory.
    """

    # Directories
    data_dir: Path = Field(default_factory=_default_data_dir)

    # OCR
    tesseract_cmd: str = ""                            # Empty = look up on PATH
    ocr_language: str = "eng"
    ocr_psm: int = Field(default=3, ge=0, le=13)       # 3 = fully automatic page segmentation
    ocr_min_confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    ocr_timeout_seconds: float = Field(default=0.0, ge=0.0)   # 0 = no limit
    ocr_max_workers: int = Field(default=2, ge=1)             # concurrent Tesseract processes
    ocr_target_width: int = Field(default=2000, ge=64, le=10000)

    # Upload constraints
    max_upload_bytes: int = Field(default=5 * 1024 * 1024, ge=1)
    allowed_mime_types: list[str] = [
        "image/jpeg", "image/png", "image/gif", "image/webp",
    ]

    # Detection / redaction
    dedup_overlap_threshold: float = Field(default=DEDUP_OVERLAP_RATIO, ge=0.0, le=1.0)
    redaction_fill: str = "#000000"
    request_timeout_seconds: float = Field(default=0.0, ge=0.0)  # 0 = no deadline

    # Rate limiting (per client IP)
    rate_limit_requests: int = Field(default=120, ge=1)
    rate_limit_window: int = Field(default=60, ge=1)

    # Logging
    log_format: str = "text"                           # "json" for structured logs
    log_level: str = "INFO"

    # Server
    host: str = "127.0.0.1"
    port: int = Field(default=8910, ge=0, le=65535)   # 0 = random

    model_config = {"env_prefix": "SCANSHIELD_"}

    def model_post_init(self, __context: object) -> None:
        # Load any previously-saved user settings from disk
        self._load_user_settings()

    # ------------------------------------------------------------------
    # Persistence — user-editable settings are saved to a JSON sidecar
    # ------------------------------------------------------------------

    # Keys that are persisted when changed via the API
    _PERSISTABLE_KEYS: set[str] = {
        "tesseract_cmd", "ocr_language", "ocr_psm", "ocr_min_confidence",
        "ocr_timeout_seconds", "ocr_target_width",
        "dedup_overlap_threshold", "redaction_fill",
        "request_timeout_seconds",
    }

    @property
    def _settings_path(self) -> Path:
        return self.data_dir / "settings.json"

    def _load_user_settings(self) -> None:
        """Read persisted user settings from disk and apply them."""
        path = self._settings_path
        if not path.exists():
            return
        try:
            data = json.loads(path.read_text(encoding="utf-8-sig"))
            for key, value in data.items():
                if key in self._PERSISTABLE_KEYS and hasattr(self, key):
                    setattr(self, key, value)
            logger.info(f"Loaded user settings from {path}")
        except Exception as exc:
            logger.warning(f"Failed to load settings from {path}: {exc}")

    def save_user_settings(self) -> None:
        """Persist current user-editable settings to disk."""
        data = {k: getattr(self, k) for k in self._PERSISTABLE_KEYS if hasattr(self, k)}
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            self._settings_path.write_text(
                json.dumps(data, indent=2, default=str),
                encoding="utf-8",
            )
            logger.info(f"Saved user settings to {self._settings_path}")
        except Exception as exc:
            logger.warning(f"Failed to save settings: {exc}")


# Singleton — importable from anywhere
config = AppConfig()
