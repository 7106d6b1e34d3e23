"""Configuration management for the wormhole bridge (YAML-based)."""

from __future__ import annotations

import shutil
import sys
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, field_validator, model_validator

from .exceptions import ConfigurationError

PACKAGE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_BINARIES_DIR = PACKAGE_DIR / "resources" / "binaries"


def executable_name(platform: Optional[str] = None) -> str:
    platform = platform or sys.platform
    return "wormhole.exe" if platform == "win32" else "wormhole"


class Settings(BaseModel):
    """Application settings, loaded from a YAML file or left at defaults."""

    # Executable lookup
    wormhole_path: Optional[Path] = None
    binaries_dir: Path = DEFAULT_BINARIES_DIR

    # Session behaviour
    confirm_delay: float = 1.0  # seconds before auto-accepting a receive
    confirm_token: str = "y"
    terminate_grace: float = 5.0  # seconds between terminate and kill on cancel
    availability_timeout: float = 10.0

    # Locations
    downloads_dir: Path = Path.home() / "Downloads"
    log_dir: Optional[Path] = None

    # Notifications
    show_notifications: bool = True
    notification_title: str = "Magic Wormhole"

    # HTTP bridge
    host: str = "127.0.0.1"
    port: int = 8830
    log_level: str = "INFO"
    result_cache_size: int = 256
    result_cache_ttl: float = 600.0

    @model_validator(mode="before")
    @classmethod
    def _blank_paths_use_defaults(cls, data):
        # an empty YAML value for a required directory means "keep the default"
        if isinstance(data, dict):
            data = {
                key: value
                for key, value in data.items()
                if not (key in ("binaries_dir", "downloads_dir") and value in ("", None))
            }
        return data

    @field_validator("wormhole_path", "binaries_dir", "downloads_dir", "log_dir", mode="before")
    @classmethod
    def _expand_path(cls, v):
        if v is None or v == "":
            return None
        return Path(v).expanduser()

    @field_validator("confirm_delay", "terminate_grace", "availability_timeout")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    def resolve_wormhole_path(self, platform: Optional[str] = None) -> Path:
        """Locate the wormhole executable.

        Order: explicit ``wormhole_path``, the bundled binaries directory,
        ``wormhole`` on PATH. When nothing exists the bundled path is
        returned so that error messages name the expected location.
        """
        if self.wormhole_path:
            return self.wormhole_path

        bundled = self.binaries_dir / executable_name(platform)
        if bundled.exists():
            return bundled

        found = shutil.which("wormhole")
        if found:
            return Path(found)

        return bundled


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load Settings from a YAML file; defaults when no path is given."""
    if config_path is None:
        return Settings()
    p = Path(config_path).expanduser()
    if not p.exists():
        raise ConfigurationError(f"Config file not found: {p}")
    try:
        with open(p, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        # Allow top-level 'wormhole' key or flat structure
        if isinstance(data.get("wormhole"), dict):
            data = data["wormhole"]
        return Settings(**data)
    except Exception as e:
        raise ConfigurationError(f"Failed to load config from {p}: {e}") from e
