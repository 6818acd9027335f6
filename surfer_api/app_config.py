"""
Configuration for the VectorSurfer cache backend.

Settings live in ``settings.yaml`` inside the config folder. The folder is
determined by (in order of priority):
1. VECTORSURFER_CONFIG environment variable
2. Default platform-specific location (``platformdirs.user_config_dir``)

A handful of environment variables override individual values so a
deployment can be configured without a file:
- VECTORSURFER_API_TOKENS: comma separated bearer tokens
- VECTORSURFER_DATA_FILE: path of the JSON store file
- VECTORSURFER_PERSIST: "true"/"false"
- VECTORSURFER_LOG_LEVEL: logging level name
- VECTORSURFER_PORT: port used by ``python main.py``
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import platformdirs
import yaml
from pydantic import BaseModel, Field, ValidationError

from .shared.logger import get_logger

logger = get_logger(__name__)

_APP_NAME = "vectorsurfer"
_APP_AUTHOR = "vectorsurfer"
_SETTINGS_FILE_NAME = "settings.yaml"

# Drift defaults applied whenever a caller omits threshold / k
DEFAULT_DRIFT_THRESHOLD = 0.85
DEFAULT_DRIFT_K = 5


class CacheSettings(BaseModel):
    """Server side settings for the cache service."""

    # Drift detection
    drift_threshold: float = Field(DEFAULT_DRIFT_THRESHOLD, gt=0.0, le=1.0)
    drift_k: int = Field(DEFAULT_DRIFT_K, ge=1)
    drift_window_minutes: int = Field(1440, ge=1)
    drift_sample_size: int = Field(50, ge=1)
    drift_min_samples: int = Field(3, ge=1)

    # Embedding
    embedding_dimensions: int = Field(256, ge=8)

    # Auth: empty list means the API runs open
    api_tokens: list[str] = []

    # Persistence
    persist: bool = True
    data_file: str | None = None

    # Server
    log_level: str = "INFO"
    port: int = 8000
    cors_origins: list[str] = ["*"]

    @property
    def auth_enabled(self) -> bool:
        return bool(self.api_tokens)

    def resolve_data_file(self) -> Path | None:
        """Path of the JSON store, or None when persistence is off."""
        if not self.persist:
            return None
        if self.data_file:
            return Path(self.data_file)
        return Path(platformdirs.user_data_dir(_APP_NAME, _APP_AUTHOR)) / "store.json"


def get_config_dir() -> Path:
    """Get the config directory following priority order."""
    env_config = os.environ.get("VECTORSURFER_CONFIG")
    if env_config:
        return Path(env_config)
    return Path(platformdirs.user_config_dir(_APP_NAME, _APP_AUTHOR))


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}

    tokens = os.environ.get("VECTORSURFER_API_TOKENS")
    if tokens is not None:
        overrides["api_tokens"] = [t.strip() for t in tokens.split(",") if t.strip()]

    data_file = os.environ.get("VECTORSURFER_DATA_FILE")
    if data_file:
        overrides["data_file"] = data_file

    persist = os.environ.get("VECTORSURFER_PERSIST")
    if persist is not None:
        overrides["persist"] = persist.strip().lower() in ("1", "true", "yes", "on")

    log_level = os.environ.get("VECTORSURFER_LOG_LEVEL")
    if log_level:
        overrides["log_level"] = log_level

    port = os.environ.get("VECTORSURFER_PORT")
    if port:
        overrides["port"] = port

    return overrides


def load_settings(config_dir: Path | None = None) -> CacheSettings:
    """Load settings from ``settings.yaml`` and apply environment overrides.

    A missing file yields defaults. An unreadable or invalid file is logged
    and ignored.
    """
    settings_path = (config_dir or get_config_dir()) / _SETTINGS_FILE_NAME

    data: dict[str, Any] = {}
    if settings_path.exists():
        try:
            with open(settings_path, encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                data = loaded
            else:
                logger.warning("Ignoring %s: expected a mapping", settings_path)
        except (OSError, yaml.YAMLError) as e:
            logger.warning("Could not read settings file %s: %s", settings_path, e)

    data.update(_env_overrides())

    try:
        return CacheSettings(**data)
    except ValidationError as e:
        logger.warning("Invalid settings in %s, using defaults: %s", settings_path, e)
        return CacheSettings(**_env_overrides())


def save_settings(settings: CacheSettings, config_dir: Path | None = None) -> Path:
    """Write settings to ``settings.yaml`` and return the file path."""
    target_dir = config_dir or get_config_dir()
    target_dir.mkdir(parents=True, exist_ok=True)
    settings_path = target_dir / _SETTINGS_FILE_NAME
    with open(settings_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(settings.model_dump(), f, sort_keys=True)
    return settings_path


@lru_cache(maxsize=1)
def get_settings() -> CacheSettings:
    """Process-wide settings, loaded on first use."""
    return load_settings()
