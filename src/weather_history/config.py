"""
Configuration.

Two layers:

- ``AppSettings``: process settings from the environment / ``.env``
  (``WEATHER_HISTORY_*``): where data lives, debug flag, request timeout.
- ``UserSettings``: the user-editable JSON settings file (API key, units,
  location, retention). Loaded once at startup, saved wholesale on every edit.
  Instances are frozen so a refresh always works on one consistent snapshot.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from weather_history.schemas import LocationKey, RetentionChoice, Units

logger = logging.getLogger(__name__)


class AppSettings(BaseSettings):
    """Process-level settings read from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="WEATHER_HISTORY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "weather-history"
    app_env: str = "development"
    debug: bool = False
    data_dir: Path = Path("data")
    settings_file: Path = Path("data/settings.json")
    request_timeout: float = Field(default=30.0, gt=0)


@lru_cache
def get_settings() -> AppSettings:
    """Cached process settings."""
    return AppSettings()


class UserSettings(BaseModel):
    """Contents of the settings file."""

    model_config = {"frozen": True}

    api_key: str = ""
    units: Units = Units.METRIC
    location: LocationKey = Field(
        default_factory=lambda: LocationKey(city="London", state="", country="UK")
    )
    delete_after_choice: RetentionChoice = RetentionChoice.ONE_MONTH

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key.strip())


def load_user_settings(path: Path) -> UserSettings:
    """Read the settings file, falling back to defaults.

    Any problem (missing file, unreadable, not JSON, wrong shape) yields the
    defaults rather than an error.
    """
    if not path.exists():
        return UserSettings()
    try:
        return UserSettings.model_validate_json(path.read_bytes())
    except (OSError, ValidationError) as e:
        logger.warning("Ignoring unusable settings file %s: %s", path, e)
        return UserSettings()


def save_user_settings(settings: UserSettings, path: Path) -> Path:
    """Overwrite the settings file atomically with ``settings``.

    Writes to a temporary file next to ``path`` and renames it into place,
    so a crash never leaves a half-written file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(settings.model_dump(mode="json"), indent=2)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path
