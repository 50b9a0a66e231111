"""Runtime configuration.

Values are resolved from, highest priority first: explicit keyword arguments,
``STICKY_NOTES_*`` environment variables (and ``.env``), a JSON config file,
then the defaults below.
"""

from __future__ import annotations

import json
import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    InitSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"

PALETTE: dict[str, str] = {
    "#FFE999": "Yellow",
    "#A7F3D0": "Green",
    "#93C5FD": "Blue",
    "#FCA5A5": "Red",
    "#DDD6FE": "Purple",
    "#FFB17A": "Orange",
}
DEFAULT_COLOR = next(iter(PALETTE))

HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")

# sections of the nested config file format and the field prefix they map to
_FILE_SECTIONS = {"db": "db_", "server": "", "features": ""}
_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


def config_file_candidates() -> list[Path]:
    paths = []
    env_path = os.getenv("STICKY_NOTES_CONFIG")
    if env_path:
        paths.append(Path(env_path))
    paths.append(Path.cwd() / ".sticky-notes.config.json")
    paths.append(Path.home() / "sticky-notes.config.json")
    return paths


def _snake(key: str) -> str:
    return _CAMEL_RE.sub("_", key).lower()


def flatten_file_config(data: dict[str, Any]) -> dict[str, Any]:
    """Flatten ``{"db": {"timeout": 5}}`` style files into field names."""
    flat: dict[str, Any] = {}
    for key, value in data.items():
        if key in _FILE_SECTIONS and isinstance(value, dict):
            prefix = _FILE_SECTIONS[key]
            for inner, inner_value in value.items():
                flat[prefix + _snake(inner)] = inner_value
        else:
            flat[_snake(key)] = value
    return flat


def load_config_file() -> dict[str, Any]:
    for path in config_file_candidates():
        if not path.is_file():
            continue
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Error reading config file %s: %s", path, exc)
            continue
        logger.info("Loading configuration from %s", path)
        return flatten_file_config(raw)
    logger.debug("No configuration file found, using defaults")
    return {}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STICKY_NOTES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    db_root: Path = Field(default_factory=Path.home)
    db_path: str = "sticky-notes.db"
    db_timeout: int = Field(10000, ge=0, description="busy timeout in milliseconds")
    db_verbose: bool = False

    host: str = "127.0.0.1"
    web_ui_port: int = 3000

    enable_websocket: bool = True
    enable_mcp: bool = True

    log_level: str = "INFO"
    default_color: str = DEFAULT_COLOR

    @field_validator("default_color")
    @classmethod
    def _check_color(cls, value: str) -> str:
        if not HEX_COLOR_RE.match(value):
            raise ValueError(f"not a #RRGGBB color: {value!r}")
        return value.upper()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        file_settings = InitSettingsSource(settings_cls, load_config_file())
        return init_settings, env_settings, dotenv_settings, file_settings, file_secret_settings

    @property
    def in_memory(self) -> bool:
        return self.db_path == ":memory:"

    @property
    def database_file(self) -> Optional[Path]:
        if self.in_memory:
            return None
        path = Path(self.db_path)
        return path if path.is_absolute() else self.db_root / path

    @property
    def database_url(self) -> str:
        if self.in_memory:
            return "sqlite://"
        return f"sqlite:///{self.database_file}"


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Log to stderr; stdout belongs to the MCP stdio transport."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
