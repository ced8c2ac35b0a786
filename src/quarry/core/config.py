"""Settings for quarry.

Frozen Pydantic models describe the settings; Dynaconf merges a settings
file with QUARRY_* environment variables before validation.
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

_JOURNAL_MODES = frozenset({"delete", "truncate", "persist", "memory", "wal", "off"})


class DatabaseSettings(BaseModel):
    """Database connection configuration.

    Example YAML:
        database:
          url: "sqlite:///./state/app.db"
          journal_mode: wal
          busy_timeout_ms: 5000
    """

    model_config = {"frozen": True}

    # NOTE: str, not Path - Path mangles DSNs like "postgresql://user@host/db"
    url: str = Field(default="sqlite:///:memory:", description="Full SQLAlchemy database URL")
    echo: bool = Field(default=False, description="Log every SQL statement (SQLAlchemy echo)")
    foreign_keys: bool = Field(default=True, description="SQLite: enforce foreign keys")
    journal_mode: str = Field(default="wal", description="SQLite: PRAGMA journal_mode")
    busy_timeout_ms: int = Field(default=5000, gt=0, description="SQLite: PRAGMA busy_timeout")

    @field_validator("journal_mode")
    @classmethod
    def validate_journal_mode(cls, v: str) -> str:
        """Journal mode must be one SQLite knows."""
        mode = v.lower()
        if mode not in _JOURNAL_MODES:
            raise ValueError(f"journal_mode must be one of {sorted(_JOURNAL_MODES)}, got {v!r}")
        return mode


class LoggingSettings(BaseModel):
    """Logging output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO", description="Root log level")
    json_output: bool = Field(default=False, description="Render log records as JSON")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class QuarrySettings(BaseModel):
    """Top-level settings."""

    model_config = {"frozen": True}

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ${NAME} or ${NAME:-fallback}
_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Z_][A-Z0-9_]*)(?::-(?P<fallback>[^}]*))?\}")

# Dynaconf bookkeeping keys that are not settings
_DYNACONF_KEYS = frozenset({"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"})


def _substitute_env(match: re.Match[str]) -> str:
    value = os.environ.get(match["name"])
    if value is not None:
        return value
    if match["fallback"] is not None:
        return match["fallback"]
    # Left in place; a URL still containing ${...} fails later, visibly
    return match.group(0)


def _expand_env_vars(node: Any) -> Any:
    """Resolve ``${NAME}`` / ``${NAME:-fallback}`` references in every string of a config tree."""
    match node:
        case str():
            return _ENV_REFERENCE.sub(_substitute_env, node)
        case dict():
            return {key: _expand_env_vars(value) for key, value in node.items()}
        case list():
            return [_expand_env_vars(item) for item in node]
        case _:
            return node


def _lower_keys(node: Any) -> Any:
    """Dynaconf upper-cases keys; Pydantic fields are lower case."""
    match node:
        case dict():
            return {str(key).lower(): _lower_keys(value) for key, value in node.items()}
        case list():
            return [_lower_keys(item) for item in node]
        case _:
            return node


def load_settings(config_path: Path) -> QuarrySettings:
    """Read settings from a YAML or TOML file.

    Later sources win: schema defaults, then the file, then QUARRY_*
    environment variables (``QUARRY_DATABASE__URL`` sets database.url).
    ``${NAME:-fallback}`` references are resolved after merging.

    Raises:
        FileNotFoundError: If config_path does not exist
        pydantic.ValidationError: If the merged settings are invalid
    """
    from dynaconf import Dynaconf

    # Dynaconf treats a missing settings file as empty
    if not config_path.is_file():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    loaded = Dynaconf(
        envvar_prefix="QUARRY",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )
    raw = {key: value for key, value in loaded.as_dict().items() if key not in _DYNACONF_KEYS}
    return QuarrySettings(**_expand_env_vars(_lower_keys(raw)))
