"""
Configuration loader — builds the immutable ``Settings`` for a run.

Settings are assembled once at startup and passed explicitly into
every component.  Sources, lowest precedence first:

    defaults  <  envboot.yml  <  ENVBOOT_* environment  <  CLI overrides

Relative paths in envboot.yml are resolved against the file's directory;
defaults are resolved against the config file's directory, or the
working directory when there is no config file.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from envboot.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "envboot.yml"

# Environment variable → settings field
ENV_VARS = {
    "ENVBOOT_PREFIX": "prefix",
    "ENVBOOT_RECIPE_DIR": "recipe_dir",
    "ENVBOOT_CACHE_DIR": "cache_dir",
    "ENVBOOT_EVENTS_DIR": "events_dir",
    "ENVBOOT_MIRROR": "mirror",
    "ENVBOOT_JOBS": "jobs",
    "ENVBOOT_VERBOSE": "verbose",
}

_PATH_FIELDS = ("prefix", "recipe_dir", "cache_dir", "events_dir")


def default_jobs() -> int:
    """Job-count hint handed to recipes for their own build tools."""
    return os.cpu_count() or 1


class Settings(BaseModel):
    """Resolved configuration for one envboot process."""

    model_config = ConfigDict(frozen=True)

    prefix: Path
    recipe_dir: Path
    cache_dir: Path
    events_dir: Path
    mirror: str | None = None
    jobs: int = Field(default_factory=default_jobs, ge=1)
    verbose: bool = False

    @field_validator("mirror")
    @classmethod
    def _strip_mirror(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().rstrip("/")
        return v or None

    @property
    def history_path(self) -> Path:
        return self.prefix / "var" / "envboot" / "history.ndjson"

    def resource_dir(self, recipe_name: str) -> Path:
        """Per-recipe download directory (not created here)."""
        return self.cache_dir / recipe_name

    def event_path(self, recipe_name: str) -> Path:
        return self.events_dir / recipe_name

    def recipe_env(self) -> dict[str, str]:
        """Variables exported to every recipe subcommand."""
        env = {
            "ENVBOOT_PREFIX": str(self.prefix),
            "ENVBOOT_RECIPE_DIR": str(self.recipe_dir),
            "ENVBOOT_CACHE_DIR": str(self.cache_dir),
            "ENVBOOT_EVENTS_DIR": str(self.events_dir),
            "ENVBOOT_JOBS": str(self.jobs),
            "ENVBOOT_VERBOSE": "1" if self.verbose else "",
        }
        if self.mirror:
            env["ENVBOOT_MIRROR"] = self.mirror
        return env


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for envboot.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to envboot.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Read envboot.yml into a plain mapping.

    Raises:
        ConfigurationError: If the file is missing, unreadable or not a mapping.
    """
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The file may wrap everything under an "envboot" key or be flat
    if isinstance(data.get("envboot"), dict):
        data = data["envboot"]

    unknown = set(data) - set(Settings.model_fields)
    if unknown:
        raise ConfigurationError(f"Unknown key(s) in {path}: {', '.join(sorted(unknown))}")

    base = path.parent.resolve()
    for key in _PATH_FIELDS:
        if data.get(key) is not None:
            data[key] = _resolve_path(data[key], base)
    return data


def load_settings(
    config_path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Assemble and validate the settings for this process.

    Args:
        config_path: Explicit envboot.yml. If None, searches upward from cwd.
        overrides: Values from CLI flags; ``None`` values are ignored.
        environ: Environment to read ``ENVBOOT_*`` from (default: os.environ).

    Returns:
        Frozen Settings model.

    Raises:
        ConfigurationError: On an unreadable file or invalid values.
    """
    environ = os.environ if environ is None else environ

    if config_path is None:
        config_path = find_config_file()
        file_values = read_config_file(config_path) if config_path else {}
    else:
        file_values = read_config_file(config_path)

    root = config_path.parent.resolve() if config_path else Path.cwd().resolve()

    values: dict[str, Any] = dict(file_values)
    for var, key in ENV_VARS.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        values[key] = _resolve_path(raw, Path.cwd()) if key in _PATH_FIELDS else raw
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        values[key] = _resolve_path(value, Path.cwd()) if key in _PATH_FIELDS else value

    prefix = Path(values.get("prefix") or root / "local")
    values["prefix"] = prefix
    values["recipe_dir"] = values.get("recipe_dir") or root / "recipes"
    values["cache_dir"] = values.get("cache_dir") or prefix / "var" / "envboot" / "resources"
    values["events_dir"] = values.get("events_dir") or prefix / "var" / "envboot" / "events"

    try:
        settings = Settings.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    logger.debug(
        "Settings: prefix=%s recipes=%s mirror=%s jobs=%d",
        settings.prefix, settings.recipe_dir, settings.mirror or "-", settings.jobs,
    )
    return settings


def _resolve_path(value: Any, base: Path) -> Path:
    path = Path(os.path.expanduser(str(value)))
    if not path.is_absolute():
        path = base / path
    return path
