"""Configuration models and loading.

Settings are merged from, lowest precedence first: built-in defaults, a JSON
config file, and NPM_SECURITY_SCORE_* environment variables.
"""

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, ValidationError, model_validator

from npmscore.core.errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "NPM_SECURITY_SCORE_"

# env var suffix -> (section, key)
ENV_OVERRIDES = {
    "BASE_SCORE": ("scoring", "base_score"),
    "MIN_SCORE": ("scoring", "min_score"),
    "MAX_SCORE": ("scoring", "max_score"),
    "TIMEOUT": ("tarball", "timeout"),
    "REGISTRY": ("registry", "url"),
    "THRESHOLD": (None, "threshold"),
}


class ScoringSettings(BaseModel):
    """Score bounds used by the calculator."""

    base_score: float = Field(default=100, validation_alias=AliasChoices("base_score", "baseScore"))
    min_score: float = Field(default=0, validation_alias=AliasChoices("min_score", "minScore"))
    max_score: float = Field(default=100, validation_alias=AliasChoices("max_score", "maxScore"))

    @model_validator(mode="after")
    def _check_bounds(self) -> "ScoringSettings":
        if self.min_score > self.max_score:
            raise ValueError(f"min_score ({self.min_score}) must not exceed max_score ({self.max_score})")
        return self


class RuleSettings(BaseModel):
    """Per-rule overrides."""

    enabled: bool = True
    weight: float | None = Field(default=None, ge=0)
    options: dict[str, Any] = Field(default_factory=dict)


class TarballSettings(BaseModel):
    """Tarball download and inspection settings."""

    timeout: float = Field(default=60.0, gt=0)  # seconds
    temp_dir: Path | None = Field(default=None, validation_alias=AliasChoices("temp_dir", "tempDir"))
    max_largest_files: int = Field(default=10, ge=1)
    max_tarball_size: int = Field(default=50_000_000, gt=0)


class RegistrySettings(BaseModel):
    """npm registry client settings."""

    url: str = "https://registry.npmjs.org"
    timeout: float = Field(default=30.0, gt=0)


class Settings(BaseModel):
    """Complete configuration."""

    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    rules: dict[str, RuleSettings] = Field(default_factory=dict)
    tarball: TarballSettings = Field(default_factory=TarballSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    threshold: float = Field(default=70, ge=0)

    def rule_settings(self, name: str) -> RuleSettings:
        return self.rules.get(name) or RuleSettings()


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_config_file(path: Path) -> dict[str, Any]:
    """Read a JSON config file."""
    path = path.resolve()
    suffix = path.suffix.lower()

    if suffix in (".yaml", ".yml"):
        raise ConfigError(f"YAML config files are not supported, use JSON: {path}")
    if suffix != ".json":
        raise ConfigError(f"Unsupported config file format: {path.suffix or '(none)'}")

    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except OSError as e:
        raise ConfigError(f"Could not read config file {path}: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")

    logger.debug(f"Loaded config from {path}")
    return data


def _env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for suffix, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(f"{ENV_PREFIX}{suffix}")
        if value is None or value == "":
            continue
        if section is None:
            overrides[key] = value
        else:
            overrides.setdefault(section, {})[key] = value
    return overrides


def load_settings(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from defaults, an optional JSON file and the environment.

    Args:
        path: Optional path to a JSON config file.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        Validated Settings.

    Raises:
        ConfigError: If the file cannot be read or the merged config is invalid.
    """
    data: dict[str, Any] = {}
    if path is not None:
        data = _deep_merge(data, _read_config_file(Path(path)))

    data = _deep_merge(data, _env_overrides(os.environ if environ is None else environ))

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
