"""Veritas Audit configuration: Pydantic model, load, and save."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

from veritas_audit.core.constants import (
    AUDIT_SUBDIR,
    CONFIG_ENV,
    CONFIG_FILENAME,
    DATA_DIR_ENV,
    DEFAULT_DATA_DIR,
    DEFAULT_RECENT_LIMIT,
    MAX_RECENT_LIMIT,
)
from veritas_audit.core.exceptions import ConfigError, ConfigNotFoundError

CURRENT_CONFIG_VERSION = 1

# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class StorageConfig(BaseModel):
    data_dir: str = ""  # empty → use default


class AuditConfig(BaseModel):
    # First entry of a new month chains from the previous month's last line
    chain_across_months: bool = True
    recent_limit: int = DEFAULT_RECENT_LIMIT
    fsync: bool = False

    @field_validator("recent_limit")
    @classmethod
    def validate_recent_limit(cls, v: int) -> int:
        if not (1 <= v <= MAX_RECENT_LIMIT):
            raise ValueError(f"recent_limit must be between 1 and {MAX_RECENT_LIMIT}")
        return v


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "text"  # "text" | "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {sorted(allowed)}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v.lower() not in ("text", "json"):
            raise ValueError("Log format must be 'text' or 'json'")
        return v.lower()


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


class VeritasConfig(BaseModel):
    """Root Veritas Audit configuration model."""

    config_version: int = CURRENT_CONFIG_VERSION
    storage: StorageConfig = Field(default_factory=StorageConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def data_dir(self) -> Path:
        return resolve_data_dir(self)

    @property
    def audit_dir(self) -> Path:
        return self.data_dir / AUDIT_SUBDIR


def resolve_data_dir(config: VeritasConfig | None = None) -> Path:
    """
    Return the base directory for all persisted state.

    Evaluated on every call so that changing ``VERITAS_DATA_DIR`` takes effect
    on the next path computation without a restart.

    Priority (highest to lowest):
      1. ``VERITAS_DATA_DIR`` environment variable
      2. ``[storage] data_dir`` from the config
      3. ``.veritas-kanban`` relative to the working directory
    """
    if env_dir := os.environ.get(DATA_DIR_ENV):
        return Path(env_dir).expanduser()
    if config is not None and config.storage.data_dir:
        return Path(config.storage.data_dir).expanduser()
    return Path(DEFAULT_DATA_DIR)


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def config_file_path(base_dir: Path | None = None) -> Path:
    if env_path := os.environ.get(CONFIG_ENV):
        return Path(env_path).expanduser()
    return (base_dir or resolve_data_dir()) / CONFIG_FILENAME


def load_config(path: Path | None = None) -> VeritasConfig:
    """
    Load VeritasConfig from TOML file, overlaid with environment variables.

    Priority (highest to lowest):
      1. Environment variables (VERITAS_*)
      2. Config file (<data_dir>/config.toml or $VERITAS_CONFIG)
    """
    import tomllib

    cfg_path = path or config_file_path()

    if not cfg_path.exists():
        raise ConfigNotFoundError(
            f"Veritas Audit is not configured. Run 'veritas-audit config init' first.\n"
            f"(Config file not found: {cfg_path})"
        )

    try:
        with open(cfg_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Cannot read config file {cfg_path}: {exc}") from exc

    return _validate(data, source=str(cfg_path))


def load_config_or_default(path: Path | None = None) -> VeritasConfig:
    """Like :func:`load_config`, but a missing file yields the defaults."""
    try:
        return load_config(path)
    except ConfigNotFoundError:
        return _validate({}, source="defaults")


def _validate(data: dict[str, Any], source: str) -> VeritasConfig:
    _apply_env_overrides(data)
    try:
        return VeritasConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid config ({source}): {exc}") from exc


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def _apply_env_overrides(data: dict[str, Any]) -> None:
    """Overlay VERITAS_* environment variables onto the parsed TOML data."""
    if data_dir := os.environ.get(DATA_DIR_ENV):
        data.setdefault("storage", {})["data_dir"] = data_dir
    if level := os.environ.get("VERITAS_LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = level
    if across := os.environ.get("VERITAS_AUDIT_CHAIN_ACROSS_MONTHS"):
        data.setdefault("audit", {})["chain_across_months"] = _parse_bool(
            "VERITAS_AUDIT_CHAIN_ACROSS_MONTHS", across
        )
    if fsync := os.environ.get("VERITAS_AUDIT_FSYNC"):
        data.setdefault("audit", {})["fsync"] = _parse_bool("VERITAS_AUDIT_FSYNC", fsync)


def save_config(config_data: dict[str, Any], path: Path | None = None) -> Path:
    """Write config dict to TOML file with secure permissions (0600)."""
    import tomli_w

    cfg_path = path or config_file_path()
    cfg_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    # Write atomically
    tmp_path = cfg_path.with_suffix(".tmp")
    try:
        with open(tmp_path, "wb") as f:
            tomli_w.dump(config_data, f)
        tmp_path.replace(cfg_path)
    except (OSError, TypeError, ValueError) as exc:
        tmp_path.unlink(missing_ok=True)
        raise ConfigError(f"Cannot write config to {cfg_path}: {exc}") from exc

    cfg_path.chmod(0o600)
    return cfg_path
