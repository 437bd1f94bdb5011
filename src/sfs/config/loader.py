"""YAML configuration loading for semantic-fs.

Loads sfs-serve.yaml with guard policy, allow-list location and logging
settings.

Example sfs-serve.yaml:

    version: 1

    guard:
      case_fold: true          # fold case before containment checks
      containment: segments    # or "prefix" for raw string-prefix matching

    allowlist_file: approved.json   # resolves relative to this config file

    file:
      max_file_size: 10000000

    log_level: INFO
    log_dir: logs
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from sfs.paths import get_global_dir, get_project_dir

CONFIG_FILENAME = "sfs-serve.yaml"
CONFIG_ENV_VAR = "SFS_SERVE_CONFIG"

# Current config schema version
CURRENT_CONFIG_VERSION = 1


class GuardConfig(BaseModel):
    """Path guard policy."""

    case_fold: bool = Field(
        default=True,
        description="Case-fold paths before containment checks (legacy default)",
    )
    containment: Literal["segments", "prefix"] = Field(
        default="segments",
        description=(
            "segments: root must be a path-segment prefix of the request; "
            "prefix: raw string-prefix match (/data/foo also admits /data/foobar)"
        ),
    )


class FileConfig(BaseModel):
    """Filesystem tool configuration."""

    max_file_size: int = Field(
        default=10_000_000,
        ge=1000,
        le=100_000_000,
        description="Maximum file size in bytes for read and edit (1KB-100MB)",
    )
    encoding: str = Field(default="utf-8", description="Text encoding for reads and writes")


class SemanticFsConfig(BaseModel):
    """Root configuration for semantic-fs."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    # Directory the config file was loaded from (not serialized)
    _config_dir: Path | None = PrivateAttr(default=None)

    version: int = Field(
        default=1,
        description="Config schema version for migration support",
    )
    guard: GuardConfig = Field(default_factory=GuardConfig)
    file: FileConfig = Field(default_factory=FileConfig)

    allowlist_file: str = Field(
        default="approved.json",
        description="Allow-list store (relative to config dir, or absolute)",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_dir: str = Field(
        default="logs",
        description="Directory for log files (relative to config dir)",
    )

    def _resolve_config_relative_path(self, path_str: str) -> Path:
        """Resolve a path relative to the config directory.

        Absolute paths are returned as-is, ``~`` is expanded, and relative
        paths resolve against the directory the config was loaded from
        (the global directory when running on defaults).
        """
        path = Path(path_str).expanduser()
        if path.is_absolute():
            return path
        base = self._config_dir if self._config_dir is not None else get_global_dir()
        return (base / path).resolve()

    def get_allowlist_path(self) -> Path:
        """Get the resolved path to the allow-list JSON store."""
        return self._resolve_config_relative_path(self.allowlist_file)

    def get_log_dir_path(self) -> Path:
        """Get the resolved path to the log directory."""
        return self._resolve_config_relative_path(self.log_dir)


def _resolve_config_path(config_path: Path | str | None) -> Path | None:
    """Resolve config path from explicit path, env var, or default locations.

    Resolution order:
    1. Explicit config_path if provided
    2. SFS_SERVE_CONFIG env var
    3. cwd/.semantic-fs/sfs-serve.yaml
    4. ~/.config/semantic-fs/sfs-serve.yaml
    5. None (use defaults)
    """
    if config_path is not None:
        return Path(config_path)

    env_config = os.getenv(CONFIG_ENV_VAR)
    if env_config:
        return Path(env_config)

    project_dir = get_project_dir()
    if project_dir is not None:
        project_config = project_dir / CONFIG_FILENAME
        if project_config.exists():
            return project_config

    global_config = get_global_dir() / CONFIG_FILENAME
    if global_config.exists():
        return global_config

    return None


def _load_yaml_file(config_path: Path) -> dict[str, Any]:
    """Load and parse a YAML file.

    Raises:
        FileNotFoundError: If file doesn't exist.
        ValueError: If YAML is invalid, not a mapping, or can't be read.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with config_path.open() as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ValueError(f"Error reading {config_path}: {e}") from e

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ValueError(f"Config root must be a mapping in {config_path}")
    return raw_data


def _validate_version(data: dict[str, Any], config_path: Path) -> None:
    """Validate config version and set default if missing.

    Raises:
        ValueError: If version is unsupported.
    """
    config_version = data.get("version")
    if config_version is None:
        logger.warning(
            f"Config file missing 'version' field, assuming version 1. "
            f"Add 'version: {CURRENT_CONFIG_VERSION}' to {config_path}"
        )
        data["version"] = 1
    elif config_version > CURRENT_CONFIG_VERSION:
        raise ValueError(
            f"Config version {config_version} is not supported. "
            f"Maximum supported version is {CURRENT_CONFIG_VERSION}."
        )


def load_config(config_path: Path | str | None = None) -> SemanticFsConfig:
    """Load semantic-fs configuration from YAML file.

    Args:
        config_path: Path to config file (overrides resolution)

    Returns:
        Validated SemanticFsConfig

    Raises:
        FileNotFoundError: If explicit config path doesn't exist
        ValueError: If YAML is invalid or validation fails
    """
    resolved_path = _resolve_config_path(config_path)

    if resolved_path is None:
        logger.debug("No config file found, using defaults")
        config = SemanticFsConfig()
        config._config_dir = get_global_dir()
        return config

    logger.debug(f"Loading config from {resolved_path}")

    raw_data = _load_yaml_file(resolved_path)
    _validate_version(raw_data, resolved_path)

    try:
        config = SemanticFsConfig.model_validate(raw_data)
    except Exception as e:
        raise ValueError(f"Invalid configuration in {resolved_path}: {e}") from e

    config._config_dir = resolved_path.parent.resolve()
    logger.info(f"Config loaded: version {config.version}")

    return config


# Global config instance
_config: SemanticFsConfig | None = None


def get_config(
    config_path: Path | str | None = None, reload: bool = False
) -> SemanticFsConfig:
    """Get or load the global configuration.

    Args:
        config_path: Path to config file (only used on first load)
        reload: Force reload configuration

    Returns:
        SemanticFsConfig instance
    """
    global _config

    if _config is None or reload:
        _config = load_config(config_path)

    return _config
