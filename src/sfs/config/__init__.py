"""Centralized configuration for semantic-fs.

Usage:
    from sfs.config import get_config, load_config

    config = get_config()
    print(config.log_level)
    print(config.get_allowlist_path())
"""

from sfs.config.allowlist import AllowListStore
from sfs.config.loader import (
    FileConfig,
    GuardConfig,
    SemanticFsConfig,
    get_config,
    load_config,
)

__all__ = [
    "AllowListStore",
    "FileConfig",
    "GuardConfig",
    "SemanticFsConfig",
    "get_config",
    "load_config",
]
