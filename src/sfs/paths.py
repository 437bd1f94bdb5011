"""Path resolution for semantic-fs global and project directories.

semantic-fs uses a two-tier directory structure:
- Global: ~/.config/semantic-fs/ (allow-list store, user-wide config, logs)
- Project: .semantic-fs/ (project-specific config)

Directories are created lazily on first use, not on install.
"""

from __future__ import annotations

import os
from pathlib import Path

# Directory names
GLOBAL_DIR_NAME = "semantic-fs"
PROJECT_DIR_NAME = ".semantic-fs"

# Environment overrides
CWD_ENV_VAR = "SFS_CWD"
CONFIG_HOME_ENV_VAR = "SFS_CONFIG_HOME"


def get_effective_cwd() -> Path:
    """Get the effective working directory.

    Returns SFS_CWD if set, else Path.cwd(). Relative paths handed to the
    path guard are absolutized against this directory.

    Returns:
        Resolved Path for working directory
    """
    env_cwd = os.getenv(CWD_ENV_VAR)
    if env_cwd:
        return Path(env_cwd).resolve()
    return Path.cwd()


def get_global_dir() -> Path:
    """Get the global semantic-fs directory path.

    Honours SFS_CONFIG_HOME, otherwise ``~/.config/semantic-fs``.

    Returns:
        Path to the global directory (not necessarily existing)
    """
    env_home = os.getenv(CONFIG_HOME_ENV_VAR)
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / ".config" / GLOBAL_DIR_NAME


def get_project_dir(start: Path | None = None) -> Path | None:
    """Get the project semantic-fs directory.

    Returns cwd/.semantic-fs if it exists, else None. No tree-walking.

    Args:
        start: Starting directory (default: get_effective_cwd())

    Returns:
        Path to .semantic-fs/ if found, None otherwise
    """
    cwd = start or get_effective_cwd()
    candidate = cwd / PROJECT_DIR_NAME
    if candidate.is_dir():
        return candidate
    return None


def expand_home(path: str) -> str:
    """Expand a leading ``~`` or ``~/`` to the home directory.

    Unlike ``os.path.expanduser`` this does not expand ``~user`` forms;
    ``~other/x`` is left untouched and treated as a relative path.
    """
    if path == "~" or path.startswith("~/"):
        return str(Path.home()) + path[1:]
    return path


def absolutize(path: str, cwd: Path | None = None) -> str:
    """Expand ``~`` and resolve a path against the effective cwd.

    Collapses ``.``/``..`` and redundant separators without touching the
    filesystem.
    """
    expanded = expand_home(path)
    if not os.path.isabs(expanded):
        expanded = os.path.join(str(cwd or get_effective_cwd()), expanded)
    return os.path.normpath(expanded)
