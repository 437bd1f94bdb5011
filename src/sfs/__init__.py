"""semantic-fs - sandboxed filesystem MCP server.

Features:
- Allow-list of root directories with symlink-aware containment checks
- Fuzzy, indentation-aware multi-edit patching with unified diff previews
- Read, write, move, search and stat tools over MCP (stdio)

Usage:
    # Start MCP server (stdio transport), allowing two directories
    sfs-serve serve ~/projects /srv/data
"""

from importlib.metadata import PackageNotFoundError, version
from typing import Any

try:
    __version__ = version("semantic-fs")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__", "main"]


def __getattr__(name: str) -> Any:
    """Lazy import for server module to avoid loading config at import time."""
    if name == "main":
        from sfs.server import main

        return main
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
