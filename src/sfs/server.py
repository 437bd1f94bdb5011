"""FastMCP server exposing the sandboxed filesystem tools.

Each call re-reads the allow-list store, so directories added with
``sfs-serve allow`` apply without restarting the server.

Tools:
  read_file, read_multiple_files, write_file, edit_file, create_directory,
  list_directory, move_file, search_files, get_file_info,
  list_allowed_directories
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastmcp import FastMCP
from pydantic import BaseModel, ConfigDict, Field

from sfs.config import AllowListStore, get_config
from sfs.logging import LogSpan, configure_logging
from sfs.patch import EditOperation
from sfs_tools import fs

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

INSTRUCTIONS = """\
Secure filesystem server. Every path must lie inside one of the allowed
directories; call list_allowed_directories first. Relative paths resolve
against the server's working directory. edit_file returns a git-style diff;
pass dryRun=true to preview without writing."""


class EditOperationArgs(BaseModel):
    """Wire form of a single edit."""

    model_config = ConfigDict(populate_by_name=True)

    old_text: str = Field(alias="oldText", description="Text to search for - must match exactly")
    new_text: str = Field(alias="newText", description="Text to replace with")

    def to_operation(self) -> EditOperation:
        return EditOperation(self.old_text, self.new_text)


@asynccontextmanager
async def _lifespan(_server: FastMCP) -> AsyncIterator[None]:
    """Log startup with the current allow-list, and shutdown."""
    with LogSpan(span="mcp.server.start") as start_span:
        roots = AllowListStore(get_config().get_allowlist_path()).load()
        start_span.add(allowedDirectories=list(roots))

    yield

    with LogSpan(span="mcp.server.stop"):
        pass


mcp = FastMCP(
    name="semantic-fs",
    instructions=INSTRUCTIONS,
    lifespan=_lifespan,
)

_READ_ONLY: dict[str, Any] = {"readOnlyHint": True, "openWorldHint": False}
_WRITES: dict[str, Any] = {"readOnlyHint": False, "destructiveHint": True, "openWorldHint": False}


@mcp.tool(annotations={"title": "Read File", **_READ_ONLY})
async def read_file(path: str) -> str:
    """Read the complete contents of a file from the file system.

    Only works within allowed directories.
    """
    return fs.read_file(path=path)


@mcp.tool(annotations={"title": "Read Multiple Files", **_READ_ONLY})
async def read_multiple_files(paths: list[str]) -> str:
    """Read the contents of multiple files at once.

    Each file's content is returned with its path as a reference. Failed
    reads for individual files won't stop the entire operation.
    """
    return fs.read_multiple_files(paths=paths)


@mcp.tool(annotations={"title": "Write File", **_WRITES})
async def write_file(path: str, content: str) -> str:
    """Create a new file or completely overwrite an existing file.

    Overwrites without warning. Only works within allowed directories.
    """
    return fs.write_file(path=path, content=content)


@mcp.tool(annotations={"title": "Edit File", **_WRITES})
async def edit_file(
    path: str,
    edits: list[EditOperationArgs],
    dryRun: bool = False,  # noqa: N803
    dry_run: bool = False,
) -> str:
    """Make line-based edits to a text file.

    Each edit replaces an exact (or whitespace-insensitive) line sequence with
    new content. Returns a git-style diff of the changes. With dryRun the
    diff is returned and nothing is written (dry_run is accepted as well).
    """
    return fs.edit_file(
        path=path,
        edits=[edit.to_operation() for edit in edits],
        dry_run=dryRun or dry_run,
    )


@mcp.tool(annotations={"title": "Create Directory", "idempotentHint": True, **_WRITES})
async def create_directory(path: str) -> str:
    """Create a directory, including nested parents.

    Succeeds silently if the directory already exists.
    """
    return fs.create_directory(path=path)


@mcp.tool(annotations={"title": "List Directory", **_READ_ONLY})
async def list_directory(path: str) -> str:
    """List files and directories in a path with [FILE] and [DIR] prefixes."""
    return fs.list_directory(path=path)


@mcp.tool(annotations={"title": "Move File", **_WRITES})
async def move_file(source: str, destination: str) -> str:
    """Move or rename files and directories.

    Fails if the destination exists. Both paths must be within allowed
    directories.
    """
    return fs.move_file(source=source, destination=destination)


@mcp.tool(annotations={"title": "Search Files", **_READ_ONLY})
async def search_files(path: str, pattern: str, exclude_patterns: list[str] | None = None) -> str:
    """Recursively search for files and directories whose name contains a pattern.

    Case-insensitive. Returns full paths to all matching items.
    """
    return fs.search_files(path=path, pattern=pattern, exclude_patterns=exclude_patterns or [])


@mcp.tool(annotations={"title": "Get File Info", **_READ_ONLY})
async def get_file_info(path: str) -> str:
    """Retrieve size, timestamps, type and permissions of a file or directory."""
    return fs.get_file_info(path=path)


@mcp.tool(annotations={"title": "List Allowed Directories", **_READ_ONLY})
async def list_allowed_directories() -> str:
    """Return the directories this server is allowed to access."""
    return fs.list_allowed_directories()


def main() -> None:
    """Run the MCP server over stdio transport."""
    configure_logging(log_name="serve")
    mcp.run(show_banner=False)
