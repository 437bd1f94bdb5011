"""Sandboxed file operations for semantic-fs.

Every path is validated by the path guard against the allow-list store
before any I/O happens. The allow-list is re-read on each call, so roots
added while the server runs apply to the next call without a restart.

Configuration via sfs-serve.yaml:
    guard:
      case_fold: true
      containment: segments
    allowlist_file: approved.json
    file:
      max_file_size: 10000000

Tools return text. Failures are returned as ``"Error: <message>"``.
"""

from __future__ import annotations

import fnmatch
import os
import shutil
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sfs.config import AllowListStore, get_config
from sfs.diff import create_two_files_patch
from sfs.errors import ArgumentInvalid, NotFound, SfsError
from sfs.guard import GuardPolicy, PathGuard
from sfs.logging import LogSpan
from sfs.patch import PatchEngine
from sfs.utils.fileio import atomic_write_text, read_text_checked

pack = "fs"

__all__ = [
    "create_directory",
    "edit_file",
    "get_file_info",
    "list_allowed_directories",
    "list_directory",
    "move_file",
    "read_file",
    "read_multiple_files",
    "search_files",
    "write_file",
]

# Errors surfaced to the caller as "Error: ..." text. UnicodeDecodeError and
# malformed allow-list stores are ValueErrors.
_TOOL_ERRORS = (SfsError, OSError, ValueError)


# ============================================================================
# Guard and engine wiring
# ============================================================================


def _get_guard() -> PathGuard:
    """Build a path guard from the current allow-list and guard policy."""
    config = get_config()
    roots = AllowListStore(config.get_allowlist_path()).load()
    return PathGuard(roots, GuardPolicy.from_config(config.guard))


def _get_engine() -> PatchEngine:
    return PatchEngine.from_config(get_config().file)


def _read_text(path: Path) -> str:
    cfg = get_config().file
    return read_text_checked(path, encoding=cfg.encoding, max_size=cfg.max_file_size)


def _fail(s: LogSpan, error: Exception) -> str:
    s.add(error=f"{type(error).__name__}: {error}")
    return f"Error: {error}"


# ============================================================================
# Read Operations
# ============================================================================


def read_file(*, path: str) -> str:
    """Read the complete contents of a file.

    Args:
        path: Path to file (relative to cwd, absolute, or ~/...)

    Returns:
        File content, or error message

    Example:
        fs.read_file(path="~/projects/app/main.py")
    """
    with LogSpan(span="fs.read_file", path=path) as s:
        try:
            resolved = _get_guard().validate(path)
            content = _read_text(resolved)
        except _TOOL_ERRORS as e:
            return _fail(s, e)
        s.add(resultLen=len(content))
        return content


def read_multiple_files(*, paths: list[str]) -> str:
    """Read several files in one call.

    A failed read does not stop the others; it is reported inline as
    ``"<path>: Error - <message>"``.

    Args:
        paths: Paths to read

    Returns:
        Per-file blocks separated by ``---`` lines
    """
    with LogSpan(span="fs.read_multiple_files", count=len(paths)) as s:
        try:
            guard = _get_guard()
        except _TOOL_ERRORS as e:
            return _fail(s, e)

        results = []
        failures = 0
        for file_path in paths:
            try:
                content = _read_text(guard.validate(file_path))
                results.append(f"{file_path}:\n{content}\n")
            except _TOOL_ERRORS as e:
                failures += 1
                results.append(f"{file_path}: Error - {e}")

        s.add(failures=failures)
        return "\n---\n".join(results)


def get_file_info(*, path: str) -> str:
    """Get file or directory metadata.

    Args:
        path: Path to file or directory

    Returns:
        ``key: value`` lines for size, timestamps, type flags and permissions
    """
    with LogSpan(span="fs.get_file_info", path=path) as s:
        try:
            resolved = _get_guard().validate(path)
            st = resolved.stat()
        except _TOOL_ERRORS as e:
            return _fail(s, e)

        birth = getattr(st, "st_birthtime", st.st_ctime)
        info: dict[str, Any] = {
            "size": st.st_size,
            "created": datetime.fromtimestamp(birth, tz=UTC).isoformat(),
            "modified": datetime.fromtimestamp(st.st_mtime, tz=UTC).isoformat(),
            "accessed": datetime.fromtimestamp(st.st_atime, tz=UTC).isoformat(),
            "isDirectory": resolved.is_dir(),
            "isFile": resolved.is_file(),
            "permissions": oct(st.st_mode)[-3:],
        }
        s.add(isDirectory=info["isDirectory"])
        return "\n".join(f"{key}: {value}" for key, value in info.items())


def list_directory(*, path: str) -> str:
    """List a directory's entries with ``[DIR]``/``[FILE]`` prefixes.

    Args:
        path: Directory path

    Returns:
        One entry per line, sorted by name
    """
    with LogSpan(span="fs.list_directory", path=path) as s:
        try:
            resolved = _get_guard().validate(path)
            if not resolved.is_dir():
                raise NotFound(f"Not a directory: {path}", path=path)
            entries = sorted(resolved.iterdir(), key=lambda p: p.name)
        except _TOOL_ERRORS as e:
            return _fail(s, e)

        lines = [f"{'[DIR]' if entry.is_dir() else '[FILE]'} {entry.name}" for entry in entries]
        s.add(entryCount=len(lines))
        return "\n".join(lines)


def _glob_match(parts: tuple[str, ...], pattern_parts: tuple[str, ...]) -> bool:
    """Match path segments against glob segments; ``**`` spans zero or more segments."""
    if not pattern_parts:
        return not parts
    head, rest = pattern_parts[0], pattern_parts[1:]
    if head == "**":
        return any(_glob_match(parts[i:], rest) for i in range(len(parts) + 1))
    return bool(parts) and fnmatch.fnmatchcase(parts[0], head) and _glob_match(parts[1:], rest)


def _is_excluded(rel_path: Path, exclude_patterns: list[str]) -> bool:
    """Check a path relative to the search root against exclude patterns.

    A pattern without ``*`` excludes any entry with a path segment equal to
    it. Glob patterns match the whole relative path segment by segment, so
    ``*`` never crosses ``/``: ``*.py`` only matches at the top level and
    ``**/*.py`` matches at any depth.
    """
    for pattern in exclude_patterns:
        if "*" not in pattern:
            if pattern in rel_path.parts:
                return True
            continue
        if _glob_match(rel_path.parts, tuple(p for p in pattern.split("/") if p)):
            return True
    return False


def search_files(*, path: str, pattern: str, exclude_patterns: list[str] | None = None) -> str:
    """Recursively search for files and directories whose name contains ``pattern``.

    Matching is case-insensitive substring matching on entry names. Every
    visited entry is itself validated, so symlinks leading out of the
    allowed directories are skipped along with their subtrees.

    Args:
        path: Root directory to search
        pattern: Substring to look for in entry names
        exclude_patterns: Names or globs (relative to ``path``) to skip

    Returns:
        Full paths of matching entries, one per line, or "No matches found"

    Example:
        fs.search_files(path="~/projects", pattern="test", exclude_patterns=["node_modules"])
    """
    excludes = exclude_patterns or []
    with LogSpan(span="fs.search_files", path=path, pattern=pattern) as s:
        try:
            guard = _get_guard()
            root = guard.validate(path)
        except _TOOL_ERRORS as e:
            return _fail(s, e)

        needle = pattern.lower()
        results: list[str] = []
        visited: set[str] = set()
        skipped = 0

        def search(current: Path) -> None:
            nonlocal skipped
            real = os.path.realpath(current)
            if real in visited:
                return
            visited.add(real)

            try:
                entries = sorted(current.iterdir(), key=lambda p: p.name)
            except OSError:
                skipped += 1
                return

            for entry in entries:
                try:
                    guard.validate(str(entry))
                except _TOOL_ERRORS:
                    skipped += 1
                    continue

                if _is_excluded(entry.relative_to(root), excludes):
                    continue

                if needle in entry.name.lower():
                    results.append(str(entry))

                if entry.is_dir():
                    search(entry)

        search(root)
        s.add(resultCount=len(results), skipped=skipped)
        return "\n".join(results) if results else "No matches found"


def list_allowed_directories() -> str:
    """Return the directories this server may access."""
    with LogSpan(span="fs.list_allowed_directories") as s:
        try:
            roots = AllowListStore(get_config().get_allowlist_path()).load()
        except _TOOL_ERRORS as e:
            return _fail(s, e)
        s.add(count=len(roots))
        return "Allowed directories:\n" + "\n".join(roots)


# ============================================================================
# Write Operations
# ============================================================================


def write_file(*, path: str, content: str) -> str:
    """Create a new file or overwrite an existing one.

    The parent directory must already exist.

    Args:
        path: Path to file
        content: Full new content

    Returns:
        Success message, or error message
    """
    with LogSpan(span="fs.write_file", path=path, contentLen=len(content)) as s:
        try:
            resolved = _get_guard().validate(path)
            written = atomic_write_text(resolved, content, encoding=get_config().file.encoding)
        except _TOOL_ERRORS as e:
            return _fail(s, e)
        s.add(bytesWritten=written)
        return f"Successfully wrote to {path}"


def edit_file(*, path: str, edits: list[Any], dry_run: bool = False) -> str:
    """Apply ordered text edits to a file and return a unified diff.

    Each edit's ``oldText`` is matched verbatim first, then line by line
    ignoring surrounding whitespace, against the result of the edits before
    it. If any edit fails to match, nothing is written.

    Args:
        path: Path to file
        edits: List of ``{"oldText": ..., "newText": ...}`` objects
        dry_run: Compute and return the diff without writing

    Returns:
        Git-style diff of original vs modified content, or error message

    Example:
        fs.edit_file(path="app.py", edits=[{"oldText": "DEBUG = False", "newText": "DEBUG = True"}])
    """
    with LogSpan(span="fs.edit_file", path=path, dryRun=dry_run) as s:
        try:
            resolved = _get_guard().validate(path)
            if not resolved.is_file():
                raise NotFound(f"Not a file: {path}", path=path)
            result = _get_engine().apply_file(resolved, edits, dry_run=dry_run)
        except _TOOL_ERRORS as e:
            return _fail(s, e)

        s.add(edits=result.edits, changed=result.changed, persisted=result.persisted)
        return create_two_files_patch(path, path, result.original, result.modified)


def create_directory(*, path: str) -> str:
    """Create a directory, including missing parents.

    Succeeds silently if the directory already exists. When parents are
    missing, the nearest existing ancestor is validated instead of the
    immediate parent.

    Args:
        path: Directory path

    Returns:
        Success message, or error message
    """
    with LogSpan(span="fs.create_directory", path=path) as s:
        try:
            guard = _get_guard()
            try:
                resolved = guard.validate(path)
            except NotFound:
                resolved = _validate_via_ancestor(guard, path)
            resolved.mkdir(parents=True, exist_ok=True)
        except _TOOL_ERRORS as e:
            return _fail(s, e)
        return f"Successfully created directory {path}"


def _validate_via_ancestor(guard: PathGuard, path: str) -> Path:
    """Validate a path whose parent is missing via its nearest existing ancestor.

    The request itself has already passed the textual check; the missing
    components below the ancestor cannot be symlinks.
    """
    absolute = Path(guard.validate_textual(path))
    ancestor = absolute.parent
    while not ancestor.exists():
        if ancestor.parent == ancestor:
            raise NotFound(f"No existing ancestor for {path}", path=path)
        ancestor = ancestor.parent
    guard.validate(str(ancestor))
    return absolute


def move_file(*, source: str, destination: str) -> str:
    """Move or rename a file or directory.

    Both paths must be inside allowed directories. Fails if the destination
    already exists.

    Args:
        source: Source path
        destination: Destination path

    Returns:
        Success message, or error message
    """
    with LogSpan(span="fs.move_file", source=source, destination=destination) as s:
        try:
            guard = _get_guard()
            src_resolved = guard.validate(source)
            dest_resolved = guard.validate(destination)
            if not src_resolved.exists():
                raise NotFound(f"Source does not exist: {source}", path=source)
            if dest_resolved.exists():
                raise ArgumentInvalid(f"Destination already exists: {destination}")
            shutil.move(str(src_resolved), str(dest_resolved))
        except _TOOL_ERRORS as e:
            return _fail(s, e)
        s.add(moved=True)
        return f"Successfully moved {source} to {destination}"
