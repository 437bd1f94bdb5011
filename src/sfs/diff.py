"""Unified diff rendering for edit previews."""

from __future__ import annotations

import difflib

__all__ = ["create_two_files_patch"]

_SEPARATOR = "=" * 67
NO_NEWLINE_MARKER = "\\ No newline at end of file"


def _split_lines(text: str) -> list[str]:
    """Split on LF only, keeping terminators; a final unterminated line is kept bare."""
    lines = text.split("\n")
    tail = lines.pop()
    kept = [line + "\n" for line in lines]
    if tail:
        kept.append(tail)
    return kept


def create_two_files_patch(
    old_name: str,
    new_name: str,
    old_text: str,
    new_text: str,
    old_header: str = "original",
    new_header: str = "modified",
    *,
    context: int = 4,
) -> str:
    """Render a git-style unified diff between two full text snapshots.

    Output starts with an ``Index:`` banner followed by ``---``/``+++``
    headers carrying ``old_header``/``new_header``. Identical inputs yield
    the banner and headers only. A hunk line without a trailing newline is
    followed by a ``\\ No newline at end of file`` marker, so a change to
    the final newline alone still shows up.
    """
    hunks = difflib.unified_diff(
        _split_lines(old_text),
        _split_lines(new_text),
        fromfile=old_name,
        tofile=new_name,
        fromfiledate=old_header,
        tofiledate=new_header,
        n=context,
        lineterm="",
    )

    out: list[str] = []
    for i, line in enumerate(hunks):
        if line.endswith("\n"):
            out.append(line)
        elif i < 2 or line.startswith("@@"):
            # file and hunk headers carry no terminator with lineterm=""
            out.append(line + "\n")
        else:
            out.append(f"{line}\n{NO_NEWLINE_MARKER}\n")

    if not out:
        out = [f"--- {old_name}\t{old_header}\n", f"+++ {new_name}\t{new_header}\n"]
    if old_name == new_name:
        out = [f"Index: {old_name}\n", _SEPARATOR + "\n", *out]
    return "".join(out)
