"""Patch engine: apply ordered, fuzzy text edits to a document.

Each edit is located in the document produced by all edits before it:

1. Exact tier: ``old_text`` occurs verbatim, the first occurrence is replaced.
2. Fuzzy tier: a window of ``len(old_lines)`` slides over the document's
   lines; the first window whose lines equal ``old_lines`` after stripping
   surrounding whitespace is replaced, with indentation reconciled against
   the document's original indentation.

If any edit fails to match, the whole request fails with ``MatchNotFound``
and nothing is persisted.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from functools import reduce
from pathlib import Path
from typing import Any

from sfs.errors import ArgumentInvalid, MatchNotFound
from sfs.logging import LogSpan
from sfs.utils.fileio import atomic_write_text, read_text_checked

__all__ = [
    "DocumentState",
    "EditOperation",
    "EditResult",
    "PatchEngine",
    "apply_edit",
    "apply_edits",
    "coerce_edits",
    "leading_whitespace",
    "normalize_line_endings",
]


def normalize_line_endings(text: str) -> str:
    """Convert CRLF line endings to LF."""
    return text.replace("\r\n", "\n")


def leading_whitespace(line: str) -> str:
    return line[: len(line) - len(line.lstrip())]


@dataclass(frozen=True, slots=True)
class EditOperation:
    """A single ``old_text`` -> ``new_text`` replacement."""

    old_text: str
    new_text: str

    @classmethod
    def from_value(cls, value: Any, index: int = 0) -> EditOperation:
        """Build an edit from an EditOperation, a mapping, or a 2-tuple.

        Mappings may use the wire names ``oldText``/``newText`` or
        ``old_text``/``new_text``.

        Raises:
            ArgumentInvalid: If the value has the wrong shape or types
        """
        if isinstance(value, EditOperation):
            old_text, new_text = value.old_text, value.new_text
        elif isinstance(value, Mapping):
            old_text = value.get("oldText", value.get("old_text"))
            new_text = value.get("newText", value.get("new_text"))
        elif isinstance(value, Sequence) and not isinstance(value, str) and len(value) == 2:
            old_text, new_text = value
        else:
            raise ArgumentInvalid(f"Edit #{index + 1} must be an object with oldText and newText")

        if not isinstance(old_text, str) or not isinstance(new_text, str):
            raise ArgumentInvalid(f"Edit #{index + 1} is missing 'oldText' or 'newText' text")
        if not old_text:
            raise ArgumentInvalid(f"Edit #{index + 1} has an empty 'oldText'")
        return cls(old_text, new_text)

    def normalized(self) -> EditOperation:
        return EditOperation(
            normalize_line_endings(self.old_text),
            normalize_line_endings(self.new_text),
        )

    def inverted(self) -> EditOperation:
        return EditOperation(self.new_text, self.old_text)


def coerce_edits(edits: Iterable[Any] | None) -> tuple[EditOperation, ...]:
    """Validate an edit list up front, before any edit is applied."""
    if edits is None or isinstance(edits, (str, bytes, Mapping)):
        raise ArgumentInvalid("Edits must be a list of {oldText, newText} objects")
    return tuple(EditOperation.from_value(edit, i) for i, edit in enumerate(edits))


@dataclass(frozen=True, slots=True)
class DocumentState:
    """Immutable, LF-normalized document text.

    ``applied`` counts the edits folded into this state.
    """

    text: str
    applied: int = 0

    @classmethod
    def from_content(cls, content: str) -> DocumentState:
        return cls(normalize_line_endings(content))

    @property
    def lines(self) -> list[str]:
        return self.text.split("\n")


def _find_fuzzy_window(content_lines: list[str], old_lines: list[str]) -> int | None:
    stripped_old = [line.strip() for line in old_lines]
    width = len(old_lines)
    for i in range(len(content_lines) - width + 1):
        if all(
            content_lines[i + j].strip() == stripped_old[j] for j in range(width)
        ):
            return i
    return None


def _reconcile_indentation(
    new_lines: list[str], old_lines: list[str], original_indent: str
) -> list[str]:
    reconciled = []
    for j, line in enumerate(new_lines):
        if j == 0:
            reconciled.append(original_indent + line.lstrip())
            continue
        old_indent = leading_whitespace(old_lines[j]) if j < len(old_lines) else ""
        new_indent = leading_whitespace(line)
        if old_indent and new_indent:
            relative = max(0, len(new_indent) - len(old_indent))
            reconciled.append(original_indent + " " * relative + line.lstrip())
        else:
            reconciled.append(line)
    return reconciled


def apply_edit(state: DocumentState, edit: EditOperation) -> DocumentState:
    """Apply one edit to a document state, returning the next state.

    Raises:
        MatchNotFound: If ``edit.old_text`` matches under neither tier
    """
    old_text = normalize_line_endings(edit.old_text)
    new_text = normalize_line_endings(edit.new_text)

    if old_text in state.text:
        return DocumentState(state.text.replace(old_text, new_text, 1), state.applied + 1)

    old_lines = old_text.split("\n")
    content_lines = state.lines
    start = _find_fuzzy_window(content_lines, old_lines)
    if start is None:
        raise MatchNotFound(edit.old_text, state.applied)

    original_indent = leading_whitespace(content_lines[start])
    replacement = _reconcile_indentation(new_text.split("\n"), old_lines, original_indent)
    content_lines[start : start + len(old_lines)] = replacement
    return DocumentState("\n".join(content_lines), state.applied + 1)


def apply_edits(content: str, edits: Iterable[Any]) -> DocumentState:
    """Fold an ordered edit list over ``content``.

    Each edit sees the result of every edit before it. The edit list is
    validated in full before the first edit is applied.

    Raises:
        ArgumentInvalid: If the edit list is malformed
        MatchNotFound: If any edit fails to match
    """
    operations = coerce_edits(edits)
    return reduce(apply_edit, operations, DocumentState.from_content(content))


@dataclass(frozen=True, slots=True)
class EditResult:
    """Outcome of an edit request.

    ``original`` is the LF-normalized content before the first edit;
    ``modified`` is the fully applied document.
    """

    path: Path
    original: str
    modified: str
    edits: int
    persisted: bool

    @property
    def changed(self) -> bool:
        return self.original != self.modified


class PatchEngine:
    """Read a file, apply edits, and persist the result unless dry-running."""

    def __init__(self, *, encoding: str = "utf-8", max_file_size: int | None = None) -> None:
        self.encoding = encoding
        self.max_file_size = max_file_size

    @classmethod
    def from_config(cls, file_config: Any) -> PatchEngine:
        return cls(encoding=file_config.encoding, max_file_size=file_config.max_file_size)

    def apply_file(self, path: Path, edits: Iterable[Any], *, dry_run: bool = False) -> EditResult:
        """Apply edits to the file at an already validated ``path``.

        The file is rewritten in full, with LF line endings, only after every
        edit has matched. A dry run never touches the file.

        Raises:
            ArgumentInvalid: If the edit list is malformed
            MatchNotFound: If any edit fails to match
            OSError: If the file can't be read or written
        """
        operations = coerce_edits(edits)
        with LogSpan(span="patch.apply", path=str(path), edits=len(operations), dryRun=dry_run) as s:
            content = read_text_checked(path, encoding=self.encoding, max_size=self.max_file_size)
            original = DocumentState.from_content(content)
            result = reduce(apply_edit, operations, original)

            if not dry_run:
                atomic_write_text(path, result.text, encoding=self.encoding)

            s.add(applied=result.applied, changed=result.text != original.text)
            return EditResult(
                path=path,
                original=original.text,
                modified=result.text,
                edits=result.applied,
                persisted=not dry_run,
            )
