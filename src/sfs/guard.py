"""Path containment guard.

Every file operation resolves its path through ``PathGuard.validate`` first.
Validation runs in two phases:

1. A purely textual check: the absolute, normalized request must lie under
   one of the allowed roots. Rejected paths are never stat'd.
2. A symlink-aware re-check on the real path, or on the parent directory's
   real path when the target does not exist yet (e.g. a file about to be
   created).

The result is a point-in-time answer. Nothing prevents a symlink from being
swapped between validation and the subsequent read or write.
"""

from __future__ import annotations

import errno
import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from loguru import logger

from sfs.errors import AccessDenied, ArgumentInvalid, NotFound
from sfs.paths import absolutize

__all__ = [
    "AllowedRootSet",
    "GuardPolicy",
    "PathGuard",
    "is_contained",
    "normalize_path",
    "validate_path",
]


@dataclass(frozen=True, slots=True)
class GuardPolicy:
    """How paths are compared against allowed roots.

    Attributes:
        case_fold: Fold case before comparing. On by default to match the
            legacy behaviour, which means two paths differing only in case are
            treated as the same on case-sensitive filesystems too.
        containment: "segments" requires the root to be a whole-segment prefix
            of the request; "prefix" is a raw string-prefix test, under which
            root ``/data/foo`` also admits ``/data/foobar``.
    """

    case_fold: bool = True
    containment: Literal["segments", "prefix"] = "segments"

    @classmethod
    def from_config(cls, guard_config: object) -> GuardPolicy:
        return cls(
            case_fold=getattr(guard_config, "case_fold", True),
            containment=getattr(guard_config, "containment", "segments"),
        )


def normalize_path(path: str, *, case_fold: bool = True) -> str:
    """Normalize an absolute path for comparison.

    Collapses redundant separators and ``..`` components, then optionally
    folds case.
    """
    normalized = os.path.normpath(path)
    return normalized.lower() if case_fold else normalized


def is_contained(normalized: str, normalized_root: str, containment: str = "segments") -> bool:
    """Check whether a normalized path lies within a normalized root."""
    if containment == "prefix":
        return normalized.startswith(normalized_root)
    if normalized == normalized_root:
        return True
    return normalized.startswith(normalized_root.rstrip(os.sep) + os.sep)


class AllowedRootSet:
    """Ordered, de-duplicated set of absolute, normalized root directories.

    Values are immutable; ``extend`` returns a new set with the new roots
    appended after the existing ones.
    """

    __slots__ = ("_roots",)

    def __init__(self, roots: Iterable[str] = ()) -> None:
        ordered: dict[str, None] = {}
        for root in roots:
            ordered.setdefault(absolutize(root), None)
        self._roots: tuple[str, ...] = tuple(ordered)

    @property
    def roots(self) -> tuple[str, ...]:
        return self._roots

    def extend(self, roots: Iterable[str]) -> AllowedRootSet:
        return AllowedRootSet((*self._roots, *roots))

    def normalized(self, *, case_fold: bool = True) -> tuple[str, ...]:
        return tuple(normalize_path(root, case_fold=case_fold) for root in self._roots)

    def __iter__(self) -> Iterator[str]:
        return iter(self._roots)

    def __len__(self) -> int:
        return len(self._roots)

    def __bool__(self) -> bool:
        return bool(self._roots)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AllowedRootSet):
            return NotImplemented
        return self._roots == other._roots

    def __hash__(self) -> int:
        return hash(self._roots)

    def __repr__(self) -> str:
        return f"AllowedRootSet({list(self._roots)!r})"


def _strict_realpath(path: str, *, requested: str) -> str:
    """``realpath(strict=True)`` with symlink loops reported as AccessDenied.

    A looping path has no real path, so containment can't be proven.
    """
    try:
        return os.path.realpath(path, strict=True)
    except OSError as e:
        if e.errno != errno.ELOOP:
            raise
        raise AccessDenied(
            f"Access denied - symlink loop while resolving {path}",
            path=requested,
        ) from e


class PathGuard:
    """Validate requested paths against an explicit set of allowed roots."""

    def __init__(self, roots: AllowedRootSet | Iterable[str], policy: GuardPolicy | None = None) -> None:
        self.roots = roots if isinstance(roots, AllowedRootSet) else AllowedRootSet(roots)
        self.policy = policy or GuardPolicy()
        self._normalized_roots = self.roots.normalized(case_fold=self.policy.case_fold)

    def is_allowed(self, path: str) -> bool:
        """Textual containment check of an absolute path. No filesystem access."""
        normalized = normalize_path(path, case_fold=self.policy.case_fold)
        return any(
            is_contained(normalized, root, self.policy.containment)
            for root in self._normalized_roots
        )

    def validate_textual(self, requested: str) -> str:
        """Expand, absolutize and check containment without touching the filesystem.

        Returns:
            The absolute, normalized form of the request

        Raises:
            ArgumentInvalid: Empty path or no allowed roots configured
            AccessDenied: Path outside every allowed root
        """
        if not isinstance(requested, str) or not requested:
            raise ArgumentInvalid("Path must be a non-empty string")
        if not self.roots:
            raise ArgumentInvalid("No allowed directories configured")

        absolute = absolutize(requested)

        if not self.is_allowed(absolute):
            logger.debug(f"Denied {absolute}: outside allowed directories")
            raise AccessDenied(
                f"Access denied - path outside allowed directories: "
                f"{absolute} not in {', '.join(self.roots)}",
                path=absolute,
            )
        return absolute

    def validate(self, requested: str) -> Path:
        """Resolve ``requested`` to a path proven to lie inside an allowed root.

        Args:
            requested: Path as supplied by the caller (may be relative or use ``~``)

        Returns:
            The symlink-free real path when the target exists, otherwise the
            absolute form of the request. Callers must not assume it exists.

        Raises:
            ArgumentInvalid: Empty path or no allowed roots configured
            AccessDenied: Path, real path or parent real path outside every root,
                or a symlink loop on the way
            NotFound: Neither the target nor its parent directory exists
        """
        absolute = self.validate_textual(requested)

        try:
            real_path = _strict_realpath(absolute, requested=absolute)
        except (FileNotFoundError, NotADirectoryError):
            return Path(self._validate_missing(absolute))

        if not self.is_allowed(real_path):
            logger.debug(f"Denied {absolute}: resolves to {real_path}")
            raise AccessDenied(
                "Access denied - symlink target outside allowed directories",
                path=absolute,
            )
        return Path(real_path)

    def _validate_missing(self, absolute: str) -> str:
        # A dangling symlink does not exist either, but writing through it
        # would land on its target.
        if os.path.islink(absolute):
            link_target = os.path.realpath(absolute)
            if not self.is_allowed(link_target):
                logger.debug(f"Denied {absolute}: dangling link to {link_target}")
                raise AccessDenied(
                    "Access denied - symlink target outside allowed directories",
                    path=absolute,
                )

        parent = os.path.dirname(absolute)
        try:
            real_parent = _strict_realpath(parent, requested=absolute)
        except (FileNotFoundError, NotADirectoryError) as e:
            raise NotFound(f"Parent directory does not exist: {parent}", path=parent) from e

        if not self.is_allowed(real_parent):
            logger.debug(f"Denied {absolute}: parent resolves to {real_parent}")
            raise AccessDenied(
                "Access denied - parent directory outside allowed directories",
                path=absolute,
            )
        return absolute


def validate_path(
    requested: str,
    roots: AllowedRootSet | Iterable[str],
    policy: GuardPolicy | None = None,
) -> Path:
    """Validate a single path; see ``PathGuard.validate``."""
    return PathGuard(roots, policy).validate(requested)
