"""Unit tests for sfs.guard.

Covers the textual containment check, the symlink-aware re-check, the
fallback for paths that don't exist yet, and the guard policy switches.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """An allowed root with one file in it."""
    allowed = (tmp_path / "allowed").resolve()
    allowed.mkdir()
    (allowed / "inside.txt").write_text("hello")
    return allowed


@pytest.fixture
def outside(tmp_path: Path) -> Path:
    """A directory outside the allowed root."""
    other = (tmp_path / "outside").resolve()
    other.mkdir()
    (other / "secret.txt").write_text("secret")
    return other


# =============================================================================
# Textual containment
# =============================================================================


@pytest.mark.unit
@pytest.mark.core
def test_rejects_outside_path_without_filesystem_access(root: Path, outside: Path) -> None:
    """Verify a path outside every root is denied before any realpath call."""
    from sfs.errors import AccessDenied
    from sfs.guard import PathGuard

    guard = PathGuard([str(root)])

    with patch("sfs.guard.os.path.realpath") as realpath:
        with pytest.raises(AccessDenied) as exc_info:
            guard.validate(str(outside / "secret.txt"))

    realpath.assert_not_called()
    assert "outside allowed directories" in str(exc_info.value)
    assert str(outside / "secret.txt") in str(exc_info.value)


@pytest.mark.unit
@pytest.mark.core
def test_rejects_dotdot_escape(root: Path) -> None:
    """Verify '..' components are collapsed before the containment check."""
    from sfs.errors import AccessDenied
    from sfs.guard import PathGuard

    guard = PathGuard([str(root)])

    with pytest.raises(AccessDenied):
        guard.validate(str(root / ".." / "outside" / "secret.txt"))


@pytest.mark.unit
@pytest.mark.core
def test_existing_file_returns_real_path(root: Path) -> None:
    """Verify an existing file inside the root resolves to its real path."""
    from sfs.guard import PathGuard

    result = PathGuard([str(root)]).validate(str(root / "inside.txt"))

    assert result == root / "inside.txt"


@pytest.mark.unit
@pytest.mark.core
def test_root_itself_is_allowed(root: Path) -> None:
    """Verify the allowed root directory itself validates."""
    from sfs.guard import PathGuard

    assert PathGuard([str(root)]).validate(str(root)) == root


@pytest.mark.unit
@pytest.mark.core
def test_segment_containment_rejects_sibling_with_shared_prefix(tmp_path: Path) -> None:
    """Verify root /x/foo does not admit /x/foobar in segments mode."""
    from sfs.errors import AccessDenied
    from sfs.guard import PathGuard

    base = tmp_path.resolve()
    (base / "foo").mkdir()
    (base / "foobar").mkdir()
    (base / "foobar" / "data.txt").write_text("x")

    with pytest.raises(AccessDenied):
        PathGuard([str(base / "foo")]).validate(str(base / "foobar" / "data.txt"))


@pytest.mark.unit
@pytest.mark.core
def test_prefix_containment_admits_sibling_with_shared_prefix(tmp_path: Path) -> None:
    """Verify legacy prefix mode keeps the raw string-prefix behaviour."""
    from sfs.guard import GuardPolicy, PathGuard

    base = tmp_path.resolve()
    (base / "foo").mkdir()
    (base / "foobar").mkdir()
    (base / "foobar" / "data.txt").write_text("x")

    guard = PathGuard([str(base / "foo")], GuardPolicy(containment="prefix"))

    assert guard.validate(str(base / "foobar" / "data.txt")) == base / "foobar" / "data.txt"


@pytest.mark.unit
@pytest.mark.core
def test_case_folding_is_configurable() -> None:
    """Verify case folding applies to the textual check only when enabled."""
    from sfs.guard import GuardPolicy, PathGuard

    folded = PathGuard(["/srv/Data"])
    exact = PathGuard(["/srv/Data"], GuardPolicy(case_fold=False))

    assert folded.is_allowed("/SRV/data/report.txt")
    assert not exact.is_allowed("/SRV/data/report.txt")
    assert exact.is_allowed("/srv/Data/report.txt")


# =============================================================================
# Symlink-aware re-check
# =============================================================================


@pytest.mark.unit
@pytest.mark.core
def test_symlink_to_outside_is_denied(root: Path, outside: Path) -> None:
    """Verify a symlink planted inside the root cannot reach outside it."""
    from sfs.errors import AccessDenied
    from sfs.guard import PathGuard

    link = root / "escape"
    link.symlink_to(outside)

    with pytest.raises(AccessDenied) as exc_info:
        PathGuard([str(root)]).validate(str(link / "secret.txt"))

    assert "symlink target outside allowed directories" in str(exc_info.value)


@pytest.mark.unit
@pytest.mark.core
def test_symlink_within_root_resolves_to_target(root: Path) -> None:
    """Verify a symlink pointing inside the root returns the target path."""
    from sfs.guard import PathGuard

    link = root / "alias.txt"
    link.symlink_to(root / "inside.txt")

    assert PathGuard([str(root)]).validate(str(link)) == root / "inside.txt"


@pytest.mark.unit
@pytest.mark.core
def test_new_file_under_symlinked_parent_outside_is_denied(root: Path, outside: Path) -> None:
    """Verify creating a file through a symlinked directory that escapes is denied."""
    from sfs.errors import AccessDenied
    from sfs.guard import PathGuard

    (root / "escape").symlink_to(outside)

    with pytest.raises(AccessDenied) as exc_info:
        PathGuard([str(root)]).validate(str(root / "escape" / "new.txt"))

    assert "parent directory outside allowed directories" in str(exc_info.value)


@pytest.mark.unit
@pytest.mark.core
def test_dangling_symlink_to_outside_is_denied(root: Path, outside: Path) -> None:
    """Verify writing through a dangling symlink cannot land outside the root."""
    from sfs.errors import AccessDenied
    from sfs.guard import PathGuard

    (root / "dangling.txt").symlink_to(outside / "not-yet.txt")

    with pytest.raises(AccessDenied):
        PathGuard([str(root)]).validate(str(root / "dangling.txt"))


@pytest.mark.unit
@pytest.mark.core
def test_symlink_loop_is_access_denied(root: Path) -> None:
    """Verify a self-referencing symlink chain is denied rather than raising OSError."""
    from sfs.errors import AccessDenied
    from sfs.guard import PathGuard

    (root / "loop_a").symlink_to(root / "loop_b")
    (root / "loop_b").symlink_to(root / "loop_a")
    guard = PathGuard([str(root)])

    with pytest.raises(AccessDenied, match="symlink loop"):
        guard.validate(str(root / "loop_a"))
    with pytest.raises(AccessDenied, match="symlink loop"):
        guard.validate(str(root / "loop_a" / "child.txt"))


# =============================================================================
# Paths that don't exist yet
# =============================================================================


@pytest.mark.unit
@pytest.mark.core
def test_missing_file_with_existing_parent_returns_absolute_path(root: Path) -> None:
    """Verify a not-yet-existing file returns its absolute (non-realpath) form."""
    from sfs.guard import PathGuard

    result = PathGuard([str(root)]).validate(str(root / "new.txt"))

    assert result == root / "new.txt"
    assert not result.exists()


@pytest.mark.unit
@pytest.mark.core
def test_missing_parent_raises_not_found(root: Path) -> None:
    """Verify a request whose parent directory doesn't exist raises NotFound."""
    from sfs.errors import NotFound
    from sfs.guard import PathGuard

    with pytest.raises(NotFound) as exc_info:
        PathGuard([str(root)]).validate(str(root / "missing" / "new.txt"))

    assert "Parent directory does not exist" in str(exc_info.value)
    assert exc_info.value.path == str(root / "missing")


# =============================================================================
# Input handling
# =============================================================================


@pytest.mark.unit
@pytest.mark.core
def test_relative_path_resolves_against_effective_cwd(
    root: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Verify relative paths resolve against SFS_CWD."""
    from sfs.guard import PathGuard

    monkeypatch.setenv("SFS_CWD", str(root))

    assert PathGuard([str(root)]).validate("inside.txt") == root / "inside.txt"


@pytest.mark.unit
@pytest.mark.core
def test_home_shorthand_is_expanded(root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Verify a leading ~/ expands to the home directory."""
    from sfs.guard import PathGuard

    monkeypatch.setenv("HOME", str(root))

    assert PathGuard([str(root)]).validate("~/inside.txt") == root / "inside.txt"


@pytest.mark.unit
@pytest.mark.core
def test_empty_roots_is_argument_invalid() -> None:
    """Verify validating against an empty allow-list is rejected as malformed input."""
    from sfs.errors import ArgumentInvalid
    from sfs.guard import PathGuard

    with pytest.raises(ArgumentInvalid):
        PathGuard([]).validate("/tmp/anything")


@pytest.mark.unit
@pytest.mark.core
def test_empty_path_is_argument_invalid(root: Path) -> None:
    """Verify an empty path string is rejected."""
    from sfs.errors import ArgumentInvalid
    from sfs.guard import validate_path

    with pytest.raises(ArgumentInvalid):
        validate_path("", [str(root)])


# =============================================================================
# AllowedRootSet
# =============================================================================


@pytest.mark.unit
@pytest.mark.core
def test_allowed_root_set_normalizes_and_dedupes() -> None:
    """Verify roots are normalized, de-duplicated and keep insertion order."""
    from sfs.guard import AllowedRootSet

    roots = AllowedRootSet(["/srv/b/", "/srv/a", "/srv//b", "/srv/c/../a"])

    assert roots.roots == ("/srv/b", "/srv/a")


@pytest.mark.unit
@pytest.mark.core
def test_allowed_root_set_extend_appends() -> None:
    """Verify extend returns a new set with new roots appended."""
    from sfs.guard import AllowedRootSet

    original = AllowedRootSet(["/srv/a"])
    extended = original.extend(["/srv/b", "/srv/a"])

    assert original.roots == ("/srv/a",)
    assert extended.roots == ("/srv/a", "/srv/b")


@pytest.mark.unit
@pytest.mark.core
def test_is_contained_modes() -> None:
    """Verify segment and prefix containment differ only on partial segments."""
    from sfs.guard import is_contained

    assert is_contained("/data/foo/x", "/data/foo")
    assert is_contained("/data/foo", "/data/foo")
    assert not is_contained("/data/foobar", "/data/foo")
    assert is_contained("/data/foobar", "/data/foo", "prefix")
    assert is_contained("/anything", os.sep)
