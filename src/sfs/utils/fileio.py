"""Text file I/O helpers shared by the patch engine and the fs tools."""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

__all__ = ["atomic_write_text", "read_text_checked"]


def read_text_checked(path: Path, *, encoding: str = "utf-8", max_size: int | None = None) -> str:
    """Read a whole text file, refusing files above ``max_size`` bytes.

    Raises:
        OSError: If the file can't be read or exceeds the size limit
        UnicodeDecodeError: If the file is not valid in ``encoding``
    """
    if max_size is not None:
        size = path.stat().st_size
        if size > max_size:
            raise OSError(
                f"File too large: {size / 1_000_000:.1f}MB (max: {max_size / 1_000_000:.1f}MB)"
            )
    # newline="" keeps CRLF intact so callers decide how to normalize
    with path.open("r", encoding=encoding, newline="") as f:
        return f.read()


def atomic_write_text(path: Path, content: str, *, encoding: str = "utf-8") -> int:
    """Replace a file's content via a temp file in the same directory.

    Preserves the permission bits of an existing file.

    Returns:
        Number of bytes written
    """
    data = content.encode(encoding)
    fd, temp_path = tempfile.mkstemp(
        dir=str(path.parent),
        prefix=".tmp_",
        suffix=path.suffix,
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        if path.exists():
            shutil.copymode(str(path), temp_path)
        Path(temp_path).replace(path)
    except Exception:
        temp = Path(temp_path)
        if temp.exists():
            temp.unlink()
        raise
    return len(data)
