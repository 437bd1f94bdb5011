"""semantic-fs utilities."""

from sfs.utils.fileio import atomic_write_text, read_text_checked

__all__ = ["atomic_write_text", "read_text_checked"]
