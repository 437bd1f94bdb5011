"""Structured logging for semantic-fs.

Built on Loguru. The MCP stdio transport owns stdout, so the default
stderr handler is removed and logs go to a file sink under the configured
log directory.

Usage:
    from sfs.logging import LogSpan, configure_logging

    configure_logging(log_name="serve")

    with LogSpan(span="fs.read_file", path=path) as s:
        ...
        s.add(bytes=len(content))
"""

from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

__all__ = ["LogSpan", "configure_logging"]

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"
)


def configure_logging(
    log_name: str = "serve",
    *,
    level: str | None = None,
    log_dir: Path | None = None,
) -> Path | None:
    """Configure Loguru sinks for a semantic-fs process.

    Removes Loguru's default console handler and writes to
    ``<log_dir>/<log_name>.log``. When no log directory can be resolved
    (or created) logging falls back to stderr.

    Args:
        log_name: Base name of the log file (e.g. "serve")
        level: Log level, defaults to the configured ``log_level``
        log_dir: Directory for log files, defaults to the configured ``log_dir``

    Returns:
        Path to the log file, or None when logging to stderr
    """
    if level is None or log_dir is None:
        from sfs.config import get_config

        config = get_config()
        level = level or config.log_level
        log_dir = log_dir or config.get_log_dir_path()

    logger.remove()

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        logger.add(sys.stderr, level=level, format=LOG_FORMAT)
        return None

    log_file = log_dir / f"{log_name}.log"
    logger.add(
        str(log_file),
        level=level,
        format=LOG_FORMAT,
        rotation="10 MB",
        retention=5,
        enqueue=True,
    )
    return log_file


class LogSpan:
    """A structured logging span with timing and attributes.

    Emits a single log line when the span closes. An ``error`` attribute
    or an exception escaping the block raises the level to WARNING.
    """

    def __init__(self, span: str, **attrs: Any) -> None:
        self.span = span
        self.attrs: dict[str, Any] = dict(attrs)
        self.start_time = time.perf_counter()

    def add(self, key: str | None = None, value: Any = None, **attrs: Any) -> LogSpan:
        """Add attributes to the span.

        Supports both positional and keyword styles:
            s.add("count", 3)
            s.add(count=3, cached=False)
        """
        if key is not None:
            self.attrs[key] = value
        self.attrs.update(attrs)
        return self

    @property
    def elapsed_ms(self) -> float:
        return round((time.perf_counter() - self.start_time) * 1000, 2)

    def __enter__(self) -> LogSpan:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc is not None:
            self.attrs["error"] = f"{type(exc).__name__}: {exc}"

        level = "WARNING" if "error" in self.attrs else "INFO"
        logger.bind(span=self.span, **self.attrs).opt(depth=1).log(
            level,
            "{span} ({elapsed}ms) {attrs}",
            span=self.span,
            elapsed=self.elapsed_ms,
            attrs=self.attrs,
        )
