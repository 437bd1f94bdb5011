"""Unit tests for LogSpan and logging setup."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path


@pytest.fixture
def records() -> Generator[list[dict], None, None]:
    """Capture Loguru records emitted during a test."""
    captured: list[dict] = []
    handler_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(handler_id)


@pytest.mark.unit
@pytest.mark.core
def test_span_logs_attributes_at_info(records: list[dict]) -> None:
    """Verify a clean span logs once at INFO with its attributes bound."""
    from sfs.logging import LogSpan

    with LogSpan(span="fs.read_file", path="/srv/a.txt") as s:
        s.add(resultLen=12)

    spans = [r for r in records if r["extra"].get("span") == "fs.read_file"]
    assert len(spans) == 1
    assert spans[0]["level"].name == "INFO"
    assert spans[0]["extra"]["path"] == "/srv/a.txt"
    assert spans[0]["extra"]["resultLen"] == 12


@pytest.mark.unit
@pytest.mark.core
def test_span_error_attribute_raises_level(records: list[dict]) -> None:
    """Verify an error attribute logs the span at WARNING."""
    from sfs.logging import LogSpan

    with LogSpan(span="fs.write_file") as s:
        s.add("error", "AccessDenied: nope")

    span = next(r for r in records if r["extra"].get("span") == "fs.write_file")
    assert span["level"].name == "WARNING"


@pytest.mark.unit
@pytest.mark.core
def test_span_records_escaping_exception(records: list[dict]) -> None:
    """Verify an exception escaping the block is logged and propagated."""
    from sfs.logging import LogSpan

    with pytest.raises(RuntimeError), LogSpan(span="patch.apply"):
        raise RuntimeError("boom")

    span = next(r for r in records if r["extra"].get("span") == "patch.apply")
    assert span["level"].name == "WARNING"
    assert span["extra"]["error"] == "RuntimeError: boom"


@pytest.mark.unit
@pytest.mark.core
def test_configure_logging_writes_file_sink(tmp_path: Path) -> None:
    """Verify configure_logging() adds a file sink under the log directory."""
    from sfs.logging import configure_logging

    log_file = configure_logging("unit", level="DEBUG", log_dir=tmp_path / "logs")
    try:
        logger.info("hello from test")
        logger.complete()
    finally:
        logger.remove()

    assert log_file == tmp_path / "logs" / "unit.log"
    assert "hello from test" in log_file.read_text()
