"""
Tests for structured logging.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Generator

import pytest
from rich.logging import RichHandler

from nscache.clients import InMemoryClient
from nscache.logging import (
    JSONFormatter,
    get_logger,
    get_namespace,
    get_operation,
    log_context,
    set_log_level,
    setup_logging,
)
from nscache.proxy import PrefixingCacheProxy


@pytest.fixture
def log_file(tmp_path: Path) -> Generator[Path, None, None]:
    """Route nscache logs at DEBUG to a JSON lines file."""
    path = tmp_path / "logs" / "nscache.jsonl"
    setup_logging(log_level="DEBUG", log_file=path, console_output=False)
    yield path
    setup_logging()


@pytest.fixture
def restore_logging() -> Generator[None, None, None]:
    """Put the default logging setup back after the test."""
    yield
    setup_logging()


def _read(path: Path) -> list[dict[str, object]]:
    for handler in logging.getLogger("nscache").handlers:
        handler.flush()
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


class TestLogContext:
    """Test scoped context variables."""

    def test_context_is_restored(self) -> None:
        with log_context(namespace="foo", operation="get"):
            assert get_namespace() == "foo"
            assert get_operation() == "get"
            with log_context(operation="set"):
                assert get_namespace() == "foo"
                assert get_operation() == "set"
            assert get_operation() == "get"
        assert get_namespace() is None
        assert get_operation() is None


class TestJSONFormatter:
    """Test JSON output."""

    def test_format_includes_context(self) -> None:
        record = logging.LogRecord("nscache.test", logging.INFO, __file__, 1, "hello", (), None)
        with log_context(namespace="", operation="delete"):
            payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "hello"
        assert payload["namespace"] == ""
        assert payload["operation"] == "delete"


class TestContextLogger:
    """Test the context-aware logger."""

    def test_name_is_namespaced(self) -> None:
        assert get_logger("custom").name == "nscache.custom"
        assert get_logger("nscache.proxy").name == "nscache.proxy"

    def test_keyword_context_written_to_file(self, log_file: Path) -> None:
        get_logger("nscache.test").info("stored", key_count=3)

        entry = _read(log_file)[-1]
        assert entry["message"] == "stored"
        assert entry["extra"] == {"key_count": 3}

    def test_proxy_logs_forwarded_operations(self, log_file: Path) -> None:
        proxy = PrefixingCacheProxy("foo", InMemoryClient())
        proxy.set_multi({"a": 1})
        proxy.flush()

        entries = _read(log_file)
        batch = next(e for e in entries if e.get("operation") == "set_multi")
        assert batch["namespace"] == "foo"
        assert batch["extra"]["batch"] is True
        assert any(e.get("operation") == "flush" for e in entries)


class TestLogLevel:
    """Test applying the configured log level."""

    def test_set_log_level_keeps_file_handler(self, log_file: Path) -> None:
        set_log_level("ERROR")
        nscache_logger = logging.getLogger("nscache")

        assert nscache_logger.level == logging.ERROR
        assert [h.level for h in nscache_logger.handlers] == [logging.DEBUG]

    def test_from_settings_applies_log_level(
        self, monkeypatch: pytest.MonkeyPatch, restore_logging: None
    ) -> None:
        monkeypatch.setenv("CACHE_BACKEND", "memory")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        PrefixingCacheProxy.from_settings()

        nscache_logger = logging.getLogger("nscache")
        assert nscache_logger.level == logging.DEBUG
        assert get_logger("nscache.proxy").isEnabledFor(logging.DEBUG)
        rich_levels = [h.level for h in nscache_logger.handlers if isinstance(h, RichHandler)]
        assert rich_levels == [logging.DEBUG]
