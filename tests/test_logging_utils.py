from __future__ import annotations

import logging
import sys

import pytest

from hs4_mcp import config, logging_utils


@pytest.fixture(autouse=True)
def _reset_logging(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(config, "load_dotenv", lambda **_: None)
    monkeypatch.setattr(logging_utils, "_logging_configured", False)
    root = logging.getLogger()
    saved = (root.level, list(root.handlers))
    yield
    root.handlers = saved[1]
    root.setLevel(saved[0])


def test_configure_logging_writes_to_stderr(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MCP_LOG_LEVEL", "debug")

    logging_utils.configure_logging()

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert any(
        isinstance(handler, logging.StreamHandler) and handler.stream is sys.stderr
        for handler in root.handlers
    )
    assert logging.getLogger("httpx").level == logging.WARNING


def test_configure_logging_with_file(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    log_file = tmp_path / "logs" / "hs4.log"
    monkeypatch.setenv("MCP_LOG_FILE", str(log_file))

    logging_utils.configure_logging()

    assert log_file.parent.is_dir()
    assert any(isinstance(handler, logging.FileHandler) for handler in logging.getLogger().handlers)


def test_get_logger_configures_once(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[int] = []
    original = logging_utils.configure_logging

    def counting() -> None:
        calls.append(1)
        original()

    monkeypatch.setattr(logging_utils, "configure_logging", counting)

    logging_utils.get_logger("a")
    logging_utils.get_logger("b")

    assert calls == [1]
