"""Tests for setup_logging() and JsonFormatter.

logging.basicConfig is mocked throughout: pytest's capture plugin already
owns the root logger, so the tests assert on the arguments passed instead.
"""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from align_agents.logger import DEFAULT_LOG_FILE, JsonFormatter, setup_logging


@pytest.fixture
def basic_config(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LOG_FILE", raising=False)
    with patch("align_agents.logger.logging.basicConfig") as mock_basic:
        yield mock_basic


def _kwargs(mock_basic) -> dict:
    mock_basic.assert_called_once()
    return mock_basic.call_args.kwargs


# ---------------------------------------------------------------------------
# MCP mode: stdout belongs to the JSON-RPC stream
# ---------------------------------------------------------------------------


class TestMcpMode:
    def test_default_file_and_level(self, basic_config):
        setup_logging(mode="mcp")
        kwargs = _kwargs(basic_config)
        assert kwargs["filename"] == DEFAULT_LOG_FILE
        assert kwargs["filemode"] == "a"
        assert kwargs["level"] == logging.WARNING
        assert "handlers" not in kwargs

    def test_log_file_argument(self, basic_config, tmp_path):
        setup_logging(mode="mcp", log_file=str(tmp_path / "server.log"))
        assert _kwargs(basic_config)["filename"] == str(tmp_path / "server.log")

    def test_env_log_file(self, basic_config, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_FILE", str(tmp_path / "env.log"))
        setup_logging(mode="mcp")
        assert _kwargs(basic_config)["filename"] == str(tmp_path / "env.log")

    def test_argument_beats_env(self, basic_config, monkeypatch, tmp_path):
        monkeypatch.setenv("LOG_FILE", str(tmp_path / "env.log"))
        setup_logging(mode="mcp", log_file=str(tmp_path / "cli.log"))
        assert _kwargs(basic_config)["filename"] == str(tmp_path / "cli.log")

    def test_records_include_logger_name(self, basic_config):
        setup_logging(mode="mcp")
        assert "%(name)s" in _kwargs(basic_config)["format"]


# ---------------------------------------------------------------------------
# CLI mode
# ---------------------------------------------------------------------------


class TestCliMode:
    def test_stderr_only(self, basic_config):
        setup_logging(mode="cli")
        kwargs = _kwargs(basic_config)
        (handler,) = kwargs["handlers"]
        assert isinstance(handler, logging.StreamHandler)
        assert handler.stream is sys.stderr
        assert kwargs["level"] == logging.INFO

    def test_extra_file_handler(self, basic_config, tmp_path):
        setup_logging(mode="cli", log_file=str(tmp_path / "cli.log"))
        stderr_handler, file_handler = _kwargs(basic_config)["handlers"]
        try:
            assert isinstance(file_handler, logging.FileHandler)
            assert "%(name)s" in file_handler.formatter._fmt
            assert "%(name)s" not in stderr_handler.formatter._fmt
        finally:
            file_handler.close()

    def test_json_format(self, basic_config):
        setup_logging(mode="cli", debug_format="json")
        (handler,) = _kwargs(basic_config)["handlers"]
        assert isinstance(handler.formatter, JsonFormatter)


# ---------------------------------------------------------------------------
# Levels
# ---------------------------------------------------------------------------


class TestLevels:
    def test_env_level(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        setup_logging(mode="cli")
        assert _kwargs(basic_config)["level"] == logging.ERROR

    def test_unknown_env_level_falls_back_to_info(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        setup_logging(mode="mcp")
        assert _kwargs(basic_config)["level"] == logging.INFO

    def test_debug_flag_wins(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="mcp", debug=True)
        assert _kwargs(basic_config)["level"] == logging.DEBUG

    def test_library_loggers_quietened(self, basic_config):
        logging.getLogger("mcp").setLevel(logging.NOTSET)
        logging.getLogger("charset_normalizer").setLevel(logging.NOTSET)
        setup_logging(mode="cli")
        assert logging.getLogger("mcp").level == logging.WARNING
        assert logging.getLogger("charset_normalizer").level == logging.WARNING

    def test_library_loggers_untouched_in_debug(self, basic_config):
        logging.getLogger("charset_normalizer").setLevel(logging.NOTSET)
        setup_logging(mode="cli", debug=True)
        assert logging.getLogger("charset_normalizer").level == logging.NOTSET


# ---------------------------------------------------------------------------
# JsonFormatter
# ---------------------------------------------------------------------------


def _record(msg="Synced %d servers", args=(2,), exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="align_agents.sync.engine",
        level=logging.WARNING,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=args,
        exc_info=exc_info,
    )


class TestJsonFormatter:
    def test_single_line_object(self):
        line = JsonFormatter().format(_record())
        assert "\n" not in line
        entry = json.loads(line)
        assert entry["level"] == "WARNING"
        assert entry["logger"] == "align_agents.sync.engine"
        assert entry["msg"] == "Synced 2 servers"
        assert "exc" not in entry

    def test_exception_included(self):
        try:
            raise RuntimeError("disk full")
        except RuntimeError:
            record = _record(exc_info=sys.exc_info())
        entry = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: disk full" in entry["exc"]

    def test_datefmt_applied(self):
        entry = json.loads(JsonFormatter(datefmt="%Y").format(_record()))
        assert len(entry["ts"]) == 4
