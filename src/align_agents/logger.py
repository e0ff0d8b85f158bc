"""Logging setup for the MCP server and command-line use.

In MCP mode stdout carries the JSON-RPC stream, so records only ever go to
a file. Drift warnings, skipped tools and per-tool fleet errors all land
there.
"""

import json
import logging
import os
import sys

DEFAULT_LOG_FILE = "/tmp/align-agents.log"

_DATEFMT = "%Y-%m-%d %H:%M:%S"
_NAMED_FMT = "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"
_SHORT_FMT = "[%(asctime)s] [%(levelname)s] %(message)s"

# Chatty below WARNING: session traffic and encoding guesses.
_QUIET_LOGGERS = ("mcp", "charset_normalizer")


class JsonFormatter(logging.Formatter):
    """One JSON object per line: ``ts``, ``level``, ``logger``, ``msg``
    and, when an exception is attached, ``exc``."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _make_formatter(debug_format: str, with_name: bool) -> logging.Formatter:
    if debug_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    return logging.Formatter(_NAMED_FMT if with_name else _SHORT_FMT, datefmt=_DATEFMT)


def _resolve_level(mode: str, debug: bool) -> int:
    if debug:
        return logging.DEBUG
    default = "WARNING" if mode == "mcp" else "INFO"
    name = os.getenv("LOG_LEVEL", default).upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
) -> None:
    """Configure the root logger for *mode*.

    Args:
        mode: ``"mcp"`` logs to a file only; ``"cli"`` logs to stderr and,
            when *log_file* is given, to that file as well.
        debug: Force DEBUG regardless of ``LOG_LEVEL``.
        log_file: Log file; in MCP mode it falls back to ``LOG_FILE`` and
            then ``DEFAULT_LOG_FILE``.
        debug_format: ``"text"`` or ``"json"`` (CLI handlers only).

    Environment variables:
        LOG_LEVEL: DEBUG, INFO, WARNING or ERROR. Defaults to WARNING in
            MCP mode and INFO in CLI mode.
        LOG_FILE: MCP-mode log file.
    """
    level = _resolve_level(mode, debug)

    if mode == "mcp":
        logging.basicConfig(
            level=level,
            format=_NAMED_FMT,
            datefmt=_DATEFMT,
            filename=log_file or os.getenv("LOG_FILE", DEFAULT_LOG_FILE),
            filemode="a",
        )
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_make_formatter(debug_format, with_name=False))
        handlers: list[logging.Handler] = [stderr_handler]
        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(_make_formatter(debug_format, with_name=True))
            handlers.append(file_handler)
        logging.basicConfig(level=level, handlers=handlers)

    if level != logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
