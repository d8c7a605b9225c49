"""Logging setup for the CLI and the MCP server.

The MCP server speaks JSON-RPC on stdout, so in ``mcp`` mode log records
only ever go to a file.  The CLI logs to stderr and, optionally, a file.
"""

import json
import logging
import os
import sys

DEFAULT_MCP_LOG_FILE = "/tmp/infoflow-sync.log"

# Third-party loggers that are noisy below WARNING.
_NOISY_LOGGERS = ("urllib3", "requests", "charset_normalizer", "mcp")

_TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
_NAMED_TEXT_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON line.

    Keys: ``ts``, ``level``, ``logger``, ``msg``, plus ``exc`` (the
    formatted traceback) for records logged with exception info.
    """

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


def _resolve_level(mode: str, debug: bool) -> int:
    if debug:
        return logging.DEBUG
    fallback = "WARNING" if mode == "mcp" else "INFO"
    name = os.getenv("LOG_LEVEL", fallback).upper()
    return getattr(logging, name, logging.INFO)


def _cli_handlers(
    log_file: str | None, debug_format: str
) -> list[logging.Handler]:
    stderr = logging.StreamHandler(sys.stderr)
    handlers: list[logging.Handler] = [stderr]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a"))

    for handler in handlers:
        if debug_format == "json":
            handler.setFormatter(JsonFormatter(datefmt=_DATEFMT))
        elif handler is stderr:
            handler.setFormatter(logging.Formatter(_TEXT_FORMAT, _DATEFMT))
        else:
            # Log files are shared between runs; keep the module name.
            handler.setFormatter(
                logging.Formatter(_NAMED_TEXT_FORMAT, _DATEFMT)
            )
    return handlers


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
) -> None:
    """
    Configure the root logger for *mode*.

    Args:
        mode: ``"mcp"`` logs to a file only; ``"cli"`` logs to stderr.
        debug: Force DEBUG, whatever LOG_LEVEL says.
        log_file: Log file; in MCP mode it wins over LOG_FILE.
        debug_format: ``"text"`` or ``"json"`` (CLI handlers only).

    Environment variables:
        LOG_LEVEL: DEBUG, INFO, WARNING or ERROR.  WARNING by default for
                   the MCP server, INFO for the CLI.
        LOG_FILE: MCP log file, default /tmp/infoflow-sync.log
    """
    level = _resolve_level(mode, debug)

    if mode == "mcp":
        logging.basicConfig(
            level=level,
            format=_TEXT_FORMAT,
            datefmt=_DATEFMT,
            filename=log_file or os.getenv("LOG_FILE", DEFAULT_MCP_LOG_FILE),
            filemode="a",
        )
    else:
        logging.basicConfig(
            level=level, handlers=_cli_handlers(log_file, debug_format)
        )

    if level != logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
