"""Logging setup: console output plus one rotating JSON file per log stream.

``server.log`` collects the ``server`` logger and every ``smb_vdisk.*``
module logger (validation, resolution, sessions, configuration).
``middleware.log`` collects MCP request tracking from the ``middleware``
logger. Everything also propagates to the console handler on the root logger.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter

SERVER_LOG = "server.log"
MIDDLEWARE_LOG = "middleware.log"

# Log file -> stdlib logger names routed into it
LOG_STREAMS: dict[str, tuple[str, ...]] = {
    SERVER_LOG: ("server", "smb_vdisk"),
    MIDDLEWARE_LOG: ("middleware",),
}


def setup_logging(
    log_dir: Path | str = Path("logs"),
    log_level: str | None = None,
    max_file_size_mb: int = 10,
) -> dict[str, Path]:
    """Configure structlog over stdlib logging.

    Safe to call again: file handlers installed by an earlier call are
    replaced rather than duplicated.

    Args:
        log_dir: Directory for log files
        log_level: Log level (defaults to LOG_LEVEL env var or INFO)
        max_file_size_mb: Size at which a file is truncated (no backups kept)

    Returns:
        Mapping of log file name to its path
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)
    max_bytes = max_file_size_mb * 1024 * 1024

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer()
            if sys.stdout.isatty()
            else structlog.processors.JSONRenderer()
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    paths: dict[str, Path] = {}
    for filename, logger_names in LOG_STREAMS.items():
        path = log_dir / filename
        handler = _json_file_handler(path, level, max_bytes)
        for name in logger_names:
            _replace_file_handlers(logging.getLogger(name), handler)
        paths[filename] = path

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )

    get_server_logger().info(
        "Logging system initialized",
        log_dir=str(log_dir.absolute()),
        log_level=level_name,
        max_file_size_mb=max_file_size_mb,
        **{name.replace(".", "_"): str(path) for name, path in paths.items()},
    )
    return paths


def _json_file_handler(path: Path, level: int, max_bytes: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=0, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(ProcessorFormatter(processor=structlog.processors.JSONRenderer()))
    return handler


def _replace_file_handlers(logger: logging.Logger, handler: logging.Handler) -> None:
    for old in [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]:
        logger.removeHandler(old)
        old.close()
    logger.addHandler(handler)
    logger.propagate = True


def get_server_logger() -> Any:
    """Logger for server operations (server.log)."""
    return structlog.get_logger("server")


def get_middleware_logger() -> Any:
    """Logger for MCP request tracking (middleware.log)."""
    return structlog.get_logger("middleware")
