"""Logging configuration for Kube Volume MCP with dual output (console + files)."""

import logging
import os
import sys
from collections.abc import Callable
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog


def setup_logging(
    log_dir: Path | str | None = Path("logs"),
    log_level: str | None = None,
    max_file_size_mb: int = 10,
) -> None:
    """Setup dual logging system: console + files with automatic truncation.

    Creates two log files when ``log_dir`` is given:
    - mcp_server.log: Volume operations and server lifecycle
    - middleware.log: Middleware request/response tracking

    Args:
        log_dir: Directory for log files (console only when None)
        log_level: Log level (defaults to LOG_LEVEL env var or INFO)
        max_file_size_mb: Max file size before truncation (no backup files kept)
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    log_level_num = getattr(logging, log_level.upper(), logging.INFO)
    max_bytes = max_file_size_mb * 1024 * 1024

    # Clear any existing handlers to prevent duplicates
    logging.getLogger().handlers.clear()

    from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter

    renderer = (
        structlog.dev.ConsoleRenderer()
        if sys.stdout.isatty()
        else structlog.processors.JSONRenderer()
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level_num)
    console_handler.setFormatter(ProcessorFormatter(processor=renderer))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_num)
    root_logger.addHandler(console_handler)

    file_targets: dict[str, str] = {}
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        for logger_name, file_name in (("server", "mcp_server.log"), ("middleware", "middleware.log")):
            file_handler = RotatingFileHandler(
                log_dir / file_name,
                maxBytes=max_bytes,
                backupCount=0,  # truncate, keep no backups
                encoding="utf-8",
            )
            file_handler.setLevel(log_level_num)
            file_handler.setFormatter(
                ProcessorFormatter(processor=structlog.processors.JSONRenderer())
            )
            named_logger = logging.getLogger(logger_name)
            named_logger.addHandler(file_handler)
            named_logger.propagate = True  # Also send to console via root logger
            file_targets[logger_name] = str(log_dir / file_name)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger("server")
    logger.info(
        "Logging system initialized",
        log_dir=str(log_dir) if log_dir is not None else None,
        log_level=log_level,
        max_file_size_mb=max_file_size_mb,
        **file_targets,
    )


def get_server_logger() -> Any:
    """Get logger for volume operations (writes to mcp_server.log)."""
    return structlog.get_logger("server")


def get_middleware_logger() -> Any:
    """Get logger for middleware operations (writes to middleware.log)."""
    return structlog.get_logger("middleware")


class ProgressReporter:
    """Narrates orchestration steps as human-readable lines.

    Each line is logged with its structured context, kept in ``lines`` for the
    final tool response and forwarded to an optional callback for live display.
    A failing callback is warned about and otherwise ignored.
    """

    def __init__(
        self,
        operation: str,
        callback: Callable[[str], None] | None = None,
        **context: Any,
    ):
        self.logger = structlog.get_logger("server").bind(operation=operation, **context)
        self.callback = callback
        self.lines: list[str] = []

    def _emit(self, line: str, level: str, **fields: Any) -> None:
        self.lines.append(line)
        getattr(self.logger, level)(line, **fields)
        if self.callback:
            try:
                self.callback(line)
            except Exception as e:
                self.logger.warning("Progress callback failed", error=str(e))

    def step(self, message: str, **fields: Any) -> None:
        self._emit(f"➡️  {message}", "info", **fields)

    def success(self, message: str, **fields: Any) -> None:
        self._emit(f"✅ {message}", "info", **fields)

    def warn(self, message: str, **fields: Any) -> None:
        self._emit(f"⚠️  {message}", "warning", **fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(f"❌ {message}", "error", **fields)

    def detail(self, message: str, **fields: Any) -> None:
        self._emit(f"    └─ {message}", "debug", **fields)
