"""Structured logging configuration using structlog.

Why this exists:
- Provides consistent, structured logging across the indexer and query engine
- Enables easy filtering of per-repository events
- Supports context injection (the repository being indexed is bound once per pass)
- Supports file output with rotation

How to use:
    from reposearch.observability.logging import get_logger

    logger = get_logger(__name__)
    logger.info("indexing_started", repository="owner/name", ref="main")
"""

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from reposearch.config.schema import LoggingConfig


class TimedRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """Midnight-rotating file handler that removes files older than max_days."""

    def __init__(self, filename: str, max_days: int = 30, **kwargs):
        super().__init__(filename, when="midnight", interval=1, **kwargs)
        self.max_days = max_days

    def doRollover(self) -> None:
        super().doRollover()
        self._cleanup_old_files()

    def _cleanup_old_files(self) -> None:
        """Remove rotated log files older than max_days."""
        base_dir, base_name = os.path.split(self.baseFilename)
        if not os.path.isdir(base_dir):
            return

        cutoff_time = datetime.now(timezone.utc).timestamp() - (self.max_days * 86400)
        for filename in os.listdir(base_dir):
            if not filename.startswith(base_name + "."):
                continue
            file_path = os.path.join(base_dir, filename)
            try:
                if os.path.getmtime(file_path) < cutoff_time:
                    os.remove(file_path)
            except OSError as e:
                logging.getLogger(__name__).warning("Failed to remove old log file %s: %s", file_path, e)


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application context to log events."""
    event_dict["app"] = "reposearch"
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_dir: Optional[Path] = None,
    max_days: int = 30,
    enable_file: bool = True,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output logs as JSON; otherwise use console format
        log_dir: Directory for log files (if None, file logging is disabled)
        max_days: Number of days to retain log files
        enable_file: Whether to enable file logging
    """
    numeric_level = getattr(logging, level.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    logger_factory: Any = structlog.PrintLoggerFactory(file=sys.stderr)

    if enable_file and log_dir:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            root_logger = logging.getLogger()
            root_logger.setLevel(numeric_level)

            for handler in root_logger.handlers[:]:
                if isinstance(handler, logging.FileHandler):
                    root_logger.removeHandler(handler)

            file_handler = TimedRotatingFileHandler(
                str(log_dir / "reposearch.log"),
                max_days=max_days,
                encoding="utf-8",
            )
            file_handler.setLevel(numeric_level)
            root_logger.addHandler(file_handler)

            logger_factory = structlog.stdlib.LoggerFactory()
        except OSError as e:
            logging.warning(f"Failed to enable file logging: {e}. Using console-only mode.")

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def configure_from_config(config: LoggingConfig) -> None:
    """Configure logging from a LoggingConfig object."""
    configure_logging(
        level=config.level.value,
        json_logs=config.json_logs,
        log_dir=config.log_dir if config.enable_file else None,
        max_days=config.max_days,
        enable_file=config.enable_file,
    )
