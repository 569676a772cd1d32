"""
Structured logging configuration using structlog.

Provides consistent, structured logging across the scoring service:
- JSON output in production
- Pretty console output in development
- Request-scoped context (request_id, visitor_id) via contextvars
- Optional file output to logs/ directory (one file per process run)
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import structlog
from structlog.typing import Processor

from src.core.config import settings

LOG_FILE_PREFIX = "persona_engine_"


def _cull_old_logs(logs_dir: Path, keep: int) -> None:
    """Delete old run logs, keeping only the N most recent."""
    log_files = sorted(
        logs_dir.glob(f"{LOG_FILE_PREFIX}*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    for old_file in log_files[keep:]:
        try:
            os.remove(old_file)
        except OSError:
            pass  # Ignore permission errors, etc.


def configure_logging(
    logs_dir: Optional[Path] = Path("logs"),
    log_runs_to_keep: int = 5,
) -> None:
    """Configure structlog for the application.

    Call this once at application startup, before any logging.

    Args:
        logs_dir: Directory for per-run log files. None disables file output.
        log_runs_to_keep: Number of recent run logs to retain (default: 5)
    """
    shared_processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]

    if settings.debug:
        processors = shared_processors + [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        processors = shared_processors + [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    # Clear any existing handlers first (reconfiguration in tests/long-running processes)
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    root_logger.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    if logs_dir is not None:
        logs_dir.mkdir(parents=True, exist_ok=True)
        _cull_old_logs(logs_dir, keep=max(log_runs_to_keep - 1, 0))

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        file_handler = logging.FileHandler(
            logs_dir / f"{LOG_FILE_PREFIX}{timestamp}.log", mode="w"
        )
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from src.core.logging import get_logger

        log = get_logger(__name__)
        log.info("event_processed", visitor_id="abc")
    """
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """
    Bind context variables that will be included in all subsequent logs.

        bind_context(request_id=request_id)
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all request-scoped context variables from the logging context."""
    structlog.contextvars.clear_contextvars()
