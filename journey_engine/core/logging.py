"""
Structured logging configuration using structlog.

Provides consistent, structured logging across the engine with:
- JSON output in production
- Pretty console output in development
- Context binding for journey tracing
- File output to the log directory (one file per run, old runs culled)
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

import structlog
from structlog.typing import Processor

from journey_engine.core.config import settings


def _cull_old_logs(logs_dir: Path, keep: int) -> List[Tuple[Path, str]]:
    """Delete old log files, keeping only the N most recent.

    Returns (path, error) for each file that could not be removed; logging
    is not configured yet at this point, so the caller reports them.
    """
    log_files = sorted(
        logs_dir.glob("journey_*.log"),
        key=lambda p: p.stat().st_mtime,
        reverse=True,
    )

    failed = []
    for old_file in log_files[keep:]:
        try:
            os.remove(old_file)
        except OSError as e:
            failed.append((old_file, str(e)))
    return failed


def configure_logging(
    log_sessions_to_keep: Optional[int] = None,
    logs_dir: Optional[Path] = None,
) -> None:
    """Configure structlog for the application.

    Call this once at startup, before any logging. Creates a new timestamped
    log file per run and culls old logs, keeping the most recent N runs.

    Args:
        log_sessions_to_keep: Number of recent run logs to retain
            (defaults to settings.log_sessions_to_keep)
        logs_dir: Directory for log files (defaults to settings.log_dir)

    Outputs:
        - Console (colored in debug, JSON otherwise)
        - File: <logs_dir>/journey_YYYYMMDD_HHMMSS.log
    """
    keep = log_sessions_to_keep or settings.log_sessions_to_keep
    logs_dir = logs_dir or settings.log_dir
    logs_dir.mkdir(parents=True, exist_ok=True)

    # keep-1 to make room for the new file
    cull_failures = _cull_old_logs(logs_dir, keep=keep - 1)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = logs_dir / f"journey_{timestamp}.log"

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

    # Clear existing handlers (reconfiguration in tests/long-running processes)
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    level = logging.DEBUG if settings.debug else logging.INFO
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file, mode="w")
    file_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(file_handler)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    log = structlog.get_logger(__name__)
    for path, error in cull_failures:
        log.debug("log_cull_failed", path=str(path), error=error)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a logger instance with the given name.

    Usage:
        from journey_engine.core.logging import get_logger

        log = get_logger(__name__)
        log.info("something_happened", key="value")
    """
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """
    Bind context variables included in all subsequent logs.

        bind_context(journey_id=journey.id)
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables from the logging context."""
    structlog.contextvars.clear_contextvars()


def unbind_context(*keys: str) -> None:
    """Remove specific keys bound via bind_context, leaving the rest intact."""
    structlog.contextvars.unbind_contextvars(*keys)
