"""Logging utilities.

Entry points (Cloud Function handlers, CLI) should call `configure_logging()`
as early as possible. Each process should call this once at startup.
"""

from __future__ import annotations

import glob
import logging
import os
from datetime import datetime
from pathlib import Path

MAX_LOG_FILES_DEFAULT = 10

def _cleanup_old_logs(log_dir: Path, max_logs: int) -> None:
    """Keep only the most recent N log files."""
    log_files = sorted(
        glob.glob(str(log_dir / "*.log")),
        key=os.path.getmtime,
        reverse=True,
    )
    for old_log in log_files[max_logs:]:
        try:
            os.remove(old_log)
        except OSError:
            pass


def configure_logging(
    *,
    service_name: str,
    level: str | None = None,
    log_dir: str | None = None,
    max_log_files: int = MAX_LOG_FILES_DEFAULT,
) -> logging.Logger:
    """Configure root logging with console and optional file output.

    Cloud Functions only allow writes under /tmp, so the file handler is
    opt-in: it is added when `log_dir` or the LOG_DIR env var is set.

    Args:
        service_name: Name of the service/component.
        level: Log level (defaults to LOG_LEVEL env var or INFO).
        log_dir: Directory for log files (defaults to LOG_DIR env var).
        max_log_files: Maximum number of log files to retain.

    Returns:
        Configured logger instance.
    """
    resolved_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_level = getattr(logging, resolved_level, logging.INFO)

    # Configure root logger
    root_logger = logging.getLogger()

    # Clear existing handlers to allow reconfiguration
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    formatter = logging.Formatter(
        "%(asctime)s (%(levelname)s) | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    resolved_dir = log_dir or os.getenv("LOG_DIR", "").strip()
    if resolved_dir:
        log_path = Path(resolved_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"{service_name}_{timestamp}.log"

        # Cleanup old logs before creating new one
        _cleanup_old_logs(log_path, max(max_log_files - 1, 0))

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return logging.getLogger(service_name)


class ProgressReporter:
    """Periodic throughput lines for long streaming passes.

    Sampling only: `update()` never changes what the caller writes.
    `every=0` disables reporting.
    """

    def __init__(
        self,
        logger: logging.Logger,
        *,
        every: int = 10_000,
        level: int | str = logging.DEBUG,
        tag: str = "[Export]",
    ) -> None:
        if isinstance(level, str):
            level = getattr(logging, level.upper(), logging.DEBUG)
        self._logger = logger
        self._every = max(0, every)
        self._level = level
        self._tag = tag

    @property
    def every(self) -> int:
        return self._every

    def update(self, count: int, elapsed_seconds: float) -> bool:
        """Log progress if `count` hits the cadence. Returns True when a line was emitted."""
        if not self._every or count % self._every:
            return False
        if not self._logger.isEnabledFor(self._level):
            return False
        rate = count / elapsed_seconds if elapsed_seconds > 0 else 0.0
        self._logger.log(
            self._level,
            f"{self._tag} Written {count} entries ({rate:.0f} entries/sec)",
        )
        return True
