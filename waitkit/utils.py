"""
Utility functions for waitkit.

Logging setup and attempt formatting for the CLI.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from waitkit.schemas import AttemptRecord

# Global console for pretty output
console = Console(stderr=True)


def setup_logging(
    log_level: str = "WARNING",
    log_format: str = "plain",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Set up logging for the waitkit logger tree.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "structured" (JSON lines), "pretty" (rich) or "plain"
        log_file: Also write structured logs to this file

    Returns:
        Configured logger
    """
    logger = logging.getLogger("waitkit")
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers = []  # Clear existing handlers

    if log_format == "pretty":
        console_handler: logging.Handler = RichHandler(
            console=console, rich_tracebacks=True, show_time=False
        )
    else:
        console_handler = logging.StreamHandler()
        if log_format == "structured":
            console_handler.setFormatter(StructuredFormatter())
        else:
            console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(StructuredFormatter())
        logger.addHandler(file_handler)

    return logger


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "waiter"):
            log_data["waiter"] = record.waiter
        if hasattr(record, "attempt"):
            log_data["attempt"] = record.attempt

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def format_attempt(record: AttemptRecord) -> str:
    """One-line summary of an attempt for CLI output."""
    outcome = record.outcome
    if outcome.is_error:
        seen = f"error {outcome.code}"
    else:
        seen = json.dumps(outcome.value, default=str)
        if len(seen) > 80:
            seen = seen[:77] + "..."
        if outcome.status_code is not None:
            seen = f"[{outcome.status_code}] {seen}"

    line = f"attempt {record.attempt_n}: {record.verdict.value:<7} {seen}"
    if record.acceptor is not None:
        line += f"  <- {record.acceptor.matcher.value} {record.acceptor.expected!r}"
    return line
