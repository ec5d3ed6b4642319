"""
Logging configuration and utilities.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AnnotationFormatter(logging.Formatter):
    """Renders warnings and errors as CI workflow annotations."""

    COMMANDS = {
        logging.WARNING: "warning",
        logging.ERROR: "error",
        logging.CRITICAL: "error",
    }

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        command = self.COMMANDS.get(record.levelno)
        if not command:
            return message
        # Annotations are single-line; the rest of the message follows as plain output
        first, _, rest = message.partition("\n")
        annotation = f"::{command}::{first}"
        return f"{annotation}\n{rest}" if rest else annotation


def setup_root_logger(log_file: Optional[Path] = None,
                      level: str = "INFO",
                      annotate: bool = False,
                      max_file_size_mb: int = 10,
                      backup_count: int = 5):
    """
    Set up the root logger for the application.

    Args:
        log_file: Optional log file path
        level: Logging level
        annotate: Render warnings and errors as workflow annotations on the console
        max_file_size_mb: Rotate the log file at this size
        backup_count: Rotated files to keep
    """
    root_logger = logging.getLogger()

    # Clear any existing handlers
    root_logger.handlers.clear()

    root_logger.setLevel(getattr(logging, level.upper()))

    # Runner logs are already timestamped, so the console only needs the message
    console_formatter = AnnotationFormatter("%(message)s") if annotate else logging.Formatter(DEFAULT_FORMAT)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
        )
        root_logger.addHandler(_file_handler(log_file, file_formatter, max_file_size_mb, backup_count))

    # Set levels for third-party loggers
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _file_handler(log_file: Path,
                  formatter: logging.Formatter,
                  max_file_size_mb: int = 10,
                  backup_count: int = 5) -> logging.Handler:
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_file_size_mb * 1024 * 1024,
        backupCount=backup_count
    )
    handler.setFormatter(formatter)
    return handler
