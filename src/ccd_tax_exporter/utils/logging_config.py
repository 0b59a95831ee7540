"""Logging configuration for the CCD tax exporter.

Everything logs under the "ccd_tax_exporter" logger. The log file always
gets the full record; the console (stderr, rendered by rich) is opt-in so
it does not fight with the progress display.
"""

import logging
import time
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "ccd_tax_exporter"
DEFAULT_LOG_FILE = "ccd_tax_exporter.log"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Context keys whose values never reach the log
SENSITIVE_FIELDS = {"api_key", "token", "authorization", "secret", "password"}


def _format_context(context: dict[str, object]) -> str:
    return ", ".join(
        f"{key}={'***' if key.lower() in SENSITIVE_FIELDS else value}"
        for key, value in context.items()
    )


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = True,
) -> logging.Logger:
    """Configure the package logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Log file path, DEFAULT_LOG_FILE if None.
        console_output: Also log to stderr.

    Returns:
        The configured package logger.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(Path(log_file or DEFAULT_LOG_FILE), encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(file_handler)

    if console_output:
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            log_time_format=f"[{DATE_FORMAT}]",
        )
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a module logger nested under the package logger.

    Args:
        name: Module name (typically __name__).
    """
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


class LogContext:
    """Context manager that logs the start, duration and failure of a stage.

    Example:
        with LogContext(logger, "retrieval", accounts=2):
            ...
    """

    def __init__(self, logger: logging.Logger, stage: str, **context: object):
        self.logger = logger
        self.stage = stage
        self.context = context
        self._started = 0.0

    @property
    def elapsed(self) -> float:
        """Seconds since the stage started."""
        return time.monotonic() - self._started

    def __enter__(self) -> "LogContext":
        self._started = time.monotonic()
        self.logger.debug(f"Starting {self.stage}: {_format_context(self.context)}")
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> bool:
        if exc_type is not None:
            self.logger.error(
                f"{self.stage} failed after {self.elapsed:.2f}s: {exc_type.__name__}: {exc_val}"
            )
        else:
            self.logger.info(f"Finished {self.stage} in {self.elapsed:.2f}s")
        return False
