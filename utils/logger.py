import logging
import os
from typing import Optional

from tqdm import tqdm

LOGGER_NAME = "playlist_exporter"

CONSOLE_LOG_FORMAT = "%(message)s"
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Package loggers that should share the console/file handlers.
LIBRARY_LOGGERS = ("spotify_api",)

_logger = logging.getLogger(LOGGER_NAME)


class TqdmLoggingHandler(logging.Handler):
    """Console handler that writes through tqdm.write() so progress bars stay intact."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record))
            self.flush()
        except Exception:
            self.handleError(record)


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Configure console (and optional file) logging. Safe to call more than once."""
    handlers = [TqdmLoggingHandler()]
    handlers[0].setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT))

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT))
        handlers.append(file_handler)

    for name in (LOGGER_NAME,) + LIBRARY_LOGGERS:
        logger = logging.getLogger(name)
        logger.handlers.clear()
        for handler in handlers:
            logger.addHandler(handler)
        logger.setLevel(level)
        logger.propagate = False

    return _logger


def log_info(message: str) -> None:
    _logger.info(message)


def log_success(message: str) -> None:
    _logger.info(f"✅ {message}")


def log_warning(message: str) -> None:
    _logger.warning(f"⚠️ {message}")


def log_error(message: str) -> None:
    _logger.error(f"❌ {message}")
