from __future__ import annotations

import logging
import sys

"""Application logging.

Every module logs through ``logging.getLogger(__name__)``. Those loggers
hang under the ``roster_import`` logger, which owns the only handler: stdout,
one ``LABEL message`` line per record, labels INFO|WARN|ERROR|SUMMARY.
SUMMARY is a custom level used for the single end-of-run summary line.

AWS SDK loggers stay at WARNING even in --debug mode; their request dumps
would drown the upload stages.
"""

__all__ = [
    "APP_LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "set_debug",
    "log_summary",
    "reset_logging",
]

APP_LOGGER_NAME = "roster_import"
SUMMARY_LEVEL = 25  # INFO < SUMMARY < WARNING
SDK_LOGGERS = ("boto3", "botocore", "urllib3", "s3transfer")

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        line = f"{label} {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Install the stdout handler on the app logger. Safe to call repeatedly."""
    global _logger
    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    for name in SDK_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    app = logging.getLogger(APP_LOGGER_NAME)
    app.setLevel(level)
    app.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(LabeledFormatter())
    app.addHandler(handler)
    # root へは流さない (二重出力防止)
    app.propagate = False

    _logger = app
    return app


def get_logger() -> logging.Logger:
    return _logger if _logger is not None else setup_logging()


def set_debug(logger: logging.Logger) -> None:
    logger.setLevel(logging.DEBUG)


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Drop the handler and restore propagation (tests)."""
    global _logger
    if _logger is not None:
        _logger.handlers.clear()
        _logger.propagate = True
        _logger.setLevel(logging.NOTSET)
    _logger = None
