"""
Logging setup.

One stdout handler on the root logger; modules use
`logging.getLogger(__name__)`. Gunicorn captures stdout, so no file handlers.
"""
import logging
import sys

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_LEVEL_MAP = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def setup_logging(level: str = "INFO") -> None:
    log_level = LOG_LEVEL_MAP.get(level.lower(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT, datefmt=DEFAULT_DATE_FORMAT))
    root_logger.addHandler(handler)

    # SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
