"""
Logging setup shared by the API, the agent gateway and the event relay.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "engineio", "socketio")


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with a single stdout handler.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = [handler]

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_request(logger: logging.Logger, method: str, path: str, status: int, duration_ms: float) -> None:
    logger.info(f"{method} {path} -> {status} ({duration_ms:.1f}ms)")
