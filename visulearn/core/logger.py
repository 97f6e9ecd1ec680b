"""
VisuLearn - Logging

One "visulearn" logger tree:
    console      LOG_LEVEL and above (INFO by default)
    app.log      everything, rotated at 5 MB
    error.log    ERROR and above, rotated at 5 MB
Modules log through child loggers obtained with get_logger().
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler

from visulearn.core.config import settings

ROOT_LOGGER = "visulearn"

LOGS_DIR = Path(settings.LOG_DIR).resolve()
LOGS_DIR.mkdir(parents=True, exist_ok=True)

FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5


def _rotating_handler(filename: str, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        LOGS_DIR / filename,
        maxBytes=MAX_LOG_BYTES,
        backupCount=LOG_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logger() -> logging.Logger:
    """Configure the root "visulearn" logger. Safe to call more than once."""
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(logging.DEBUG)

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.getLevelName(settings.LOG_LEVEL.upper()))
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))

    root.addHandler(console)
    root.addHandler(_rotating_handler("app.log", logging.DEBUG))
    root.addHandler(_rotating_handler("error.log", logging.ERROR))
    return root


logger = setup_logger()


def get_logger(name: str) -> logging.Logger:
    """Child logger, e.g. get_logger("retry") -> visulearn.retry."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


# =========================
# STRUCTURED HELPERS
# =========================

def log_batch_event(job_id: str, event: str, details: str = ""):
    get_logger("batch").info(f"[Job:{job_id}] {event} | {details}")


def log_api_request(method: str, path: str, status_code: int, duration_ms: float):
    level = logging.WARNING if status_code >= 500 else logging.INFO
    get_logger("api").log(level, f"{method} {path} | {status_code} | {duration_ms:.2f}ms")


def log_agent_action(agent_name: str, action: str, details: str = "", success: bool = True):
    """Log one step of an agent (planner, painter, narrator, analyzer)."""
    marker = "OK" if success else "FAILED"
    get_logger(f"agent.{agent_name}").info(f"[{marker}] {action} | {details}")


def log_error(message: str, error: Exception = None, context: dict = None):
    """Log an error with its traceback (when given) and key=value context."""
    suffix = "".join(f" | {key}={value}" for key, value in (context or {}).items())
    if error is not None:
        get_logger("error").error(f"{message}: {error}{suffix}", exc_info=error)
    else:
        get_logger("error").error(f"{message}{suffix}")
