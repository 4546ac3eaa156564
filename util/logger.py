# util/logger.py
import copy
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from config.settings import settings

logging.captureWarnings(True)

TEXT_FMT = "%(asctime)s %(levelname)s [%(role)s] %(name)s - %(message)s"
DATE_FMT = "%Y-%m-%dT%H:%M:%S%z"


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.DEBUG: "\033[37m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[41m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Color a copy; the file handler sees the same record
        colored = copy.copy(record)
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(colored)


class RoleFilter(logging.Filter):
    """Stamp every record with the stage this process runs as."""

    def __init__(self, role: str) -> None:
        super().__init__()
        self._role = role

    def filter(self, record: logging.LogRecord) -> bool:
        record.role = self._role
        return True


def _console_handler(level: int, role_filter: logging.Filter) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(ColoredFormatter(TEXT_FMT, datefmt=DATE_FMT))
    handler.addFilter(role_filter)
    return handler


def _file_handler(level: int, role_filter: logging.Filter) -> logging.Handler:
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    handler = RotatingFileHandler(
        os.path.join(settings.LOG_DIR, settings.LOG_FILE_NAME),
        maxBytes=settings.LOG_MAX_BYTES,
        backupCount=settings.LOG_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(TEXT_FMT, datefmt=DATE_FMT))
    handler.addFilter(role_filter)
    return handler


def init_logger() -> logging.Logger:
    """
    Configure the root logger once per process.

    Console output always goes to stdout; LOG_TO_FILE adds a size-rotated file
    under LOG_DIR. Every line carries the service role, since all four stages
    usually end up in the same log stream.
    """
    root = logging.getLogger()
    if getattr(root, "_fileup_inited", False):
        return logging.getLogger(settings.LOGGER_NAME)

    level = logging.getLevelName((settings.LOG_LEVEL or "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    role_filter = RoleFilter(settings.SERVICE_ROLE.value)
    root.addHandler(_console_handler(level, role_filter))
    if settings.LOG_TO_FILE:
        root.addHandler(_file_handler(level, role_filter))

    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    # Probes hit the server every few seconds
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    root._fileup_inited = True
    logger = logging.getLogger(settings.LOGGER_NAME)
    logger.debug("logger.ready role=%s level=%s", settings.SERVICE_ROLE.value, settings.LOG_LEVEL)
    return logger
