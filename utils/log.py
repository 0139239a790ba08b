"""Logging setup with labeled prefixes"""

import logging
import sys

ROOT_LOGGER = "plantilla"

_configured = False


class LabeledFormatter(logging.Formatter):
    """LABEL [logger] message"""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
    }

    def format(self, record: logging.LogRecord) -> str:
        label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        message = f"{label} [{record.name}] {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Install one stream handler on the root logger (idempotent)"""
    global _configured

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if _configured:
        return logging.getLogger(ROOT_LOGGER)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(LabeledFormatter())
    root.addHandler(handler)

    # asyncpg and uvicorn are chatty at DEBUG
    logging.getLogger("asyncpg").setLevel(logging.WARNING)

    _configured = True
    return logging.getLogger(ROOT_LOGGER)
