"""Logging setup for twistsync with token masking."""

import logging
import logging.handlers
import re
from pathlib import Path
from typing import Optional

LOGGER_NAME = "twistsync"


class SensitiveDataFilter(logging.Filter):
    """Filter to mask API tokens in log messages."""

    BEARER_PATTERN = re.compile(r'(Bearer\s+)[^\s\'"]+', re.IGNORECASE)
    TOKEN_PARAM_PATTERN = re.compile(r'(token[=:]\s*)[^\s&\'",}]+', re.IGNORECASE)

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            msg = self.BEARER_PATTERN.sub(r'\1[TOKEN_MASKED]', record.msg)
            record.msg = self.TOKEN_PARAM_PATTERN.sub(r'\1[TOKEN_MASKED]', msg)
        return True


def setup_logger(
    log_level: str = "INFO",
    mask_logs: bool = True,
    log_dir: Optional[Path] = None,
) -> logging.Logger:
    """Set up the application logger. Call once at startup.

    Adds a console handler, plus a rotating file handler when log_dir is given.
    If already set up (has handlers), only the level is updated.
    """
    logger = logging.getLogger(LOGGER_NAME)
    log_level = log_level.upper()

    if logger.handlers:
        logger.setLevel(log_level)
        for handler in logger.handlers:
            handler.setLevel(log_level)
        return logger

    logger.setLevel(log_level)

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(console_handler)

    handlers = [console_handler]
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / "twistsync.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
        handlers.append(file_handler)

    if mask_logs:
        sensitive_filter = SensitiveDataFilter()
        for handler in handlers:
            handler.addFilter(sensitive_filter)

    return logger
