"""Logging configuration: rich console output plus an optional plain log file."""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any

from chanindex.config import LoggingCfg

# Third-party loggers that are too chatty at INFO.
_NOISY_LOGGERS = ("PIL",)


def setup_logging(cfg: LoggingCfg, *, verbose: bool = False) -> logging.Logger:
    """Configure the root logger from *cfg* and return the package logger.

    Args:
        cfg: Logging section of the loaded configuration.
        verbose: Force DEBUG level regardless of *cfg*.
    """
    level = "DEBUG" if verbose else cfg.level.upper()

    handlers: dict[str, dict[str, Any]] = {
        "console": {
            "class": "rich.logging.RichHandler",
            "level": level,
            "show_path": False,
            "rich_tracebacks": True,
            "markup": False,
        },
    }
    if cfg.file:
        log_file = Path(cfg.file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "standard",
            "level": "DEBUG",
            "filename": str(log_file),
            "encoding": "utf-8",
        }

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": handlers,
        "root": {
            "handlers": list(handlers),
            "level": "DEBUG" if cfg.file else level,
        },
    }

    logging.config.dictConfig(logging_config)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger("chanindex")
