"""Logging configuration for the Boiler Room backend."""

import logging
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

import config


def setup_logging() -> None:
    """Set up console logging, plus a rotating file when BOIL_LOG_DIR is set."""
    settings = config.get_logging_config()
    level = getattr(logging, settings["level"], logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter('%(levelname)s:%(name)s:%(message)s'))
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if settings["log_dir"]:
        log_dir = Path(settings["log_dir"])
        log_dir.mkdir(parents=True, exist_ok=True)

        today = datetime.now().strftime("%Y-%m-%d")
        file_handler = RotatingFileHandler(
            log_dir / f"boilerroom_{today}.log",
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)
