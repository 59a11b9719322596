"""Configuration for the Boiler Room backend."""

import os

from dotenv import load_dotenv

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), ".env"))


class ConfigError(Exception):
    """Configuration related errors."""

    pass


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, str(default)).strip()
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}")


DB_PATH = os.environ.get("BOIL_DB", "boilerroom.db").strip()

# Steam loader
BUFFER_LIMIT = _int_env("BOIL_BUFFER_LIMIT", 100)
STEAM_WORKERS = _int_env("BOIL_STEAM_WORKERS", 8)
STEAM_DELAY = _float_env("BOIL_STEAM_DELAY", 3.0)
HTTP_TIMEOUT = _int_env("BOIL_HTTP_TIMEOUT", 30)

# Render keep-alive poll
RENDER_STATUS_URL = os.environ.get(
    "BOIL_RENDER_STATUS_URL", "https://boiler-room-actions.onrender.com/status"
).strip()
RENDER_RETRIES = _int_env("BOIL_RENDER_RETRIES", 20)
RENDER_DELAY = _float_env("BOIL_RENDER_DELAY", 8)

# HLTB scraper
HLTB_WAIT_MS = _int_env("BOIL_HLTB_WAIT_MS", 5000)
HEADLESS = os.environ.get("BOIL_HEADLESS", "1").strip().lower() not in ("0", "false", "no")


def get_logging_config() -> dict:
    """Get logging configuration from environment variables."""
    return {
        "level": os.environ.get("BOIL_LOG_LEVEL", "INFO").upper(),
        "log_dir": os.environ.get("BOIL_LOG_DIR") or None,
    }
