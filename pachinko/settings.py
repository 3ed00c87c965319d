"""
PACHINKO — Runtime Settings

Environment-driven defaults for the CLI and simulations. A local .env file
is loaded on import.

    PACHINKO_CONFIG       path to a JSON game config (default: built-in table)
    PACHINKO_SEED         seed for reproducible runs (default: unseeded)
    PACHINKO_SIM_ROUNDS   Monte Carlo rounds (default: 100000)
    PACHINKO_LOG_LEVEL    logging level name (default: WARNING)
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(message)s"


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


class Settings:
    CONFIG_PATH = os.getenv("PACHINKO_CONFIG", "")
    SEED = _optional_int("PACHINKO_SEED")
    SIM_ROUNDS = int(os.getenv("PACHINKO_SIM_ROUNDS", "100000"))
    LOG_LEVEL = os.getenv("PACHINKO_LOG_LEVEL", "WARNING").upper()


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach one stream handler to the ``pachinko`` logger (idempotent)."""
    logger = logging.getLogger("pachinko")
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(handler)
    logger.setLevel(getattr(logging, (level or Settings.LOG_LEVEL).upper(), logging.WARNING))
    return logger
