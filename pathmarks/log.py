from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass

from rich.logging import RichHandler

LOGGER_NAME = "pathmarks"
# Per-request lines from the favicon fan-out drown the store's own messages.
_NOISY = ("httpx", "httpcore")


@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    no_color: bool = False


def setup_logging(cfg: LogConfig) -> logging.Logger:
    """Attach one handler to the ``pathmarks`` logger; safe to call repeatedly."""
    level = getattr(logging, cfg.level.upper(), logging.INFO)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False
    for h in list(logger.handlers):
        logger.removeHandler(h)

    if not (cfg.no_color or os.getenv("NO_COLOR") is not None) and sys.stderr.isatty():
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_time=False, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler.setLevel(level)
    logger.addHandler(handler)

    for name in _NOISY:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return logger


def get_logger(name: str) -> logging.Logger:
    if name != LOGGER_NAME and not name.startswith(LOGGER_NAME + "."):
        name = f"{LOGGER_NAME}.{name}"
    return logging.getLogger(name)
