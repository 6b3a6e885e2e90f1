from __future__ import annotations

import logging

from jobletter.config import get_settings

# Client libraries that log every request at INFO.
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")

_LOG_CONFIGURED = False


def configure_logging() -> None:
    global _LOG_CONFIGURED
    if _LOG_CONFIGURED:
        return

    settings = get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    logging.getLogger("jobletter").setLevel(level)
    _LOG_CONFIGURED = True
