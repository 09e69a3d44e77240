"""
Logging setup — structlog on top of the stdlib logging module.

Every module logs through `structlog.get_logger()` with snake_case event
names and keyword context. This module only decides level and rendering.
"""
from __future__ import annotations

import logging
import os
import sys
from typing import Optional

import structlog

from config.settings import LoggingConfig


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """
    Configure structlog and the root stdlib logger.

    Args:
        config: Logging section of the settings. The LOG_LEVEL env var
                overrides config.level when set.
    """
    config = config or LoggingConfig()
    level_name = os.getenv("LOG_LEVEL", config.level).upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if config.json
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
