"""
Structured logging setup shared by every component.

Modules call `structlog.get_logger(__name__)` at import time and bind their
component name; `configure_logging` is called once by the application entry
point to pick the renderer and level.
"""

import logging
import os

import structlog

from core.config import LoggingConfig


def configure_logging(config: LoggingConfig) -> None:
    """Configure stdlib logging and structlog from the logging config."""

    level = getattr(logging, config.level, logging.INFO)
    logging.basicConfig(format="%(message)s", level=level)
    # basicConfig is a no-op once the root logger has handlers
    logging.getLogger().setLevel(level)

    renderer: structlog.types.Processor
    if config.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if config.enable_file_logging:
        directory = os.path.dirname(config.log_file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handler = logging.FileHandler(config.log_file_path, encoding="utf-8")
        handler.setLevel(level)
        logging.getLogger().addHandler(handler)
