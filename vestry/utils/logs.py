"""Logging setup for vestry processes."""

from __future__ import annotations

import logging
from typing import Optional

import structlog

from ..config import LoggingConfig

HANDLER_NAME = "vestry"

# Applied to stdlib records before rendering.
SHARED_PROCESSORS = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.ExtraAdder(),
    structlog.processors.TimeStamper(fmt="iso"),
]


def build_formatter(log_format: str = "json") -> structlog.stdlib.ProcessorFormatter:
    if log_format == "json":
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=False)]
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=SHARED_PROCESSORS,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
    )


def configure_logging(config: Optional[LoggingConfig] = None) -> None:
    """Install the vestry root handler, replacing one installed earlier.

    Module loggers stay plain ``logging.getLogger(__name__)``; structlog
    loggers are routed through the same handler.
    """
    config = config or LoggingConfig()
    handler = logging.StreamHandler()
    handler.setFormatter(build_formatter(config.format))
    handler.set_name(HANDLER_NAME)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(config.level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *SHARED_PROCESSORS[:2],
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
