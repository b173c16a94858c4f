"""structlog setup driven by :class:`attrstack.config.Settings`."""

import logging

import structlog

from attrstack.config import Settings, get_settings


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog processors and the renderer.

    Args:
        settings: Settings to read ``log_level`` and ``log_format`` from.
            Defaults to the cached application settings.
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    renderer: structlog.types.Processor
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
