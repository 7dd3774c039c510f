"""Structlog configuration for package-wide logging.

Module loggers are created at import time and configure logging lazily with
the defaults. A later explicit ``configure_logging`` call still takes effect
for those loggers; only a second explicit call needs ``force``.
"""

import logging
import sys
from typing import Any, Optional

import structlog

_LOGGING_CONFIGURED = False
_CONFIGURED_EXPLICITLY = False


def _rename_event_key(logger: Any, method_name: str, event_dict: Any) -> Any:
    """Store the log event under "message" instead of structlog's "event"."""
    if "event" in event_dict:
        event_dict["message"] = event_dict.pop("event")
    return event_dict


def _apply(level: str, json: bool, log_file: Optional[str], replace: bool) -> None:
    global _LOGGING_CONFIGURED

    log_level = getattr(logging, level.upper(), logging.WARNING)

    handlers: list = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        handlers=handlers,
        force=replace,
    )

    renderer: Any = structlog.processors.JSONRenderer()
    if not json:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    # Loggers bound at import must see later configuration, so no caching.
    structlog.reset_defaults()
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            _rename_event_key,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _LOGGING_CONFIGURED = True


def configure_logging(
    level: str = "WARNING",
    json: bool = False,
    log_file: Optional[str] = None,
    force: bool = False,
) -> None:
    """Configure structlog and stdlib logging for the package.

    The first explicit call always applies, replacing the defaults that
    module loggers installed on import. Later calls are ignored unless
    ``force`` is set.

    Args:
        level: Minimum level name (e.g., "DEBUG", "INFO")
        json: Render JSON lines instead of the console renderer
        log_file: Optional file receiving the same records as stderr
        force: Reconfigure even if logging was already configured explicitly
    """
    global _CONFIGURED_EXPLICITLY

    if _CONFIGURED_EXPLICITLY and not force:
        return

    _apply(level, json, log_file, replace=force or _LOGGING_CONFIGURED)
    _CONFIGURED_EXPLICITLY = True


def get_logger(name: str = "formstate") -> Any:
    """Return a package logger, installing default configuration lazily."""
    if not _LOGGING_CONFIGURED:
        _apply("WARNING", False, None, replace=False)
    return structlog.get_logger(name)


__all__ = [
    "configure_logging",
    "get_logger",
]
