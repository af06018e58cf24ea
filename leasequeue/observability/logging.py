"""
Structured logging for queue operations.

Library modules log through ``logging.getLogger(__name__)`` with ``extra=``
fields. ``setup_logging`` renders those records with structlog, and the
facade wraps each call in ``log_context`` so every record emitted underneath
(store, backend, driver) carries the queue and operation it belongs to.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from opentelemetry import trace

from leasequeue.config import Settings, get_settings

LOGGER_NAME = "leasequeue"

_HANDLER_NAME = "leasequeue-structlog"

# Drivers that log every statement when left at DEBUG
_DRIVER_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg")


def add_span_ids(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Attach the ids of the active OpenTelemetry span, if there is one."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict.setdefault("trace_id", trace.format_trace_id(ctx.trace_id))
        event_dict.setdefault("span_id", trace.format_span_id(ctx.span_id))
    return event_dict


def _pre_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        add_span_ids,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]


def setup_logging(settings: Settings | None = None, root: bool = False) -> logging.Logger:
    """
    Render queue log records through structlog.

    Only the ``leasequeue`` logger is configured by default, so the host
    application's own handlers are left alone. Pass ``root=True`` from a
    script to render every record, driver logs included, the same way.
    Calling it again replaces the handler installed by the previous call.

    Args:
        settings: Settings to read ``log_level``/``log_format`` from.
        root: Configure the root logger instead of ``leasequeue``.

    Returns:
        logging.Logger: The configured logger.
    """
    settings = settings or get_settings()
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    target = logging.getLogger() if root else logging.getLogger(LOGGER_NAME)
    target.handlers = [h for h in target.handlers if h.get_name() != _HANDLER_NAME]
    target.addHandler(handler)
    target.setLevel(level)

    if root:
        for name in _DRIVER_LOGGERS:
            logging.getLogger(name).setLevel(max(level, logging.WARNING))

    return target


def get_logger(name: str = LOGGER_NAME) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger that renders through ``setup_logging``'s handler."""
    return structlog.get_logger(name)


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """
    Attach fields to every record logged inside the block.

    Fields are held in context variables, so concurrent tasks each see their
    own values, and the previous values are restored on exit.
    """
    with structlog.contextvars.bound_contextvars(**fields):
        yield
