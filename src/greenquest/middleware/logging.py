"""Structured logging configuration with structlog.

HTTP-layer code logs through structlog while the service modules use stdlib
``logging`` with %-style messages. Both end up in one handler on the root
logger, rendered by the same structlog processor chain, so every line carries
the same keys whichever API produced it.
"""

import logging

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from greenquest.config import Settings

HANDLER_NAME = "greenquest"

# Per-statement and per-request chatter from libraries
NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncio", "httpx", "httpcore", "uvicorn.access")


def add_service_context(settings: Settings) -> Processor:
    """Stamp each event with the deployment it came from."""
    context = {
        "service": "greenquest",
        "version": settings.app_version,
        "environment": settings.environment,
    }

    def processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        for key, value in context.items():
            event_dict.setdefault(key, value)
        return event_dict

    return processor


def setup_logging(settings: Settings) -> None:
    """Configure structlog for JSON or console output and route stdlib logs through it."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
        exc_processors: list[Processor] = [structlog.processors.format_exc_info]
    else:
        # ConsoleRenderer formats exceptions itself
        renderer = structlog.dev.ConsoleRenderer()
        exc_processors = []

    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_service_context(settings),
    ]

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            *exc_processors,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.set_name(HANDLER_NAME)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *exc_processors,
            renderer,
        ],
    ))

    # create_app may run more than once per process; keep a single handler
    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
