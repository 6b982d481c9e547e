"""
Logging Configuration for Storefront CRM Analytics

Every event goes through structlog and is rendered by one stdlib handler, so
uvicorn, aiokafka and SQLAlchemy records share the JSON (or console) format
of the reporting code. Each event carries the service identity and the
active data source; the request middleware adds `request_id` through
structlog contextvars.
"""

import logging
import sys
from typing import Any, Dict, List, Optional, TextIO

import structlog
from structlog.processors import JSONRenderer, TimeStamper
from structlog.stdlib import add_log_level, ProcessorFormatter
from structlog.types import EventDict, Processor

from crm_analytics.config.settings import Settings, get_settings

# Loggers re-routed through our handler
ROUTED_LOGGERS = ["uvicorn", "uvicorn.error", "uvicorn.access"]

# Chatty at INFO; only their warnings reach the report logs
QUIET_LOGGERS = {"aiokafka": logging.WARNING, "sqlalchemy.engine": logging.WARNING}


def service_context(settings: Settings) -> Processor:
    """Stamp the service identity onto every event"""
    context: Dict[str, Any] = {
        "service": settings.app_name,
        "version": settings.version,
        "environment": settings.app_env,
        "data_source": settings.data_source,
    }

    def add_service_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        for key, value in context.items():
            event_dict.setdefault(key, value)
        return event_dict

    return add_service_context


def drop_color_message(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    # uvicorn duplicates the message with ANSI codes under this key
    event_dict.pop("color_message", None)
    return event_dict


def build_processors(settings: Settings) -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_log_level,
        TimeStamper(fmt="iso", utc=True),
        service_context(settings),
        structlog.stdlib.ExtraAdder(),
        drop_color_message,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(log_level: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    """
    Configure structured logging for the API and the batch scripts.

    Args:
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR)
        stream: Destination of rendered events (stdout by default)
    """
    settings = get_settings()
    level = log_level or settings.monitoring.log_level
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    shared_processors = build_processors(settings)

    structlog.configure(
        processors=shared_processors + [ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if settings.monitoring.log_format == "json":
        renderer = JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream is None)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(numeric_level)
    handler.setFormatter(ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors))

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = [handler]

    for logger_name in ROUTED_LOGGERS:
        routed = logging.getLogger(logger_name)
        routed.handlers = []
        routed.propagate = True
        routed.setLevel(numeric_level)

    for logger_name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(max(quiet_level, numeric_level))

    structlog.get_logger(__name__).info(
        "Logging configured",
        level=level,
        format=settings.monitoring.log_format,
        reporting_timezone=settings.reporting.timezone,
    )
