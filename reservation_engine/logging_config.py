"""
structlog setup shared by the API process and the operator scripts.

Every log line carries the service name, an ISO timestamp and, while an HTTP
request is being handled, its ``request_id``. Side-effect workers run on
their own threads where the request context is gone, so their lines carry the
worker's thread name instead.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, MutableMapping, cast

import structlog

from reservation_engine.config import LOG_LEVEL

SERVICE_NAME = "reservation-engine"

# Type alias for structlog processor
Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]


def _json_default(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return repr(value)


def _add_service(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _add_worker_thread(
    _: Any, __: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    thread = threading.current_thread()
    if thread is not threading.main_thread() and "request_id" not in event_dict:
        event_dict["thread"] = thread.name
    return event_dict


def setup_logging(level: str = LOG_LEVEL) -> None:
    """
    Configure stdlib logging and structlog for the whole process.

    JSON lines at INFO and above (log aggregation), colored console output
    when running with DEBUG.

    Args:
        level: Log level name; defaults to ``LOG_LEVEL`` from the environment
    """
    level = level.upper()
    logging.basicConfig(
        format="[%(asctime)s] %(levelname)s in %(name)s:%(lineno)d: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        level=level,
    )

    # Collaborator HTTP calls, SQL echo and access logs drown the event stream
    for noisy_logger in ("urllib3", "requests", "sqlalchemy.engine", "uvicorn.access"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    renderer: Processor = cast(
        Processor,
        (
            structlog.dev.ConsoleRenderer(colors=True)
            if level == "DEBUG"
            else structlog.processors.JSONRenderer(
                serializer=lambda obj, **kw: json.dumps(obj, default=_json_default)
            )
        ),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_service,
            _add_worker_thread,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
