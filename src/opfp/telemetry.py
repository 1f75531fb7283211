"""Structured logging setup.

All logging goes through structlog, rendered by a stdlib handler on stderr so
the fault-proof program's own stdout stays readable.
"""

import logging
import sys
from typing import Any, List

import structlog


def verbosity_to_level(v: int) -> int:
    """Map a -v count to a log level: 0 ERROR, 1 WARNING, 2 INFO, 3+ DEBUG."""
    if v <= 0:
        return logging.ERROR
    if v == 1:
        return logging.WARNING
    if v == 2:
        return logging.INFO
    return logging.DEBUG


def init_telemetry(verbosity: int = 0, json_logs: bool = False) -> None:
    """Configure structlog and the root logger.

    Verbosity 4 and above also tags every entry with its call site.
    """
    shared_processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if verbosity >= 4:
        shared_processors.append(
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            )
        )

    renderer: Any
    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(verbosity_to_level(verbosity))

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
