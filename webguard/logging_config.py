"""structlog logging setup."""

import logging
import sys

import structlog

from webguard.utils.sanitize import strip_control_chars

# Longest request-derived value written to a log line
_MAX_FIELD_LENGTH = 256


def _scrub_control_chars(
    logger: logging.Logger, method_name: str, event_dict: dict
) -> dict:
    """Drop control characters from string fields. Tracebacks keep their newlines."""
    for key, value in event_dict.items():
        if isinstance(value, str) and key != "exception":
            event_dict[key] = strip_control_chars(value)
    return event_dict


def setup_logging(log_level: str = "info", json_format: bool = True) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    JSON lines in production, the console renderer when ``json_format`` is
    off. Every line carries the fields bound by ``bind_request``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        _scrub_control_chars,
    ]

    renderer: structlog.types.Processor
    if json_format:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Access lines carry none of the bound request fields
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def bind_request(request_id: str, method: str, path: str) -> None:
    """Bind per-request fields so every log line of the request carries them."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=method,
        path=strip_control_chars(path)[:_MAX_FIELD_LENGTH],
    )
