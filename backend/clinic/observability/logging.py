from __future__ import annotations

import logging
import sys

import structlog

SERVICE_NAME = "clinic-api"

# Loggers that ship their own handlers; route them through root instead.
_ADOPTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")
# Driver chatter that is only useful when debugging the store.
_QUIET_LOGGERS = {"pymongo": logging.WARNING, "botocore": logging.WARNING}

_state = {"configured": False}


def _service_fields(environment: str):
    def add(_: logging.Logger, __: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("env", environment)
        return event_dict

    return add


def _renderer(pretty: bool):
    if pretty:
        return structlog.dev.ConsoleRenderer(colors=False)
    return structlog.processors.JSONRenderer()


def configure_logging(*, level: str | int = "INFO", environment: str = "development", pretty: bool = False) -> None:
    """
    Route stdlib logging and structlog through one stdout handler.

    Request-scoped fields (request id, method, path, user) come from
    `structlog.contextvars`, bound by the request and auth middleware.
    Production output is one JSON object per line; `pretty` switches to the
    console renderer for local runs.
    """
    if _state["configured"]:
        return

    shared = [
        structlog.contextvars.merge_contextvars,
        _service_fields(environment),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(pretty),
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in _ADOPTED_LOGGERS:
        adopted = logging.getLogger(name)
        adopted.handlers = []
        adopted.propagate = True
    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _state["configured"] = True


def get_logger(name: str | None = None):
    return structlog.get_logger(name)
