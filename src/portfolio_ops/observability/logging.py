"""
portfolio_ops.observability.logging

structlog setup shared by the API process and Alembic.

Responsibilities:
- Route stdlib and structlog records through one renderer (JSON in prod, console in dev).
- Stamp every event with the service name.
- Mask credential-bearing fields (ID tokens, cookies, authorization headers).
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

SENSITIVE_KEYS = frozenset({"id_token", "idtoken", "token", "authorization", "cookie", "password"})
NOISY_LOGGERS = ("google.auth", "google.cloud", "urllib3", "httpx", "httpcore")


def _mask_credentials(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in list(event_dict):
        if key.lower() in SENSITIVE_KEYS and event_dict[key]:
            event_dict[key] = "***"
    return event_dict


class _ServiceStamp:
    def __init__(self, service_name: str) -> None:
        self.service_name = service_name

    def __call__(self, _: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", self.service_name)
        return event_dict


def configure_logging(*, service_name: str, level: str, json_logs: bool = True) -> None:
    root_level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=root_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _ServiceStamp(service_name),
            _mask_credentials,
            structlog.processors.dict_tracebacks if json_logs else structlog.dev.set_exc_info,
            structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


# --- Module Notes -----------------------------------------------------------
# `request_id`, `path` and `method` come from `observability.middleware`; the gate adds `uid`
# once a session validates.
