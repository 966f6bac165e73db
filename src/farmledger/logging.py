"""
Engine logging.

Every engine module logs named events through structlog (``user_registered``,
``session_issued``, ``game_saved`` ...). ``setup_logging`` wires them to the
stdlib root logger, stamps each event with the engine version and
environment, and masks credential material before anything is rendered.
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from typing import Any

import structlog

from farmledger.config import Settings

REDACTED = "[REDACTED]"

# Event keys that may carry a password, a bearer token or its fingerprint
SECRET_KEYS = frozenset(
    {
        "password",
        "raw_password",
        "password_hash",
        "new_password",
        "token",
        "raw_token",
        "token_hash",
        "fingerprint",
        "authorization",
    }
)


def redact_secrets(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """Mask values of credential keys in an event."""
    for key in event_dict:
        if key.lower() in SECRET_KEYS:
            event_dict[key] = REDACTED
    return event_dict


def _engine_context(settings: Settings) -> structlog.types.Processor:
    def add_engine_context(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        event_dict.setdefault("engine_version", settings.app_version)
        event_dict.setdefault("environment", settings.environment)
        return event_dict

    return add_engine_context


def setup_logging(settings: Settings) -> None:
    """Configure structlog for the engine. Safe to call again with new settings."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            _engine_context(settings),
            redact_secrets,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", level=level)
    logging.getLogger().setLevel(level)
    # SQL echo is controlled by database_echo, not the engine log level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
