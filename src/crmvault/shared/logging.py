"""Structured logging configuration.

Log events pass through ``redact_sensitive`` before any renderer, so key
material, envelopes and PII-bearing fields never reach a log sink even if a
caller binds them by mistake.
"""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, cast

import structlog

from crmvault.config import Settings, get_settings

REDACTED = "[redacted]"

# Event keys whose values are secret or personal
SENSITIVE_KEYS = frozenset(
    {
        "cipher_key",
        "index_key",
        "new_cipher_key",
        "new_index_key",
        "password",
        "password_hash",
        "plaintext",
        "envelope",
        "ciphertext",
        "email",
        "phone",
        "mobile",
        "address",
        "domains",
        "query",
    }
)

NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg")


def redact_sensitive(
    logger: Any,
    method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """structlog processor replacing sensitive values with ``REDACTED``.

    Matches the names in ``SENSITIVE_KEYS`` and every ``*_encrypted`` column
    name, case-insensitively.
    """
    for key in list(event_dict):
        lowered = key.lower()
        if lowered in SENSITIVE_KEYS or lowered.endswith("_encrypted"):
            event_dict[key] = REDACTED
    return event_dict


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structured logging for scripts and embedding applications."""
    if settings is None:
        settings = get_settings()

    log_level = logging.DEBUG if settings.app_debug else logging.INFO

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        redact_sensitive,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    # SQL echo may carry envelopes and bound parameters
    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
