"""Structured logging for the sidebar: redaction, payload collapsing, session context."""

import logging
import sys
from typing import Any, Dict

import structlog

# Credential-like keys; matched as substrings, case-insensitive
SENSITIVE_KEYS = frozenset({"api_key", "token", "authorization", "cookie", "secret", "password"})

# Base64 payloads longer than this are replaced by a length marker
MAX_INLINE_PAYLOAD = 256

# Recorded actions, transcripts and navigation sequences can run long
PAYLOAD_LIST_KEYS = frozenset({"actions", "messages", "sequence"})
MAX_INLINE_ITEMS = 20


def redact_sensitive(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Redact credentials (tokens, authorization headers, secrets, passwords)."""
    for key in list(event_dict.keys()):
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_KEYS):
            event_dict[key] = "REDACTED"
    return event_dict


def collapse_payloads(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Keep bulky sidebar payloads out of the log stream.

    Screenshots attached to execution progress become `<N chars>`; long
    lists of recorded actions or messages become `<N items>`.
    """
    for key, value in list(event_dict.items()):
        key_lower = key.lower()
        if key_lower == "screenshot":
            if isinstance(value, str) and len(value) > MAX_INLINE_PAYLOAD:
                event_dict[key] = f"<{len(value)} chars>"
        elif key_lower in PAYLOAD_LIST_KEYS:
            if isinstance(value, (list, tuple)) and len(value) > MAX_INLINE_ITEMS:
                event_dict[key] = f"<{len(value)} items>"
    return event_dict


def configure_logging(
    log_level: str = "INFO", json_output: bool = True, **context: Any
) -> None:
    """Configure structlog for the sidebar process.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: JSON lines when true, human-readable console lines otherwise
        **context: Fields bound to every entry for this process (e.g. backend_url)
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(component="sidebar", **context)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_sensitive,
            collapse_payloads,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Logger bound with `logger_name` when a name is given."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger
