"""Structured logging for repo-drive.

Every log line is a structlog event rendered as JSON (or console output
in development) and carries the current request ID when there is one.

Share issuance holds the issuer's GitHub credential in memory, so the
pipeline redacts credential-bearing fields before anything is rendered:

  - values under keys such as ``credential``, ``authorization`` or
    ``token`` become ``[REDACTED]``, at any nesting depth;
  - ``Bearer <value>`` fragments and GitHub token literals inside any
    string value are masked.

``token_prefix`` (the 8-character share token prefix used for
correlation) is not a credential and passes through.

Usage::

    from repo_drive.observability.logging import configure_logging, get_logger

    configure_logging()
    logger = get_logger(__name__)
    logger.info("share_link_created", issuer="octocat", token_prefix="3f9a1c0b...")
"""

from __future__ import annotations

import logging
import os
import re
import sys
from contextvars import ContextVar
from typing import Any

import structlog

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

REDACTED = "[REDACTED]"

# Keys whose values are always secrets, compared case-insensitively.
_SENSITIVE_KEYS = frozenset({
    "credential",
    "authorization",
    "token",
    "access_token",
    "github_token",
    "bearer_token",
    "password",
    "secret",
})

_BEARER_RE = re.compile(r"(?i)\b(bearer)\s+[^\s,;\"']+")
_GITHUB_TOKEN_RE = re.compile(r"\b(?:gh[pousr]_|github_pat_)[A-Za-z0-9_]{16,}")

# Third-party loggers that are too chatty at INFO. httpx logs full URLs.
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
}

_configured = False


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        value = _BEARER_RE.sub(rf"\1 {REDACTED}", value)
        return _GITHUB_TOKEN_RE.sub(REDACTED, value)
    if isinstance(value, dict):
        return {
            k: REDACTED if str(k).lower() in _SENSITIVE_KEYS else _scrub(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(v) for v in value)
    return value


def redact_credentials(logger: Any, method_name: str, event_dict: dict) -> dict:
    """structlog processor: mask credentials anywhere in the event."""
    return _scrub(event_dict)


def _add_request_id(logger: Any, method_name: str, event_dict: dict) -> dict:
    rid = request_id_ctx.get()
    if rid is not None:
        event_dict["request_id"] = rid
    return event_dict


def _pre_chain() -> list:
    """Processors shared by structlog events and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        _add_request_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_credentials,
    ]


def build_formatter(json_output: bool = True) -> structlog.stdlib.ProcessorFormatter:
    """Formatter for the root handler; stdlib records get the same chain."""
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_pre_chain(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer() if json_output
            else structlog.dev.ConsoleRenderer(),
        ],
    )


def configure_logging(
    *,
    level: str | None = None,
    json_output: bool | None = None,
) -> None:
    """Install the structlog pipeline and a stdout root handler.

    Idempotent: only the first call in a process takes effect.

    Args:
        level: Log level name. Defaults to ``LOG_LEVEL`` or INFO.
        json_output: JSON lines when True, console output when False.
            Defaults to ``LOG_FORMAT`` (``json`` unless set otherwise).
    """
    global _configured
    if _configured:
        return
    _configured = True

    level = level or os.environ.get("LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("LOG_FORMAT", "json") == "json"

    structlog.configure(
        processors=[
            *_pre_chain(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(json_output))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
