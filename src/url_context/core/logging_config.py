"""structlog setup shared by the API process and library callers.

Library modules log in one of two registers:

* low-level pipeline stages (cache, rate limiter, fetcher, retry) use
  ``logging.getLogger(__name__)`` with ``"stage: message %s"`` strings;
* orchestration code (validator security events, batch completion, routes)
  uses ``structlog.get_logger(__name__)`` with an event name plus fields.

:func:`configure_logging` routes both through one processor chain, so every
record leaves as a single JSON line (or a console line at ``DEBUG``).

Fetched URLs are attacker-supplied and fetch options may carry caller
headers, so the chain scrubs two kinds of secrets before rendering:

* values under secret-looking keys (``Authorization``, ``Cookie``, ``api_key``
  ...) at any nesting depth;
* ``user:password@`` credentials embedded in URL-valued fields.
"""

from __future__ import annotations

import logging
import re
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

REDACTED = "[REDACTED]"

#: Bound by the request middleware in ``api/main.py``; ``None`` outside a request.
request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)

#: Key fragments (lower-case) whose values never reach the log output.
_SECRET_KEY_FRAGMENTS: tuple[str, ...] = (
    "authorization",
    "cookie",
    "token",
    "api_key",
    "api-key",
    "apikey",
    "password",
    "secret",
    "bearer",
)

_URL_USERINFO_RE = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)[^/@\s]+@", re.IGNORECASE)

#: Third-party loggers that echo every request line at INFO.
_CHATTY_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "uvicorn.access")


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------


def _is_secret_key(key: object) -> bool:
    lowered = str(key).lower()
    return any(fragment in lowered for fragment in _SECRET_KEY_FRAGMENTS)


def _scrub(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: REDACTED if _is_secret_key(k) else _scrub(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(item) for item in value)
    if isinstance(value, str) and "@" in value:
        return _URL_USERINFO_RE.sub(rf"\g<scheme>{REDACTED}@", value)
    return value


def _redact_secrets(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Mask secret-keyed values and URL credentials, without mutating inputs."""
    for key, value in list(event_dict.items()):
        event_dict[key] = REDACTED if _is_secret_key(key) else _scrub(value)
    return event_dict


def _add_request_id(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    request_id = request_id_var.get()
    if request_id is not None:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def _build_renderer(development: bool) -> Processor:
    if development:
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer()


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def configure_logging(log_level: str = "INFO") -> None:
    """Install the shared processor chain on structlog and the root logger.

    Every record carries ``timestamp`` (ISO 8601, UTC), ``level``,
    ``logger`` and ``event``, plus ``request_id`` while an HTTP request is
    being served.  Calling this again replaces the previous root handler,
    so the application factory can re-apply the configured level.

    Args:
        log_level: Standard level name, case-insensitive.  ``"DEBUG"``
            switches to the human-readable console renderer.
    """
    level_name = log_level.upper()
    development = level_name == "DEBUG"

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_request_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _redact_secrets,
    ]

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _build_renderer(development),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level_name, logging.INFO))

    chatty_level = logging.DEBUG if development else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(chatty_level)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
