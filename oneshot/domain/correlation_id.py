"""Per-connection request ids for log correlation.

Each accepted connection gets a UUID4 (or adopts a well-formed incoming
``X-Request-ID``); the id rides along in a context variable so every log
record written by that worker thread carries it, and it is echoed back in
the response headers.
"""

import contextvars
import logging
import uuid
from typing import Any, MutableMapping, Optional

LOGGER_PREFIX = "oneshot."
MAX_REQUEST_ID_LENGTH = 128

_request_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "oneshot_request_id", default=None
)


def generate_correlation_id() -> str:
    """Return a fresh UUID4 request id."""
    return str(uuid.uuid4())


def get_correlation_id() -> Optional[str]:
    return _request_id_var.get()


def set_correlation_id(correlation_id: str) -> None:
    _request_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    _request_id_var.set(None)


def adopt_request_id(header_value: str) -> bool:
    """Use a client supplied request id if it is safe to echo back.

    Values that are empty, too long, or contain control or non-ASCII
    characters are ignored and the generated id is kept.
    """
    candidate = header_value.strip()
    if not candidate or len(candidate) > MAX_REQUEST_ID_LENGTH:
        return False
    if not all(" " < ch < "\x7f" for ch in candidate):
        return False
    set_correlation_id(candidate)
    return True


class CorrelationLoggerAdapter(logging.LoggerAdapter):
    """Adds ``correlation_id`` and ``component`` to every record's extras.

    ``component`` is the logger name below ``oneshot.``, e.g. ``transport.worker``.
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["correlation_id"] = get_correlation_id() or "-"

        name = self.logger.name
        extra["component"] = (
            name[len(LOGGER_PREFIX) :] if name.startswith(LOGGER_PREFIX) else name
        )
        kwargs["extra"] = extra
        return msg, kwargs
