"""Listening socket creation."""

import logging
import socket

from oneshot.domain.correlation_id import CorrelationLoggerAdapter
from oneshot.domain.errors import ListenFailure

SOCKET_LOGGER = CorrelationLoggerAdapter(logging.getLogger("oneshot.socket"), {})

ACCEPT_POLL_SECONDS = 0.5


def create_server_socket(host: str, port: int) -> socket.socket:
    """Bind and listen on ``host:port``, raising ListenFailure on error."""
    try:
        server_socket = socket.create_server((host, port))
    except (OSError, OverflowError) as error:
        SOCKET_LOGGER.error(
            "Failed to bind listener",
            extra={
                "event": "listen_failed",
                "host": host,
                "port": port,
                "error_type": type(error).__name__,
            },
        )
        raise ListenFailure(
            f"cannot listen on {host}:{port}: {getattr(error, 'strerror', None) or error}"
        ) from error
    server_socket.settimeout(ACCEPT_POLL_SECONDS)
    return server_socket
