"""Worker thread logic for handling individual client connections."""

import logging
import socket
import threading

from oneshot.bootstrap.config import SECURITY_HEADERS
from oneshot.domain.correlation_id import (
    CorrelationLoggerAdapter,
    clear_correlation_id,
    generate_correlation_id,
    set_correlation_id,
)
from oneshot.domain.response_builders import bad_request_response, draining_response
from oneshot.pipeline.io import receive_request, send_response
from oneshot.transport.context import WorkerContext

WORKER_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("oneshot.transport.worker"), {}
)


def _refuse(client_socket: socket.socket, client_addr_str: str) -> None:
    WORKER_LOGGER.info(
        "Request refused while draining",
        extra={"event": "request_refused", "client": client_addr_str},
    )
    send_response(client_socket, draining_response(SECURITY_HEADERS))


def _serve_one(
    client_socket: socket.socket, client_addr_str: str, context: WorkerContext
) -> None:
    lifecycle = context.lifecycle
    if not lifecycle.track_idle(client_socket):
        _refuse(client_socket, client_addr_str)
        return

    try:
        request = receive_request(client_socket)
    except (ValueError, UnicodeDecodeError):
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={"event": "malformed_request", "client": client_addr_str},
        )
        send_response(client_socket, bad_request_response(SECURITY_HEADERS))
        return

    if request is None:
        WORKER_LOGGER.debug(
            "Client disconnected before sending a request",
            extra={"event": "client_disconnected", "client": client_addr_str},
        )
        return

    if not lifecycle.claim_request(client_socket):
        _refuse(client_socket, client_addr_str)
        return

    WORKER_LOGGER.info(
        "Request received",
        extra={
            "event": "request_received",
            "client": client_addr_str,
            "method": request.method,
            "route": request.path,
        },
    )
    context.handler.handle(client_socket, request)


def _cleanup_worker(
    context: WorkerContext, client_socket: socket.socket, client_addr_str: str
) -> None:
    context.lifecycle.release_idle(client_socket)
    context.lifecycle.cleanup_worker(threading.current_thread())

    try:
        client_socket.shutdown(socket.SHUT_WR)
    except OSError:
        pass
    client_socket.close()

    WORKER_LOGGER.debug(
        "Socket closed",
        extra={"event": "socket_closed", "client": client_addr_str},
    )
    clear_correlation_id()


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Serve a single request on the client socket, then close it."""
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    set_correlation_id(generate_correlation_id())
    client_socket.settimeout(context.socket_timeout)

    try:
        _serve_one(client_socket, client_addr_str, context)
    except (ConnectionError, TimeoutError, OSError) as error:
        WORKER_LOGGER.error(
            "Error handling client connection",
            extra={
                "event": "connection_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )
    except Exception as error:  # pylint: disable=broad-except
        WORKER_LOGGER.error(
            "Unexpected error in worker",
            extra={
                "event": "worker_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
                "error": str(error),
            },
            exc_info=True,
        )
    finally:
        _cleanup_worker(context, client_socket, client_addr_str)
