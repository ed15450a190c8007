"""Main connection acceptance loop."""

import logging
import socket
import threading

from oneshot.bootstrap.config import SECURITY_HEADERS
from oneshot.domain.correlation_id import CorrelationLoggerAdapter
from oneshot.domain.response_builders import draining_response
from oneshot.pipeline.io import send_response
from oneshot.transport.context import WorkerContext
from oneshot.transport.worker import handle_client

ACCEPT_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("oneshot.transport.accept"), {}
)


def _refuse_while_draining(client_socket: socket.socket) -> None:
    try:
        send_response(client_socket, draining_response(SECURITY_HEADERS))
    except OSError:
        pass
    finally:
        client_socket.close()


def _dispatch(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Start a worker thread for an accepted connection and track it."""
    if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ACCEPT_LOGGER.debug(
            "Client connection accepted",
            extra={
                "event": "client_accepted",
                "client": f"{client_address[0]}:{client_address[1]}",
            },
        )
    thread = threading.Thread(
        target=handle_client,
        args=(client_socket, client_address, context),
        name=f"oneshot-worker-{client_address[1]}",
        daemon=True,
    )
    thread.start()
    context.lifecycle.register_worker(thread)


def run_accept_loop(server_socket: socket.socket, context: WorkerContext) -> None:
    """Accept connections until the lifecycle asks to stop, then close the listener.

    ``server_socket`` must carry a timeout so the stop flag is polled.
    """
    lifecycle = context.lifecycle
    try:
        while True:
            if lifecycle.should_stop():
                break
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue

            if lifecycle.is_draining():
                _refuse_while_draining(client_socket)
                continue

            _dispatch(client_socket, client_address, context)
    finally:
        server_socket.close()
        ACCEPT_LOGGER.info("Listener closed", extra={"event": "listener_closed"})
