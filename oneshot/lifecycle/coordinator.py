"""Drives a one-shot server from startup through graceful shutdown."""

import logging
import socket
import threading
from typing import BinaryIO, Callable, Optional

from oneshot.bootstrap.config import ServeConfig
from oneshot.bootstrap.socket_factory import create_server_socket
from oneshot.domain.correlation_id import CorrelationLoggerAdapter
from oneshot.domain.errors import NotFound, ShutdownFailure
from oneshot.domain.targets import FileTarget
from oneshot.handlers.oneshot_handler import OneShotHandler
from oneshot.lifecycle.completion import CompletionSignal
from oneshot.lifecycle.state import LifecycleState, ServerLifecycle
from oneshot.network.addresses import format_banner, local_ipv4_addresses
from oneshot.transport.accept_loop import run_accept_loop
from oneshot.transport.context import WorkerContext

COORDINATOR_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("oneshot.lifecycle.coordinator"), {}
)


def _print_banner(message: str) -> None:
    print(message, flush=True)


class OneShotServer:
    """Serve one request, then shut down.

    ``serve()`` blocks the calling thread through every lifecycle phase and
    returns once shutdown has completed. Startup errors (``NotFound``,
    ``ListenFailure``) and ``ShutdownFailure`` propagate to the caller.
    """

    def __init__(
        self,
        config: ServeConfig,
        announce: Callable[[str], None] = _print_banner,
    ) -> None:
        self.config = config
        self.lifecycle = ServerLifecycle()
        self.completion = CompletionSignal()
        self._announce = announce
        self._file_handle: Optional[BinaryIO] = None
        self._server_socket: Optional[socket.socket] = None
        self._context: Optional[WorkerContext] = None
        self._serving = threading.Event()
        self.bound_port: Optional[int] = None

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        return self.lifecycle.state

    def wait_until_serving(self, timeout: Optional[float] = None) -> bool:
        """Block until the listener accepts connections."""
        return self._serving.wait(timeout)

    def request_shutdown(self, reason: str = "interrupted") -> bool:
        """Fire the completion signal from outside the handler."""
        return self.completion.fire(reason)

    def _open_target(self) -> None:
        target = self.config.target
        if not isinstance(target, FileTarget):
            return
        try:
            self._file_handle = open(target.path, "rb")  # pylint: disable=consider-using-with
        except OSError as error:
            raise NotFound(f"{target.path}: {error.strerror or error}") from error

    def _close_target(self) -> None:
        if self._file_handle is not None:
            self._file_handle.close()

    def start(self) -> None:
        """Open the target, bind the listener and announce; enter SERVING."""
        self._open_target()
        try:
            self._server_socket = create_server_socket(self.config.host, self.config.port)
        except Exception:
            self._close_target()
            self.lifecycle.transition(LifecycleState.TERMINATED)
            raise
        self.bound_port = self._server_socket.getsockname()[1]

        handler = OneShotHandler(self.config, self.completion, self._file_handle)
        self._context = WorkerContext(
            handler=handler,
            lifecycle=self.lifecycle,
            socket_timeout=self.config.socket_timeout,
        )

        addresses = local_ipv4_addresses()
        self._announce(format_banner(self.config.target, self.bound_port, addresses))
        COORDINATOR_LOGGER.info(
            "Server listening for connections",
            extra={
                "event": "server_listening",
                "host": self.config.host,
                "port": self.bound_port,
                "target_kind": type(self.config.target).__name__,
                "addresses": addresses,
            },
        )
        self.lifecycle.transition(LifecycleState.SERVING)
        self._serving.set()

    def _await_completion(self) -> None:
        self.completion.wait()
        COORDINATOR_LOGGER.info(
            "Shutdown requested",
            extra={"event": "shutdown_requested", "reason": self.completion.reason},
        )
        self.lifecycle.begin_draining()

    def serve(self) -> None:
        """Run until the first request completes and shutdown finishes."""
        if self.state is LifecycleState.STARTING:
            self.start()

        watcher = threading.Thread(
            target=self._await_completion, name="oneshot-shutdown", daemon=True
        )
        watcher.start()

        try:
            run_accept_loop(self._server_socket, self._context)
            watcher.join()

            grace = self.config.shutdown_grace_seconds
            COORDINATOR_LOGGER.info(
                "Waiting for active connections to complete",
                extra={"event": "shutdown_waiting", "grace_seconds": grace},
            )
            if not self.lifecycle.wait_for_workers(grace):
                raise ShutdownFailure(
                    f"in-flight requests did not finish within {grace}s"
                )
        finally:
            self._close_target()

        self.lifecycle.transition(LifecycleState.TERMINATED)
        COORDINATOR_LOGGER.info("Server shutdown complete", extra={"event": "server_stopped"})
