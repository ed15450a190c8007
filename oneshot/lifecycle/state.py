"""Server lifecycle state management."""

import enum
import logging
import socket
import threading
import time

from oneshot.domain.correlation_id import CorrelationLoggerAdapter

LIFECYCLE_LOGGER = CorrelationLoggerAdapter(logging.getLogger("oneshot.lifecycle"), {})


class LifecycleState(enum.Enum):
    """Phases a one-shot server moves through, in order."""

    STARTING = "starting"
    SERVING = "serving"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


_ALLOWED_TRANSITIONS = {
    LifecycleState.STARTING: {LifecycleState.SERVING, LifecycleState.TERMINATED},
    LifecycleState.SERVING: {LifecycleState.SHUTTING_DOWN},
    LifecycleState.SHUTTING_DOWN: {LifecycleState.TERMINATED},
    LifecycleState.TERMINATED: set(),
}


class ServerLifecycle:
    """Manages lifecycle state and worker thread tracking."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = LifecycleState.STARTING
        self._stop_event = threading.Event()
        self._workers: set[threading.Thread] = set()
        self._idle_sockets: set[socket.socket] = set()

    @property
    def state(self) -> LifecycleState:
        """Current lifecycle state."""
        with self._lock:
            return self._state

    def transition(self, new_state: LifecycleState) -> None:
        """Move to ``new_state``, rejecting transitions out of order."""
        with self._lock:
            previous = self._state
            if new_state not in _ALLOWED_TRANSITIONS[previous]:
                raise RuntimeError(
                    f"invalid lifecycle transition {previous.value} -> {new_state.value}"
                )
            self._state = new_state
        LIFECYCLE_LOGGER.debug(
            "Lifecycle state changed",
            extra={
                "event": "state_changed",
                "previous_state": previous.value,
                "state": new_state.value,
            },
        )

    def should_stop(self) -> bool:
        """Check if the server should stop accepting new connections."""
        return self._stop_event.is_set()

    def is_draining(self) -> bool:
        """Check if the server is in draining mode."""
        return self.state is LifecycleState.SHUTTING_DOWN

    def begin_draining(self) -> bool:
        """Enter SHUTTING_DOWN; return False if already draining or done.

        Connections still waiting for a request head are shut down so their
        workers finish instead of holding up the drain.
        """
        with self._lock:
            if self._state is not LifecycleState.SERVING:
                return False
            self._state = LifecycleState.SHUTTING_DOWN
            self._stop_event.set()
            idle_sockets = list(self._idle_sockets)
            self._idle_sockets.clear()
        LIFECYCLE_LOGGER.info(
            "Beginning graceful shutdown",
            extra={"event": "draining_started", "idle_connections": len(idle_sockets)},
        )
        for client_socket in idle_sockets:
            try:
                client_socket.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
        return True

    def track_idle(self, client_socket: socket.socket) -> bool:
        """Record a connection awaiting its request; False once draining."""
        with self._lock:
            if self._state is not LifecycleState.SERVING:
                return False
            self._idle_sockets.add(client_socket)
            return True

    def claim_request(self, client_socket: socket.socket) -> bool:
        """Mark a parsed request as in flight; False if draining began first."""
        with self._lock:
            if client_socket not in self._idle_sockets:
                return False
            self._idle_sockets.discard(client_socket)
            return self._state is LifecycleState.SERVING

    def release_idle(self, client_socket: socket.socket) -> None:
        """Forget a connection that closed without an in-flight request."""
        with self._lock:
            self._idle_sockets.discard(client_socket)

    def idle_connection_count(self) -> int:
        """Return the number of connections still waiting for a request."""
        with self._lock:
            return len(self._idle_sockets)

    def register_worker(self, thread: threading.Thread) -> None:
        """Register a worker thread for tracking."""
        with self._lock:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        """Remove a worker thread from tracking."""
        with self._lock:
            self._workers.discard(thread)

    def active_worker_count(self) -> int:
        """Return the number of currently tracked worker threads."""
        with self._lock:
            return len(self._workers)

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for all worker threads to complete within the timeout."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {w for w in self._workers if w.is_alive()}
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LIFECYCLE_LOGGER.warning(
                    "Shutdown timeout exceeded",
                    extra={
                        "event": "shutdown_timeout",
                        "remaining_workers": len(active_workers),
                    },
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break
