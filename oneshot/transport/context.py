"""Context object shared across worker threads."""

from dataclasses import dataclass

from oneshot.bootstrap.config import DEFAULT_SOCKET_TIMEOUT
from oneshot.handlers.oneshot_handler import OneShotHandler
from oneshot.lifecycle.state import ServerLifecycle


@dataclass
class WorkerContext:
    """Dependencies shared across handler threads."""

    handler: OneShotHandler
    lifecycle: ServerLifecycle
    socket_timeout: float = DEFAULT_SOCKET_TIMEOUT
