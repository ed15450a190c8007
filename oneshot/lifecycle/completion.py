"""Single-fire completion signal between the handler and the coordinator."""

import logging
import threading
from typing import Optional

from oneshot.domain.correlation_id import CorrelationLoggerAdapter

COMPLETION_LOGGER = CorrelationLoggerAdapter(
    logging.getLogger("oneshot.lifecycle.completion"), {}
)


class CompletionSignal:
    """Fires at most once; later fires are no-ops.

    The ``_fired`` flag is the close guard, checked and set under the lock.
    The event is what waiters block on.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._fired = False
        self._reason: Optional[str] = None
        self._event = threading.Event()

    def fire(self, reason: str = "request_complete") -> bool:
        """Fire the signal. Return True only for the call that fired it."""
        with self._lock:
            if self._fired:
                COMPLETION_LOGGER.debug(
                    "Completion signal already fired",
                    extra={"event": "completion_refire_ignored", "reason": reason},
                )
                return False
            self._fired = True
            self._reason = reason
        self._event.set()
        COMPLETION_LOGGER.info(
            "Completion signal fired",
            extra={"event": "completion_fired", "reason": reason},
        )
        return True

    def is_fired(self) -> bool:
        """Return True once the signal has fired."""
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        """Why the signal fired, or None while pending."""
        with self._lock:
            return self._reason

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until fired or ``timeout`` elapses; return whether it fired."""
        return self._event.wait(timeout)
