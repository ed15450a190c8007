"""The single route: redirect to the URL or stream the file, then signal."""

import logging
import socket
import time
from typing import BinaryIO, Iterator, Optional

from oneshot.bootstrap.config import SECURITY_HEADERS, ServeConfig
from oneshot.domain.correlation_id import CorrelationLoggerAdapter
from oneshot.domain.http_types import HttpRequest, HttpResponse
from oneshot.domain.response_builders import attachment_response, redirect_response
from oneshot.domain.targets import FileTarget, RedirectTarget
from oneshot.lifecycle.completion import CompletionSignal
from oneshot.pipeline.io import send_response

HANDLER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("oneshot.handlers"), {})

CHUNK_SIZE = 64 * 1024


def stream_handle(file_handle: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    """Yield the rest of an open binary handle in fixed-size chunks."""
    while True:
        chunk = file_handle.read(chunk_size)
        if not chunk:
            break
        yield chunk


class OneShotHandler:
    """Answers every request with the configured target.

    Owns the file handle opened at startup and the completion signal; both
    are passed in rather than looked up globally.
    """

    def __init__(
        self,
        config: ServeConfig,
        completion: CompletionSignal,
        file_handle: Optional[BinaryIO] = None,
    ) -> None:
        if isinstance(config.target, FileTarget) and file_handle is None:
            raise ValueError("a file target needs an open file handle")
        self.config = config
        self.completion = completion
        self._file_handle = file_handle

    def build_response(self, request: HttpRequest) -> HttpResponse:
        """Return the redirect or attachment response for ``request``."""
        target = self.config.target
        if isinstance(target, RedirectTarget):
            return redirect_response(target.url, SECURITY_HEADERS)
        body_iter = None
        if request.method != "HEAD":
            body_iter = stream_handle(self._file_handle)
        return attachment_response(target, body_iter, SECURITY_HEADERS)

    def handle(self, client_socket: socket.socket, request: HttpRequest) -> int:
        """Send the response, release the file, and fire the completion signal.

        Streaming failures after the head has been sent truncate the body and
        are not retried. Returns the status code sent.
        """
        start = time.monotonic()
        response = self.build_response(request)
        bytes_out = 0
        try:
            bytes_out = send_response(client_socket, response)
        except (OSError, ValueError) as error:
            HANDLER_LOGGER.warning(
                "Response interrupted",
                extra={
                    "event": "response_interrupted",
                    "route": request.path,
                    "error_type": type(error).__name__,
                },
            )
        finally:
            if self._file_handle is not None:
                self._file_handle.close()
            self.completion.fire()

        extra = {
            "event": "response_sent",
            "method": request.method,
            "route": request.path,
            "status_code": response.status_code,
            "bytes_out": bytes_out,
            "duration_ms": round((time.monotonic() - start) * 1000, 2),
        }
        target = self.config.target
        if isinstance(target, RedirectTarget):
            extra["location"] = target.url
        else:
            extra["display_name"] = target.display_name
            extra["size_bytes"] = target.size_bytes
        HANDLER_LOGGER.info("Response sent", extra=extra)
        return response.status_code
