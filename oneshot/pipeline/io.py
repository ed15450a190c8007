"""HTTP Input/Output operations."""

import logging
import socket
import urllib.parse
from typing import Optional, Tuple

from oneshot.bootstrap.config import HEADER_DELIMITER, MAX_HEADER_BYTES
from oneshot.domain.correlation_id import (
    CorrelationLoggerAdapter,
    adopt_request_id,
    get_correlation_id,
)
from oneshot.domain.http_types import HttpRequest, HttpResponse

IO_LOGGER = CorrelationLoggerAdapter(logging.getLogger("oneshot.io"), {})


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        if ":" in line:
            name, value = line.split(":", 1)
            parsed[name.strip().lower()] = value.strip()
    return parsed


def parse_request_line(request_line: str) -> Tuple[str, str]:
    """Parse the HTTP method and decoded path from the request line."""
    try:
        method, target, version = request_line.split(" ", 2)
    except ValueError as exc:
        raise ValueError("Invalid request line") from exc
    if not method or not version.startswith("HTTP/"):
        raise ValueError("Invalid request line")

    parsed_target = urllib.parse.urlsplit(target)
    path = urllib.parse.unquote(parsed_target.path) or "/"
    return method.upper(), path


def receive_request(client_socket: socket.socket) -> Optional[HttpRequest]:
    """Read the request head from the socket.

    Returns None when the client disconnects before a full head arrives.
    Any request body is left unread; the connection is closed after one
    response anyway.
    """
    buffer = b""
    while HEADER_DELIMITER not in buffer:
        chunk = client_socket.recv(4096)
        if not chunk:
            return None
        buffer += chunk
        if len(buffer) > MAX_HEADER_BYTES:
            raise ValueError("Request head too large")

    header_block, _ = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode("latin-1").split("\r\n")
    method, path = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    incoming_request_id = headers.get("x-request-id")
    if incoming_request_id:
        adopt_request_id(incoming_request_id)

    IO_LOGGER.debug("Parsed request", extra={"method": method, "route": path})
    return HttpRequest(method, path, headers)


def send_response(client_socket: socket.socket, response: HttpResponse) -> int:
    """Serialize and send the HTTP response; return body bytes written.

    The connection is always marked for closing. Errors raised while
    streaming ``body_iter`` propagate to the caller after the head is sent.
    """
    headers = dict(response.headers)

    correlation_id = get_correlation_id()
    if correlation_id:
        headers["X-Request-ID"] = correlation_id

    headers.setdefault("Content-Length", str(len(response.body)))
    headers["Connection"] = "close"

    header_lines = [response.status_line]
    header_lines.extend(f"{name}: {value}" for name, value in headers.items())
    header_block = (
        "\r\n".join(header_lines).encode("utf-8", "surrogateescape") + b"\r\n\r\n"
    )

    bytes_out = 0
    if response.body_iter is not None:
        client_socket.sendall(header_block)
        for chunk in response.body_iter:
            if not chunk:
                continue
            client_socket.sendall(chunk)
            bytes_out += len(chunk)
    else:
        client_socket.sendall(header_block + response.body)
        bytes_out = len(response.body)
    IO_LOGGER.debug(
        "Sent response",
        extra={"status_code": response.status_code, "bytes_out": bytes_out},
    )
    return bytes_out
