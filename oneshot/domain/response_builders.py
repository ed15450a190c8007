"""Pure HTTP response builders."""

import mimetypes
from typing import Iterable, Optional

from oneshot.domain.http_types import HttpResponse
from oneshot.domain.targets import FileTarget


def _content_type_for_name(name: str) -> str:
    mime_type, _ = mimetypes.guess_type(name)
    return mime_type or "application/octet-stream"


def content_disposition(display_name: str) -> str:
    """Return an attachment disposition quoting the file name.

    Control characters are dropped so a name cannot end the header line.
    """
    printable = "".join(ch for ch in display_name if ch >= " " and ch != "\x7f")
    quoted = printable.replace("\\", "\\\\").replace('"', '\\"')
    return f'attachment; filename="{quoted}"'


def redirect_response(url: str, security_headers: dict[str, str]) -> HttpResponse:
    """Return a 307 pointing the client at ``url``."""
    headers = {"Location": url, "Content-Length": "0", **security_headers}
    return HttpResponse("HTTP/1.1 307 Temporary Redirect", headers)


def attachment_response(
    target: FileTarget,
    body_iter: Optional[Iterable[bytes]],
    security_headers: dict[str, str],
) -> HttpResponse:
    """Return a 200 announcing ``target`` as a download.

    ``Content-Length`` is the size recorded at resolution time, not the
    number of bytes ``body_iter`` will eventually yield.
    """
    headers = {
        "Content-Type": _content_type_for_name(target.display_name),
        "Content-Disposition": content_disposition(target.display_name),
        "Content-Length": str(target.size_bytes),
        **security_headers,
    }
    return HttpResponse("HTTP/1.1 200 OK", headers, body_iter=body_iter)


def draining_response(security_headers: dict[str, str]) -> HttpResponse:
    """Return a 503 response for requests arriving during shutdown."""
    headers = {"Content-Type": "text/plain", **security_headers}
    return HttpResponse("HTTP/1.1 503 Service Unavailable", headers, b"draining")


def bad_request_response(security_headers: dict[str, str]) -> HttpResponse:
    """Return a 400 response for requests that could not be parsed."""
    headers = {"Content-Type": "text/plain", **security_headers}
    return HttpResponse("HTTP/1.1 400 Bad Request", headers, b"bad request")
