"""Local IPv4 address discovery for the startup banner."""

import ipaddress
import logging
import socket
from typing import Sequence

import psutil

from oneshot.domain.correlation_id import CorrelationLoggerAdapter
from oneshot.domain.targets import FileTarget, Target

ADDRESS_LOGGER = CorrelationLoggerAdapter(logging.getLogger("oneshot.network"), {})


def local_ipv4_addresses() -> list[str]:
    """Return non-loopback IPv4 addresses across all interfaces.

    Display only. Enumeration errors are logged and yield an empty list.
    """
    try:
        interfaces = psutil.net_if_addrs()
    except (OSError, psutil.Error) as error:
        ADDRESS_LOGGER.warning(
            "Interface enumeration failed",
            extra={"event": "address_lookup_failed", "error_type": type(error).__name__},
        )
        return []

    addresses: list[str] = []
    for entries in interfaces.values():
        for entry in entries:
            if entry.family != socket.AF_INET:
                continue
            try:
                ip = ipaddress.IPv4Address(entry.address)
            except ValueError:
                continue
            if ip.is_loopback:
                continue
            if entry.address not in addresses:
                addresses.append(entry.address)
    return addresses


def format_banner(target: Target, port: int, addresses: Sequence[str]) -> str:
    """Render the operator-facing startup message."""
    if isinstance(target, FileTarget):
        info = f"Serving '{target.display_name}'"
    else:
        info = f"Forwarding to '{target.url}'"

    if len(addresses) == 1:
        return f"{info} at http://{addresses[0]}:{port}..."
    return (
        f"{info} on port {port}...\n"
        f"Alternative IPs: [{' '.join(addresses)}]"
    )
