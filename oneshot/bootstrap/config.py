"""Serve configuration and CLI argument parsing."""

import argparse
import logging
import os
import stat
from dataclasses import dataclass
from typing import Optional

from oneshot.domain.correlation_id import CorrelationLoggerAdapter
from oneshot.domain.errors import InvalidTarget, MissingArgument, NotFound
from oneshot.domain.targets import FileTarget, RedirectTarget, Target

CONFIG_LOGGER = CorrelationLoggerAdapter(logging.getLogger("oneshot.config"), {})

PROG_NAME = "oneshot-serve"
DEFAULT_PORT = 8888
DEFAULT_HOST = "0.0.0.0"
DEFAULT_SOCKET_TIMEOUT = 60
DEFAULT_SHUTDOWN_GRACE_SECONDS = 30
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_DESTINATION = "stderr"
DEFAULT_LOG_FORMAT = "json"

HEADER_DELIMITER = b"\r\n\r\n"
MAX_HEADER_BYTES = 64 * 1024
REDIRECT_PREFIX = "http"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "Cache-Control": "no-store",
}


@dataclass(frozen=True)
class ServeConfig:
    """Resolved configuration for a single serve run."""

    port: int
    target: Target
    host: str = DEFAULT_HOST
    socket_timeout: int = DEFAULT_SOCKET_TIMEOUT
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS


def _port_number(value: str) -> int:
    port = int(value)
    if not 0 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port must be 0-65535, got {port}")
    return port


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for the serve run."""
    parser = argparse.ArgumentParser(
        prog=PROG_NAME,
        description="Serve a single file (or redirect to a URL) once, then exit.",
    )
    parser.add_argument(
        "target",
        nargs="?",
        help="File to serve, or a URL starting with http to redirect to",
    )
    parser.add_argument(
        "-p", "--port", type=_port_number, default=DEFAULT_PORT, help="Listen port"
    )
    parser.add_argument("--host", default=DEFAULT_HOST, help="Bind address")
    parser.add_argument(
        "--log-level",
        default=DEFAULT_LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=DEFAULT_LOG_DESTINATION,
        help="stderr, stdout or a file path",
    )
    parser.add_argument(
        "--log-format",
        default=DEFAULT_LOG_FORMAT,
        choices=["json", "text"],
        type=str.lower,
    )
    parser.add_argument(
        "--socket-timeout",
        type=int,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Socket timeout in seconds for request processing",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Grace period in seconds for graceful shutdown",
    )
    return parser.parse_args(argv)


def is_redirect_argument(argument: str) -> bool:
    """Return True when the argument names a redirect URL rather than a path."""
    return argument.startswith(REDIRECT_PREFIX)


def resolve_target(argument: Optional[str]) -> Target:
    """Turn the positional argument into a serving target.

    URLs are never checked against the filesystem. Paths are stat'ed once;
    the size captured here is what gets announced as ``Content-Length``.
    """
    if not argument:
        raise MissingArgument("Missing file or URL")

    if is_redirect_argument(argument):
        return RedirectTarget(url=argument)

    try:
        stat_result = os.stat(argument)
    except OSError as error:
        raise NotFound(f"{argument}: {error.strerror or error}") from error

    if stat.S_ISDIR(stat_result.st_mode):
        raise InvalidTarget(f"{argument}: must be a file, not a directory")

    display_name = os.path.basename(os.path.normpath(argument))
    return FileTarget(
        path=argument,
        display_name=display_name,
        size_bytes=stat_result.st_size,
    )


def resolve_config(args: argparse.Namespace) -> ServeConfig:
    """Build an immutable ServeConfig from parsed CLI arguments."""
    target = resolve_target(args.target)
    config = ServeConfig(
        port=args.port,
        target=target,
        host=args.host,
        socket_timeout=args.socket_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
    )
    CONFIG_LOGGER.debug(
        "Configuration resolved",
        extra={
            "event": "config_resolved",
            "port": config.port,
            "host": config.host,
            "target_kind": type(target).__name__,
        },
    )
    return config
