#!/usr/bin/env python3
"""Serve a single file (or redirect to a URL) for one request, then exit."""

import logging
import signal
import sys
from typing import Optional

from oneshot.bootstrap.config import PROG_NAME, parse_cli_args, resolve_config
from oneshot.bootstrap.logging_setup import configure_logging
from oneshot.domain.correlation_id import CorrelationLoggerAdapter
from oneshot.domain.errors import OneShotError
from oneshot.lifecycle.coordinator import OneShotServer

SERVER_LOGGER = CorrelationLoggerAdapter(logging.getLogger("oneshot.server"), {})


def _fail(error: OneShotError) -> int:
    print(f"{PROG_NAME}: error: {error}", file=sys.stderr)
    return error.exit_code


def run(argv: list[str]) -> int:
    """Resolve arguments, serve once, and return the process exit code."""
    args = parse_cli_args(argv)
    configure_logging(
        args.log_level, args.log_destination, use_json=args.log_format == "json"
    )

    try:
        config = resolve_config(args)
    except OneShotError as error:
        SERVER_LOGGER.error(
            "Target resolution failed",
            extra={"event": "resolution_failed", "error_type": type(error).__name__},
        )
        return _fail(error)

    server = OneShotServer(config)

    def shutdown_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info(
            "Received shutdown signal", extra={"event": "signal_received", "signal": signum}
        )
        server.request_shutdown("signal")

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    try:
        server.serve()
    except OneShotError as error:
        SERVER_LOGGER.critical(
            "Server failed",
            extra={"event": "server_failed", "error_type": type(error).__name__},
        )
        return _fail(error)
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    """Console entry point."""
    sys.exit(run(sys.argv[1:] if argv is None else argv))


if __name__ == "__main__":
    main()
