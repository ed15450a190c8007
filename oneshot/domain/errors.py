"""Error taxonomy for target resolution, startup and shutdown failures."""


class OneShotError(Exception):
    """Base class for fatal errors surfaced to the operator."""

    exit_code = 1


class MissingArgument(OneShotError):
    """No file path or URL was supplied."""


class NotFound(OneShotError):
    """The target path could not be stat'ed or opened."""


class InvalidTarget(OneShotError):
    """The target path exists but cannot be served (e.g. a directory)."""


class ListenFailure(OneShotError):
    """The listening socket could not be created."""


class ShutdownFailure(OneShotError):
    """Graceful shutdown did not complete."""
