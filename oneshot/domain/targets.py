"""Serving target variants."""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class FileTarget:
    """A local file captured at resolution time."""

    path: str
    display_name: str
    size_bytes: int


@dataclass(frozen=True)
class RedirectTarget:
    """A URL every client is redirected to."""

    url: str


Target = Union[FileTarget, RedirectTarget]
