"""Error taxonomy for Forge.

Every failure Forge reports is a ``ForgeError`` tagged with an ``ErrorKind``.
The kind decides how far the failure travels:

- config: missing manifest or content root; aborts the triggering operation.
- parse: malformed front matter; aborts the discovery pass.
- render: template failure; isolated to one page during a full build.
- io: unreadable or unwritable file; fatal for the operation touching it.
- transport: failed send to one live-reload subscriber; logged and skipped.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class ErrorKind(str, Enum):
    CONFIG = "config"
    PARSE = "parse"
    RENDER = "render"
    IO = "io"
    TRANSPORT = "transport"


class ForgeError(Exception):
    """Base error with file context.

    Attributes:
        message: Human-readable error message.
        source_path: File the error relates to, when known.
        original_error: The underlying exception, if any.
    """

    kind: ErrorKind = ErrorKind.IO

    def __init__(
        self,
        message: str,
        source_path: Path | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.source_path = source_path
        self.original_error = original_error
        if source_path is not None:
            super().__init__(f"{source_path}: {message}")
        else:
            super().__init__(message)


class ConfigError(ForgeError):
    kind = ErrorKind.CONFIG


class FrontMatterError(ForgeError):
    """Raised when a front matter block cannot be parsed."""

    kind = ErrorKind.PARSE


class RenderError(ForgeError):
    """Raised when a template cannot be rendered.

    Attributes:
        url: URL of the page being rendered, when known.
    """

    kind = ErrorKind.RENDER

    def __init__(
        self,
        message: str,
        url: str | None = None,
        source_path: Path | None = None,
        original_error: Exception | None = None,
    ):
        self.url = url
        if url:
            message = f"{url}: {message}"
        super().__init__(message, source_path, original_error)


class ForgeIOError(ForgeError):
    kind = ErrorKind.IO


class TransportError(ForgeError):
    kind = ErrorKind.TRANSPORT


def error_kind(exc: BaseException) -> ErrorKind:
    """Classify an arbitrary exception into an ``ErrorKind``."""
    if isinstance(exc, ForgeError):
        return exc.kind
    if isinstance(exc, OSError):
        return ErrorKind.IO
    return ErrorKind.RENDER
