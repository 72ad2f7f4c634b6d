"""Export error taxonomy and classification.

Every failure that reaches a consumer is an ExportError carrying a
human-readable message plus whatever raw output the failed attempt
produced (PlantUML emits an error image alongside the message), so
the consumer can still show something useful.
"""

from __future__ import annotations

import asyncio
from enum import Enum

import httpx


class ExportError(Exception):
    """A render attempt failed."""

    def __init__(self, message: str, output: bytes = b"") -> None:
        super().__init__(message)
        self.message = message
        self.output = output


class ConfigurationError(ExportError):
    """A required setting (server address, jar) is missing."""


class RenderHTTPError(ExportError):
    """HTTP transport failure.

    ``response_error`` is True when the server answered but refused the
    request; False for network-level failures (refused connection,
    timeout, reset).
    """

    def __init__(
        self,
        message: str,
        output: bytes = b"",
        *,
        response_error: bool,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, output)
        self.response_error = response_error
        self.status_code = status_code


class ProcessError(ExportError):
    """A spawned engine process exited unsuccessfully."""

    def __init__(
        self,
        message: str,
        output: bytes = b"",
        *,
        returncode: int | None = None,
    ) -> None:
        super().__init__(message, output)
        self.returncode = returncode


class ErrorClass(Enum):
    CONFIGURATION = "configuration"  # fail fast, nothing to retry
    PROTOCOL_REJECTION = "protocol_rejection"  # server refused the request
    NETWORK = "network"  # refused, reset, DNS
    TIMEOUT = "timeout"
    PROCESS = "process"  # engine exited non-zero
    UNKNOWN = "unknown"


def classify_error(error: BaseException) -> ErrorClass:
    """Classify an error for logging and display."""
    if isinstance(error, ConfigurationError):
        return ErrorClass.CONFIGURATION
    if isinstance(error, ProcessError):
        return ErrorClass.PROCESS
    if isinstance(error, RenderHTTPError):
        if error.response_error:
            return ErrorClass.PROTOCOL_REJECTION
        cause = error.__cause__
        if isinstance(cause, httpx.TimeoutException):
            return ErrorClass.TIMEOUT
        return ErrorClass.NETWORK
    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return ErrorClass.TIMEOUT
    if isinstance(error, (httpx.TransportError, ConnectionError)):
        return ErrorClass.NETWORK
    return ErrorClass.UNKNOWN


def parse_error(error: BaseException | None) -> list[ExportError]:
    """Normalize anything a render task rejected with.

    Exception groups are flattened. Plain exceptions become an
    ExportError with no output, and a missing value becomes a generic
    message.
    """
    if error is None:
        return [ExportError("Unknown error")]
    if isinstance(error, BaseExceptionGroup):
        flat: list[ExportError] = []
        for sub in error.exceptions:
            flat.extend(parse_error(sub))
        return flat
    if isinstance(error, ExportError):
        return [error]
    return [ExportError(str(error) or type(error).__name__)]
