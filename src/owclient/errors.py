"""
Error types for the owserver client.

This module defines the OwError base class and one subclass per failure kind.
Codec, transport and client code raise these and never swallow them; the
command-line layer is the only place that turns them into output and an exit
status.

Error kinds:
- NetworkError: connection refused/reset, short read, timeout.
- ArgumentError: bad input detected before any network activity.
- ProtocolError: malformed header, separator collision, runaway pings.
- ServerError: a well-formed reply carrying a negative return code.
- NotFoundError: the ServerError for ENOENT.
- TextError: reply bytes that cannot be shown as requested.
"""

from __future__ import annotations

import errno as errno_codes
import os
from typing import Any


class OwError(Exception):
    """
    Base exception class for owserver client errors.

    Attributes:
        error_code: Internal error code string (e.g., "io", "invalid_argument",
            "protocol", "server", "not_found", "text").
        message: Human-readable error message.
        details: Optional structured details (e.g., path, address, return code).

    Example:
        >>> raise OwError(
        ...     error_code="protocol",
        ...     message="Header must be 24 bytes",
        ...     details={"length": 12},
        ... )
    """

    def __init__(
        self,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize an OwError.

        Args:
            error_code: Internal error code string identifying the error category.
            message: Human-readable error message.
            details: Optional dictionary with structured error details.
        """
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.details = details or {}

    def __repr__(self) -> str:
        """Return a detailed string representation."""
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code!r}, "
            f"message={self.message!r}, "
            f"details={self.details!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the error to a dictionary for serialization.

        Returns:
            Dictionary with error_code, message, and details.
        """
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class NetworkError(OwError):
    """
    Error raised when talking to owserver fails at the I/O level.

    Covers refused and reset connections, timeouts and a peer that closes
    the socket in the middle of a header or payload.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a NetworkError."""
        super().__init__(error_code="io", message=message, details=details)


class ArgumentError(OwError):
    """
    Error raised for input that cannot be sent to owserver.

    Raised before a connection is opened: a path with an embedded nul byte,
    an odd-length or non-hex write value, an out-of-range option.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize an ArgumentError."""
        super().__init__(
            error_code="invalid_argument", message=message, details=details
        )


class ProtocolError(OwError):
    """Error raised when owserver replies with something this client cannot parse."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a ProtocolError."""
        super().__init__(error_code="protocol", message=message, details=details)


class ServerError(OwError):
    """
    Error raised when owserver reports a failure.

    owserver puts ``-errno`` in the return code field of the reply header.

    Attributes:
        errno: The positive system error number reported by owserver.
    """

    def __init__(
        self,
        errno: int,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        error_code: str = "server",
    ) -> None:
        """Initialize a ServerError."""
        self.errno = errno
        if message is None:
            message = f"owserver error {errno}: {os.strerror(errno)}"
        super().__init__(
            error_code=error_code,
            message=message,
            details={"errno": errno, **(details or {})},
        )


class NotFoundError(ServerError):
    """Error raised when owserver reports that a path does not exist (ENOENT)."""

    def __init__(
        self, message: str | None = None, details: dict[str, Any] | None = None
    ) -> None:
        """Initialize a NotFoundError."""
        super().__init__(
            errno_codes.ENOENT,
            message=message,
            details=details,
            error_code="not_found",
        )


class TextError(OwError):
    """Error raised when reply bytes cannot be decoded as text."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize a TextError."""
        super().__init__(error_code="text", message=message, details=details)


def server_error(ret: int, path: str | None = None) -> ServerError:
    """
    Build the error matching a negative owserver return code.

    Args:
        ret: Return code from the reply header (negative).
        path: Optional path the request was about, added to details.

    Returns:
        NotFoundError for ``-ENOENT``, ServerError otherwise.
    """
    details = {"path": path} if path is not None else None
    code = -ret
    if code == errno_codes.ENOENT:
        return NotFoundError(
            message=f"No such path: {path}" if path else None, details=details
        )
    return ServerError(code, details=details)
