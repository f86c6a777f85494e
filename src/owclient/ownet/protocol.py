"""
owserver protocol definitions: message types, header layout and codec.

Protocol format:
- Transport: TCP, default port 4304
- Header: 24 bytes, six big-endian signed 32-bit integers
  version, payload, type (request) / return code (response), flags, size, offset
- Request body: nul-terminated path, followed by raw data for WRITE
- Response body: ``payload`` bytes of data (nothing when payload <= 0)

A response whose payload length is negative is a keepalive ("ping") that
owserver sends while a slow bus operation is in progress; the real reply
follows on the same connection.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

from owclient.errors import ArgumentError, ProtocolError

# =============================================================================
# Protocol Constants
# =============================================================================

HEADER = struct.Struct(">iiiiii")
HEADER_SIZE = HEADER.size  # 24

# Version field of every request this client sends
PROTOCOL_VERSION = 0

# Largest reply a READ may return (matches the C owserver clients)
DEFAULT_SIZE = 65536

# Largest payload accepted in a single reply frame: 1 MB
MAX_PAYLOAD = 1024 * 1024

# Keepalive frames tolerated before giving up on a reply
MAX_PINGS = 1000

INT32_MIN = -(2**31)
UINT32_MAX = 2**32 - 1


class MessageType(IntEnum):
    """owserver request message types."""

    NOP = 1
    READ = 2
    WRITE = 3
    DIR = 4
    SIZE = 5
    PRESENT = 6
    DIRALL = 7
    GET = 8
    DIRALLSLASH = 9
    GETSLASH = 10


# =============================================================================
# Header Models
# =============================================================================


def _to_int32(value: int) -> int:
    """Reinterpret an unsigned 32-bit value as signed; pass signed values through."""
    if not INT32_MIN <= value <= UINT32_MAX:
        raise ArgumentError(
            f"Header field out of 32-bit range: {value}", details={"value": value}
        )
    return value - 2**32 if value > 2**31 - 1 else value


@dataclass(frozen=True)
class RequestHeader:
    """
    Header of a message sent to owserver.

    Attributes:
        payload: Length of the body (path + nul + data).
        message_type: Requested operation.
        flags: Flag word from the client configuration.
        size: Maximum reply size (READ) or length of the data (WRITE).
        offset: Byte offset for partial reads.
        version: Protocol version, always 0 for clients.
    """

    payload: int
    message_type: int
    flags: int
    size: int = DEFAULT_SIZE
    offset: int = 0
    version: int = PROTOCOL_VERSION

    def pack(self) -> bytes:
        """Encode the header as 24 network-order bytes."""
        return encode_header(
            self.version,
            self.payload,
            self.message_type,
            self.flags,
            self.size,
            self.offset,
        )


@dataclass(frozen=True)
class ResponseHeader:
    """
    Header of a message received from owserver.

    Attributes:
        version: Protocol version echoed by the server.
        payload: Length of the data following the header (negative: ping).
        ret: Return code; negative values are ``-errno``.
        flags: Flag word echoed by the server.
        size: Size of the meaningful data in the payload.
        offset: Offset of the data.
    """

    version: int
    payload: int
    ret: int
    flags: int
    size: int
    offset: int

    @property
    def is_ping(self) -> bool:
        """Keepalive frame: no data, the real reply is still coming."""
        return self.payload < 0

    @property
    def is_error(self) -> bool:
        """owserver reported a failure in the return code."""
        return self.ret < 0

    @property
    def has_payload(self) -> bool:
        return self.payload > 0


@dataclass(frozen=True)
class Frame:
    """A response header together with its payload bytes."""

    header: ResponseHeader
    payload: bytes = b""

    @property
    def data(self) -> bytes:
        """Payload trimmed to the size the server declared, when smaller."""
        size = self.header.size
        if 0 <= size < len(self.payload):
            return self.payload[:size]
        return self.payload


# =============================================================================
# Codec
# =============================================================================


def encode_header(
    version: int,
    payload: int,
    type_or_ret: int,
    flags: int,
    size: int,
    offset: int,
) -> bytes:
    """
    Pack the six header fields into 24 big-endian bytes.

    Values in the unsigned 32-bit range are stored as their signed
    two's-complement equivalent so the flag word can use bit 31.
    """
    return HEADER.pack(
        *(_to_int32(v) for v in (version, payload, type_or_ret, flags, size, offset))
    )


def decode_response_header(data: bytes) -> ResponseHeader:
    """
    Parse a 24-byte response header.

    Args:
        data: Exactly HEADER_SIZE bytes.

    Returns:
        The decoded header.

    Raises:
        ProtocolError: If ``data`` has the wrong length.
    """
    if len(data) != HEADER_SIZE:
        raise ProtocolError(
            f"Header must be {HEADER_SIZE} bytes, got {len(data)}",
            details={"length": len(data)},
        )
    version, payload, ret, flags, size, offset = HEADER.unpack(data)
    header = ResponseHeader(
        version=version,
        payload=payload,
        ret=ret,
        flags=flags,
        size=size,
        offset=offset,
    )
    if header.payload > MAX_PAYLOAD:
        raise ProtocolError(
            f"Reply payload too large: {header.payload} bytes",
            details={"max_size": MAX_PAYLOAD},
        )
    return header


def _path_bytes(path: str | bytes) -> bytes:
    """Encode a path for the wire, rejecting embedded nul bytes."""
    raw = path.encode("utf-8") if isinstance(path, str) else bytes(path)
    if b"\x00" in raw:
        raise ArgumentError(
            "Path contains a nul byte", details={"path": raw.decode("utf-8", "replace")}
        )
    return raw


def encode_request(
    message_type: MessageType | int,
    path: str | bytes,
    flags: int,
    body: bytes = b"",
    size: int | None = None,
    offset: int = 0,
) -> bytes:
    """
    Build a complete request: header, nul-terminated path, optional data.

    Args:
        message_type: Operation to request.
        path: 1-Wire path, e.g. ``/10.67C6697351FF/temperature``.
        flags: Flag word (see ``ClientConfig.compute_flags``).
        body: Data to write (WRITE only).
        size: Size field; defaults to ``len(body)`` when writing and
            DEFAULT_SIZE otherwise.
        offset: Offset field.

    Returns:
        The encoded request bytes.

    Raises:
        ArgumentError: If the path contains a nul byte.
    """
    content = _path_bytes(path) + b"\x00" + bytes(body)
    if size is None:
        size = len(body) if body else DEFAULT_SIZE

    header = RequestHeader(
        payload=len(content),
        message_type=int(message_type),
        flags=flags,
        size=size,
        offset=offset,
    )
    return header.pack() + content
