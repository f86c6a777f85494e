"""
TCP transport for owserver requests.

Every operation opens its own connection, sends one request, reads the
reply frame(s) and closes the socket. The protocol carries no request id,
so replies on a shared socket could not be matched to their requests; one
connection per call keeps the client stateless and thread-safe.

No client-side timeout is applied unless one is configured: a server that
never answers blocks the calling thread. Closing the connection from another
thread is the only way to abort a call in progress.
"""

from __future__ import annotations

import socket
from typing import TYPE_CHECKING

from owclient.errors import NetworkError, ProtocolError
from owclient.logging import get_logger
from owclient.ownet.protocol import (
    HEADER_SIZE,
    MAX_PINGS,
    Frame,
    ResponseHeader,
    decode_response_header,
)

if TYPE_CHECKING:
    from types import TracebackType

logger = get_logger(__name__)


class Connection:
    """
    A single TCP connection to owserver.

    Example::

        with Connection("localhost", 4304) as conn:
            conn.send(request_bytes)
            frame = conn.read_frame()
    """

    def __init__(self, host: str, port: int, timeout: float | None = None) -> None:
        """
        Initialize the connection (not yet opened).

        Args:
            host: owserver host name or address.
            port: owserver TCP port.
            timeout: Socket timeout in seconds; None blocks indefinitely.
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self._sock: socket.socket | None = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def is_open(self) -> bool:
        return self._sock is not None

    def open(self) -> None:
        """
        Connect to owserver.

        Raises:
            NetworkError: If the connection cannot be established.
        """
        if self._sock is not None:
            return
        try:
            self._sock = socket.create_connection(
                (self.host, self.port), timeout=self.timeout
            )
        except OSError as e:
            raise NetworkError(
                f"Cannot connect to owserver at {self.address}: {e}",
                details={"address": self.address},
            ) from e
        logger.debug("Connected to owserver", extra={"address": self.address})

    def close(self) -> None:
        """Close the socket. Safe to call more than once."""
        sock, self._sock = self._sock, None
        if sock is None:
            return
        try:
            sock.close()
        finally:
            logger.debug("Connection closed", extra={"address": self.address})

    def __enter__(self) -> Connection:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _socket(self) -> socket.socket:
        if self._sock is None:
            raise NetworkError(
                "Connection is not open", details={"address": self.address}
            )
        return self._sock

    def send(self, data: bytes) -> None:
        """
        Write a whole request.

        Raises:
            NetworkError: If the peer resets or the write times out.
        """
        try:
            # sendall keeps writing until every byte is accepted or the socket fails
            self._socket().sendall(data)
        except OSError as e:
            raise NetworkError(
                f"Send to owserver failed: {e}", details={"address": self.address}
            ) from e

    def recv_exact(self, length: int, *, allow_eof: bool = False) -> bytes | None:
        """
        Read exactly ``length`` bytes.

        Args:
            length: Number of bytes to read.
            allow_eof: Return None instead of failing when the peer closed
                the connection before sending anything.

        Raises:
            NetworkError: On a socket error or a short read.
        """
        sock = self._socket()
        chunks = bytearray()
        while len(chunks) < length:
            try:
                chunk = sock.recv(length - len(chunks))
            except OSError as e:
                raise NetworkError(
                    f"Receive from owserver failed: {e}",
                    details={"address": self.address},
                ) from e
            if not chunk:
                if allow_eof and not chunks:
                    return None
                raise NetworkError(
                    f"Connection closed after {len(chunks)} of {length} bytes",
                    details={"address": self.address, "expected": length},
                )
            chunks.extend(chunk)
        return bytes(chunks)

    def read_header(self, *, allow_eof: bool = False) -> ResponseHeader | None:
        """Read and decode one 24-byte header (pings included)."""
        data = self.recv_exact(HEADER_SIZE, allow_eof=allow_eof)
        if data is None:
            return None
        return decode_response_header(data)

    def read_payload(self, length: int) -> bytes:
        """Read the payload following a header with a positive length."""
        if length <= 0:
            return b""
        return self.recv_exact(length) or b""

    def next_frame(self) -> Frame | None:
        """
        Read the next non-keepalive frame, or None if the peer has closed.

        Keepalive frames are discarded; more than MAX_PINGS of them in a row
        is treated as a misbehaving server.

        Raises:
            NetworkError: On socket errors or short reads.
            ProtocolError: On a malformed header or too many keepalives.
        """
        pings = 0
        while True:
            header = self.read_header(allow_eof=True)
            if header is None:
                return None
            if not header.is_ping:
                break
            pings += 1
            if pings > MAX_PINGS:
                raise ProtocolError(
                    f"Gave up after {MAX_PINGS} keepalive frames",
                    details={"address": self.address},
                )

        if pings:
            logger.debug("Skipped keepalive frames", extra={"count": pings})
        return Frame(header=header, payload=self.read_payload(header.payload))

    def read_frame(self) -> Frame:
        """
        Read the reply to a request, skipping keepalive frames.

        Raises:
            NetworkError: If the peer closes before replying.
        """
        frame = self.next_frame()
        if frame is None:
            raise NetworkError(
                "Connection closed before owserver replied",
                details={"address": self.address},
            )
        return frame


def exchange(
    host: str, port: int, request: bytes, timeout: float | None = None
) -> Frame:
    """
    Send one request on a fresh connection and return the reply frame.

    The connection is closed on every exit path.
    """
    with Connection(host, port, timeout=timeout) as conn:
        conn.send(request)
        return conn.read_frame()
