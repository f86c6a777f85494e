"""
Directory listing assembly.

A DIR request is answered with one frame per entry, each payload holding a
single nul-terminated path, and a final frame with an empty payload. DIRALL
and GET on a directory answer with one frame whose payload is the whole
listing separated by commas. Both shapes are joined here into one ordered
list of paths, in the order the server sent them.
"""

from __future__ import annotations

from owclient.errors import ProtocolError, TextError, server_error
from owclient.ownet.protocol import Frame
from owclient.ownet.transport import Connection

SEPARATOR = b","


class ListingAssembler:
    """
    Accumulates directory payloads and splits them into entries.

    Args:
        packed: Payloads are already comma-separated lists (DIRALL/GET)
            rather than one entry per payload (DIR).

    Example:
        >>> assembler = ListingAssembler()
        >>> assembler.feed(b"/10.AAAA\\x00")
        >>> assembler.feed(b"/12.BBBB\\x00")
        >>> assembler.entries()
        ['/10.AAAA', '/12.BBBB']
    """

    def __init__(self, packed: bool = False) -> None:
        self.packed = packed
        self._buffer = bytearray()

    def feed(self, payload: bytes) -> None:
        """
        Add one frame's payload.

        Raises:
            ProtocolError: If a single-entry payload contains the separator.
        """
        chunk = payload[:-1] if payload.endswith(b"\x00") else payload
        # owserver sometimes leaves stray nul bytes inside names
        chunk = chunk.replace(b"\x00", b"")
        if not self.packed and SEPARATOR in chunk:
            raise ProtocolError(
                "Directory entry contains the list separator",
                details={"entry": chunk.decode("utf-8", "replace")},
            )
        self._buffer += chunk + SEPARATOR

    def entries(self) -> list[str]:
        """
        Return the accumulated entries in arrival order.

        Raises:
            TextError: If the listing is not valid UTF-8.
        """
        try:
            text = self._buffer.decode("utf-8")
        except UnicodeDecodeError as e:
            raise TextError(f"Directory listing is not valid UTF-8: {e}") from e
        return [entry for entry in text.split(SEPARATOR.decode()) if entry]


def assemble_listing(
    connection: Connection,
    first: Frame | None = None,
    *,
    packed: bool = False,
    path: str | None = None,
) -> list[str]:
    """
    Read a directory reply from ``connection`` and return its entries.

    In per-entry mode frames are read until one with an empty payload
    arrives or the server closes the connection. In packed mode the listing
    is a single frame and nothing further is read.

    Args:
        connection: Open connection the request was sent on.
        first: Reply frame already read from the connection, if any.
        packed: Comma-separated single-frame reply (DIRALL/GET).
        path: Requested path, used in error details.

    Raises:
        ServerError: If a frame carries a negative return code.
        ProtocolError: If an entry collides with the separator.
        NetworkError: On I/O failure.
    """
    assembler = ListingAssembler(packed=packed)
    frame: Frame | None = first if first is not None else connection.read_frame()

    while frame is not None:
        if frame.header.is_error:
            raise server_error(frame.header.ret, path)
        if not frame.header.has_payload:
            break
        assembler.feed(frame.payload)
        if packed:
            break
        frame = connection.next_frame()

    return assembler.entries()
