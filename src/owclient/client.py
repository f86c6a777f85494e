"""
owserver client.

OwClient exposes the owserver operations as typed methods. Each call builds
a request from the current configuration, opens a fresh connection, reads
the reply and closes the connection again; nothing is kept between calls, so
one client may be shared by several threads.

Example:
    >>> client = OwClient(ClientConfig(address="localhost:4304"))
    >>> client.dir("/")
    ['/10.67C6697351FF', '/05.4AEC29CDBAAB', ...]
    >>> client.read("/10.67C6697351FF/temperature")
    b'     22.5'
"""

from __future__ import annotations

import errno
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING

from owclient.config import ClientConfig, describe_flags
from owclient.errors import OwError, server_error
from owclient.formatting import format_value, parse_write_value, prune_entries
from owclient.logging import get_logger
from owclient.ownet.listing import assemble_listing
from owclient.ownet.protocol import DEFAULT_SIZE, Frame, MessageType, encode_request
from owclient.ownet.transport import Connection

if TYPE_CHECKING:
    from owclient.config import AppConfig

logger = get_logger(__name__)


@dataclass(frozen=True)
class GetResult:
    """
    Reply to a GET: property data or a directory listing.

    Exactly one of ``data`` and ``entries`` is set.
    """

    data: bytes | None = None
    entries: list[str] | None = None

    @property
    def is_directory(self) -> bool:
        return self.entries is not None


def _is_listing(payload: bytes) -> bool:
    """A comma-separated list of absolute paths, as owserver sends for directories."""
    try:
        text = payload.replace(b"\x00", b"").decode("utf-8")
    except UnicodeDecodeError:
        return False
    segments = [s for s in text.split(",") if s]
    return bool(segments) and all(s.startswith("/") for s in segments)


class OwClient:
    """
    Client for one owserver.

    Attributes:
        config: Connection and display settings. Changes take effect on
            the next call.
    """

    def __init__(self, config: ClientConfig | None = None) -> None:
        self.config = config or ClientConfig()

    @classmethod
    def from_config(cls, config: AppConfig) -> OwClient:
        """Create a client from the application configuration."""
        return cls(config.client)

    def __repr__(self) -> str:
        return f"OwClient(address={self.config.address!r})"

    # -------------------------------------------------------------------------
    # Request plumbing
    # -------------------------------------------------------------------------

    def _encode(
        self,
        message_type: MessageType,
        path: str,
        body: bytes = b"",
        size: int | None = None,
        offset: int = 0,
    ) -> bytes:
        flags = self.config.compute_flags()
        logger.debug(
            "owserver request",
            extra={
                "operation": message_type.name,
                "path": path,
                "flags": describe_flags(flags),
                "address": self.config.address,
            },
        )
        return encode_request(
            message_type, path, flags, body=body, size=size, offset=offset
        )

    def _connect(self) -> Connection:
        return Connection(
            self.config.host, self.config.port, timeout=self.config.timeout
        )

    def _call(
        self,
        message_type: MessageType,
        path: str,
        body: bytes = b"",
        size: int | None = None,
        offset: int = 0,
    ) -> Frame:
        """Send one request and return its reply, raising on a server error."""
        request = self._encode(message_type, path, body=body, size=size, offset=offset)
        with self._connect() as conn:
            conn.send(request)
            frame = conn.read_frame()
        self._check(frame, path)
        return frame

    def _check(self, frame: Frame, path: str) -> None:
        if frame.header.is_error:
            error = server_error(frame.header.ret, path)
            logger.info(
                "owserver returned an error",
                extra={"path": path, "errno": error.errno},
            )
            raise error

    def _listing(self, message_type: MessageType, path: str) -> list[str]:
        packed = message_type is not MessageType.DIR
        request = self._encode(message_type, path)
        with self._connect() as conn:
            conn.send(request)
            try:
                entries = assemble_listing(conn, packed=packed, path=path)
            except OwError:
                logger.info("Directory listing failed", extra={"path": path})
                raise
        return self._prune(entries)

    def _prune(self, entries: list[str]) -> list[str]:
        return prune_entries(entries) if self.config.prune else entries

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def dir(self, path: str = "/") -> list[str]:
        """
        List a directory, one reply frame per entry.

        Returns:
            Entry paths in the order owserver sent them.

        Raises:
            NotFoundError: If the path does not exist.
        """
        return self._listing(MessageType.DIR, path)

    def dirall(self, path: str = "/") -> list[str]:
        """
        List a directory in a single reply frame.

        Directories carry a trailing ``/`` when the ``slash`` option is on.
        """
        message_type = MessageType.DIRALLSLASH if self.config.slash else MessageType.DIRALL
        return self._listing(message_type, path)

    def read(
        self, path: str, *, size: int | None = None, offset: int | None = None
    ) -> bytes:
        """
        Read a property, e.g. ``/10.67C6697351FF/temperature``.

        Args:
            path: Property path.
            size: Largest number of bytes to return. Defaults to the
                ``size`` setting, or DEFAULT_SIZE when that is unset.
            offset: Byte position to start at. Defaults to the ``offset``
                setting.

        Raises:
            NotFoundError: If the path does not exist.
            ServerError: For any other error reported by owserver.
        """
        if size is None:
            size = self.config.size or DEFAULT_SIZE
        if offset is None:
            offset = self.config.offset
        return self._call(MessageType.READ, path, size=size, offset=offset).data

    def write(self, path: str, value: bytes | str) -> None:
        """
        Write a property.

        Args:
            path: Property path.
            value: Raw bytes, or text converted with :meth:`parse_write_value`
                (hex digit pairs when the ``hex`` option is on).

        Raises:
            ArgumentError: For a malformed value, before connecting.
            ServerError: If owserver rejects the write.
        """
        data = self.parse_write_value(value) if isinstance(value, str) else bytes(value)
        self._call(MessageType.WRITE, path, body=data, size=len(data))

    def present(self, path: str) -> bool:
        """
        Check whether a device or property exists.

        Returns:
            True on success, False when owserver answers ENOENT.

        Raises:
            ServerError: For any other error code; never mapped to False.
        """
        request = self._encode(MessageType.PRESENT, path)
        with self._connect() as conn:
            conn.send(request)
            frame = conn.read_frame()
        if frame.header.ret == -errno.ENOENT:
            return False
        self._check(frame, path)
        return True

    def get(self, path: str = "/") -> GetResult:
        """
        Read a property or list a directory, whichever ``path`` is.

        owserver answers an empty directory with an empty payload, which is
        indistinguishable from an empty property. An empty reply is taken as
        a directory when ``path`` ends in ``/`` and as data otherwise.

        Returns:
            GetResult with ``entries`` for a directory, ``data`` otherwise.
        """
        message_type = MessageType.GETSLASH if self.config.slash else MessageType.GET
        request = self._encode(message_type, path)
        with self._connect() as conn:
            conn.send(request)
            frame = conn.read_frame()
            self._check(frame, path)
            if _is_listing(frame.payload):
                entries = assemble_listing(conn, frame, packed=True, path=path)
                return GetResult(entries=self._prune(entries))
        if not frame.payload and path.endswith("/"):
            return GetResult(entries=[])
        return GetResult(data=frame.data)

    def size(self, path: str) -> int:
        """Number of bytes a read of ``path`` may return."""
        return self._call(MessageType.SIZE, path).header.ret

    def walk(
        self,
        path: str = "/",
        onerror: Callable[[OwError], None] | None = None,
    ) -> Iterator[tuple[str, list[str]]]:
        """
        Traverse the tree below ``path`` depth first.

        Directories are listed lazily, one request per directory, in the
        order they are yielded.

        Args:
            path: Directory to start at.
            onerror: Called with the error when a directory cannot be
                listed; that directory is then yielded with no entries and
                the walk goes on. Without it the error is raised.

        Yields:
            ``(directory, entries)`` pairs. Subdirectory entries end in
            ``/``; properties do not.
        """
        try:
            entries = self._listing(MessageType.DIRALLSLASH, path)
        except OwError as e:
            if onerror is None:
                raise
            onerror(e)
            entries = []
        yield path, entries
        for entry in entries:
            if entry.endswith("/"):
                yield from self.walk(entry, onerror)

    # -------------------------------------------------------------------------
    # Display helpers
    # -------------------------------------------------------------------------

    def format_value(self, data: bytes) -> str:
        """Render read data as text, or hex pairs when ``hex`` is on."""
        return format_value(data, hex=self.config.hex)

    def parse_write_value(self, text: str) -> bytes:
        """Convert user input to write data, honoring the ``hex`` option."""
        return parse_write_value(text, hex=self.config.hex)
