"""
Tests for the owserver protocol codec.

Tests header packing, response header decoding and request encoding.
"""

from __future__ import annotations

import struct

import pytest

from owclient.errors import ArgumentError, ProtocolError
from owclient.ownet.protocol import (
    DEFAULT_SIZE,
    HEADER_SIZE,
    MAX_PAYLOAD,
    Frame,
    MessageType,
    RequestHeader,
    ResponseHeader,
    decode_response_header,
    encode_header,
    encode_request,
)

# =============================================================================
# Constants
# =============================================================================


class TestConstants:
    """Tests for protocol constants."""

    def test_header_size(self) -> None:
        """The header is six 32-bit words."""
        assert HEADER_SIZE == 24

    def test_message_type_values(self) -> None:
        """Message type numbers match the owserver protocol."""
        assert MessageType.NOP == 1
        assert MessageType.READ == 2
        assert MessageType.WRITE == 3
        assert MessageType.DIR == 4
        assert MessageType.SIZE == 5
        assert MessageType.PRESENT == 6
        assert MessageType.DIRALL == 7
        assert MessageType.GET == 8
        assert MessageType.DIRALLSLASH == 9
        assert MessageType.GETSLASH == 10

    def test_default_size(self) -> None:
        """READ requests ask for up to 64 KiB."""
        assert DEFAULT_SIZE == 65536


# =============================================================================
# Header Tests
# =============================================================================


class TestHeaderCodec:
    """Tests for encode_header and decode_response_header."""

    def test_encode_is_big_endian(self) -> None:
        """Fields are packed as big-endian 32-bit integers in order."""
        data = encode_header(0, 5, 2, 0x102, 65536, 7)
        assert data == struct.pack(">6i", 0, 5, 2, 0x102, 65536, 7)
        assert data[4:8] == b"\x00\x00\x00\x05"

    @pytest.mark.parametrize(
        "fields",
        [
            (0, 0, 0, 0, 0, 0),
            (0, 5, 0, 0, 5, 0),
            (0, 25, 2, 0x02000102, 65536, 0),
            (1, -1, 0, 0, 0, 0),
            (0, 0, -2, 0x00010002, 0, 12),
        ],
    )
    def test_round_trip(self, fields: tuple[int, ...]) -> None:
        """Decoding an encoded header returns the original fields."""
        header = decode_response_header(encode_header(*fields))
        assert (
            header.version,
            header.payload,
            header.ret,
            header.flags,
            header.size,
            header.offset,
        ) == fields

    def test_unsigned_values_wrap_to_signed(self) -> None:
        """Values above 2**31-1 are sent as their two's-complement form."""
        data = encode_header(0, 0, 0, 0xFFFFFFFE, 0, 0)
        assert data[12:16] == b"\xff\xff\xff\xfe"
        assert decode_response_header(data).flags == -2

    def test_out_of_range_value(self) -> None:
        """Values that do not fit 32 bits are rejected."""
        with pytest.raises(ArgumentError):
            encode_header(0, 0, 0, 2**32, 0, 0)

    def test_decode_wrong_length(self) -> None:
        """A truncated header is a protocol error."""
        with pytest.raises(ProtocolError) as exc_info:
            decode_response_header(b"\x00" * 12)
        assert exc_info.value.details["length"] == 12

    def test_decode_oversized_payload(self) -> None:
        """A payload length beyond MAX_PAYLOAD is rejected."""
        with pytest.raises(ProtocolError):
            decode_response_header(encode_header(0, MAX_PAYLOAD + 1, 0, 0, 0, 0))

    def test_ping_detection(self) -> None:
        """Negative payload length marks a keepalive frame."""
        header = decode_response_header(encode_header(0, -1, 0, 0, 0, 0))
        assert header.is_ping is True
        assert header.has_payload is False
        assert header.is_error is False

    def test_error_detection(self) -> None:
        """Negative return code marks a server error."""
        header = decode_response_header(encode_header(0, 0, -2, 0, 0, 0))
        assert header.is_error is True
        assert header.is_ping is False

    def test_request_header_pack(self) -> None:
        """RequestHeader packs version first and defaults size/offset."""
        header = RequestHeader(payload=3, message_type=MessageType.READ, flags=2)
        assert header.pack() == encode_header(0, 3, 2, 2, DEFAULT_SIZE, 0)


# =============================================================================
# Request Encoding Tests
# =============================================================================


class TestEncodeRequest:
    """Tests for encode_request."""

    def test_read_request(self) -> None:
        """Path is nul-terminated and payload length includes the nul."""
        path = "/10.67C6697351FF/temperature"
        data = encode_request(MessageType.READ, path, 0x102)

        version, payload, mtype, flags, size, offset = struct.unpack(
            ">6i", data[:HEADER_SIZE]
        )
        assert version == 0
        assert payload == len(path) + 1
        assert mtype == MessageType.READ
        assert flags == 0x102
        assert size == DEFAULT_SIZE
        assert offset == 0
        assert data[HEADER_SIZE:] == path.encode() + b"\x00"

    def test_write_request_appends_body(self) -> None:
        """Write data follows the path nul without its own terminator."""
        data = encode_request(
            MessageType.WRITE, "/05.4AEC29CDBAAB/PIO", 0, body=b"1", size=1
        )
        _, payload, mtype, _, size, _ = struct.unpack(">6i", data[:HEADER_SIZE])
        assert mtype == MessageType.WRITE
        assert payload == len("/05.4AEC29CDBAAB/PIO") + 1 + 1
        assert size == 1
        assert data[HEADER_SIZE:] == b"/05.4AEC29CDBAAB/PIO\x001"

    def test_body_sets_default_size(self) -> None:
        """Without an explicit size a body's length is used."""
        data = encode_request(MessageType.WRITE, "/x", 0, body=b"abc")
        assert struct.unpack(">i", data[16:20])[0] == 3

    def test_bytes_path(self) -> None:
        """Paths may be given as bytes."""
        data = encode_request(MessageType.DIR, b"/", 0)
        assert data[HEADER_SIZE:] == b"/\x00"

    def test_utf8_path(self) -> None:
        """Text paths are UTF-8 encoded and the length counts bytes."""
        data = encode_request(MessageType.READ, "/é", 0)
        assert struct.unpack(">i", data[4:8])[0] == 4

    @pytest.mark.parametrize("path", ["/10.67\x00C6", "\x00", b"/a\x00b"])
    def test_nul_in_path_rejected(self, path: str | bytes) -> None:
        """A path with an embedded nul cannot be encoded."""
        with pytest.raises(ArgumentError):
            encode_request(MessageType.READ, path, 0)


# =============================================================================
# Frame Tests
# =============================================================================


class TestFrame:
    """Tests for Frame.data trimming."""

    def _header(self, payload: int, size: int) -> ResponseHeader:
        return ResponseHeader(
            version=0, payload=payload, ret=0, flags=0, size=size, offset=0
        )

    def test_data_trimmed_to_size(self) -> None:
        """Padding beyond the declared size is dropped."""
        frame = Frame(header=self._header(8, 5), payload=b"22.50\x00\x00\x00")
        assert frame.data == b"22.50"

    def test_data_untrimmed_when_size_larger(self) -> None:
        """A size larger than the payload leaves the payload intact."""
        frame = Frame(header=self._header(5, 65536), payload=b"22.50")
        assert frame.data == b"22.50"
