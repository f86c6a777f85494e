"""
Tests for value formatting and listing pruning.
"""

from __future__ import annotations

import pytest

from owclient.errors import ArgumentError, TextError
from owclient.formatting import (
    basename,
    format_value,
    parse_write_value,
    prune_entries,
)


class TestFormatValue:
    """Tests for format_value."""

    def test_text(self) -> None:
        assert format_value(b"     22.5") == "     22.5"

    def test_hex(self) -> None:
        """Hex output is uppercase byte pairs separated by spaces."""
        assert format_value(b"\x00\x0a\xff", hex=True) == "00 0A FF"

    def test_hex_empty(self) -> None:
        assert format_value(b"", hex=True) == ""

    def test_invalid_text(self) -> None:
        """Non-UTF-8 data cannot be shown as text."""
        with pytest.raises(TextError) as exc_info:
            format_value(b"\x28\xff\xfe")
        assert exc_info.value.details["length"] == 3

    def test_invalid_text_fine_as_hex(self) -> None:
        assert format_value(b"\xff\xfe", hex=True) == "FF FE"


class TestParseWriteValue:
    """Tests for parse_write_value."""

    def test_text(self) -> None:
        assert parse_write_value("30") == b"30"

    def test_text_utf8(self) -> None:
        assert parse_write_value("°") == "°".encode()

    @pytest.mark.parametrize(
        "text, expected",
        [("48656C6C6F", b"Hello"), ("00ff", b"\x00\xff"), ("", b"")],
    )
    def test_hex(self, text: str, expected: bytes) -> None:
        assert parse_write_value(text, hex=True) == expected

    def test_hex_odd_length(self) -> None:
        with pytest.raises(ArgumentError) as exc_info:
            parse_write_value("486", hex=True)
        assert "even" in exc_info.value.message

    @pytest.mark.parametrize("text", ["zz", "48 65", "0x48"])
    def test_hex_bad_characters(self, text: str) -> None:
        with pytest.raises(ArgumentError):
            parse_write_value(text, hex=True)


class TestPruning:
    """Tests for basename and prune_entries."""

    @pytest.mark.parametrize(
        "path, expected",
        [
            ("/10.67C6697351FF/r_address", "r_address"),
            ("/bus.0/", "bus"),
            ("/10.67C6697351FF/temperature", "temperature"),
            ("/", ""),
        ],
    )
    def test_basename(self, path: str, expected: str) -> None:
        assert basename(path) == expected

    def test_prune_keeps_order(self) -> None:
        entries = [
            "/10.67C6697351FF/temphigh",
            "/10.67C6697351FF/family",
            "/10.67C6697351FF/crc8",
            "/10.67C6697351FF/temperature",
            "/10.67C6697351FF/locator",
        ]
        assert prune_entries(entries) == [
            "/10.67C6697351FF/temphigh",
            "/10.67C6697351FF/temperature",
        ]

    def test_prune_leaves_devices(self) -> None:
        """Device directories are never pruned."""
        entries = ["/10.67C6697351FF", "/05.4AEC29CDBAAB"]
        assert prune_entries(entries) == entries
