"""
Conversions between owserver data and display text.

Read data is shown either as text or, in hex mode, as space-separated byte
pairs ("48 65 6C 6C 6F"). Write values are taken either as text or, in hex
mode, as a string of hex digit pairs ("48656C6C6F").
"""

from __future__ import annotations

import string

from owclient.errors import ArgumentError, TextError

# Per-device entries that only repeat the device id in another form
PRUNE_NAMES = frozenset(
    {
        "address",
        "crc8",
        "family",
        "id",
        "locator",
        "r_address",
        "r_id",
        "r_locator",
        "type",
        "bus",
    }
)


def format_value(data: bytes, hex: bool = False) -> str:
    """
    Render read data for display.

    Args:
        data: Bytes returned by owserver.
        hex: Show as hex byte pairs instead of text.

    Raises:
        TextError: If text output is requested and the data is not UTF-8.
    """
    if hex:
        return " ".join(f"{b:02X}" for b in data)
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise TextError(
            f"Data is not valid text (try hex output): {e}",
            details={"length": len(data)},
        ) from e


def parse_write_value(text: str, hex: bool = False) -> bytes:
    """
    Convert a value typed by the user into the bytes to write.

    Args:
        text: The value as given.
        hex: Interpret ``text`` as hex digit pairs.

    Raises:
        ArgumentError: In hex mode, for odd length or non-hex characters.
    """
    if not hex:
        return text.encode("utf-8")
    if len(text) % 2:
        raise ArgumentError(
            "Hex string should be an even length", details={"value": text}
        )
    bad = sorted({c for c in text if c not in string.hexdigits})
    if bad:
        raise ArgumentError(
            f"Bad hex characters: {''.join(bad)!r}", details={"value": text}
        )
    return bytes.fromhex(text)


def basename(path: str) -> str:
    """
    Last non-empty path segment without any ``.suffix``.

    >>> basename("/10.67C6697351FF/r_address")
    'r_address'
    >>> basename("/bus.0/")
    'bus'
    """
    for segment in reversed(path.split("/")):
        if segment:
            return segment.split(".")[0]
    return ""


def prune_entries(entries: list[str]) -> list[str]:
    """Drop the id-property entries listed in PRUNE_NAMES."""
    return [entry for entry in entries if basename(entry) not in PRUNE_NAMES]
