"""Byte and hex conversion helpers shared by the inscription parser."""

from __future__ import annotations

import base64
import binascii
from typing import Optional


def hex_to_bytes(text: str) -> bytes:
    """Convert an even-length hex string into bytes.

    Raises ``ValueError`` for odd-length strings or non-hex characters.
    """

    if len(text) % 2:
        raise ValueError(f"hex string has odd length: {len(text)}")
    try:
        return binascii.unhexlify(text)
    except (binascii.Error, TypeError) as exc:
        raise ValueError(f"invalid hex string: {exc}") from exc


def bytes_to_hex(data: bytes) -> str:
    return data.hex()


def bytes_to_single_byte_chars(data: bytes) -> str:
    """Map every byte to the character with the same code point."""

    return data.decode("latin-1")


def single_byte_chars_to_bytes(text: str) -> bytes:
    try:
        return text.encode("latin-1")
    except UnicodeEncodeError as exc:
        raise ValueError(f"character outside the single-byte range: {exc}") from exc


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def utf8_bytes_to_string(data: Optional[bytes]) -> Optional[str]:
    """Decode UTF-8, replacing invalid sequences rather than failing."""

    if data is None:
        return None
    return data.decode("utf-8", errors="replace")


def little_endian_bytes_to_int(data: bytes) -> int:
    return int.from_bytes(data, "little")
