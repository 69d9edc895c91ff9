"""Script-level primitives used to walk inscription envelopes.

Only the small subset of script needed to read an envelope is implemented
here: pushdata opcodes, the small-number pushes and the envelope markers. No
script is executed and nothing is validated beyond the byte layout.
"""

from __future__ import annotations

from typing import Optional, Tuple

OP_0 = 0x00
OP_FALSE = OP_0
OP_PUSHBYTES_3 = 0x03
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1NEGATE = 0x4F
OP_PUSHNUM_1 = 0x51
OP_PUSHNUM_16 = 0x60
OP_IF = 0x63
OP_ENDIF = 0x68

MAX_DIRECT_PUSH = 75

# OP_FALSE OP_IF OP_PUSHBYTES_3 "ord"
INSCRIPTION_MARK = bytes([OP_FALSE, OP_IF, OP_PUSHBYTES_3]) + b"ord"


class PushdataError(ValueError):
    """Raised when a push operation cannot be decoded."""


class TruncatedPushdata(PushdataError):
    """Raised when a push declares more bytes than the buffer holds."""

    def __init__(self, position: int, needed: int, available: int) -> None:
        super().__init__(
            f"pushdata at offset {position} needs {needed} byte(s) but only {available} remain"
        )
        self.position = position
        self.needed = needed
        self.available = available


class InvalidOpcode(PushdataError):
    """Raised when the byte at the cursor is not a push operation."""

    def __init__(self, position: int, opcode: int) -> None:
        super().__init__(f"opcode 0x{opcode:02x} at offset {position} is not a push")
        self.position = position
        self.opcode = opcode


def _read_bytes(raw: bytes, position: int, count: int) -> Tuple[bytes, int]:
    available = len(raw) - position
    if count > available:
        raise TruncatedPushdata(position, count, max(available, 0))
    return raw[position : position + count], position + count


def read_pushdata(raw: bytes, position: int) -> Tuple[bytes, int]:
    """Decode the push operation at ``position``.

    Returns the pushed bytes and the cursor just past the operation. Raises
    :class:`TruncatedPushdata` when the cursor is outside the buffer or the
    declared length overruns it, and :class:`InvalidOpcode` for anything that
    is not a push.
    """

    if position < 0 or position >= len(raw):
        raise TruncatedPushdata(position, 1, max(len(raw) - position, 0))

    opcode = raw[position]
    cursor = position + 1

    if opcode == OP_0:
        return b"", cursor
    if opcode <= MAX_DIRECT_PUSH:
        return _read_bytes(raw, cursor, opcode)
    if opcode == OP_PUSHDATA1:
        size_bytes, cursor = _read_bytes(raw, cursor, 1)
        return _read_bytes(raw, cursor, size_bytes[0])
    if opcode == OP_PUSHDATA2:
        size_bytes, cursor = _read_bytes(raw, cursor, 2)
        return _read_bytes(raw, cursor, int.from_bytes(size_bytes, "little"))
    if opcode == OP_PUSHDATA4:
        size_bytes, cursor = _read_bytes(raw, cursor, 4)
        return _read_bytes(raw, cursor, int.from_bytes(size_bytes, "little"))
    if OP_PUSHNUM_1 <= opcode <= OP_PUSHNUM_16:
        return bytes([opcode - OP_PUSHNUM_1 + 1]), cursor
    if opcode == OP_1NEGATE:
        return b"\x81", cursor

    raise InvalidOpcode(position, opcode)


def encode_pushdata(data: bytes) -> bytes:
    """Encode ``data`` with the smallest push operation that can carry it."""

    length = len(data)
    if length == 0:
        return bytes([OP_0])
    if length <= MAX_DIRECT_PUSH:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, "little") + data
    if length <= 0xFFFFFFFF:
        return bytes([OP_PUSHDATA4]) + length.to_bytes(4, "little") + data
    raise ValueError(f"pushdata too large: {length} bytes")


def find_next_mark(raw: bytes, start: int = 0) -> Optional[int]:
    """Return the offset just past the next envelope marker, or ``None``.

    The returned offset is always greater than ``start``, so repeated calls fed
    with the previous result make progress through the buffer.
    """

    index = raw.find(INSCRIPTION_MARK, max(start, 0))
    if index == -1:
        return None
    return index + len(INSCRIPTION_MARK)
