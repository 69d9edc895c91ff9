"""Field and body extraction for ``ord`` inscription envelopes.

An envelope looks like::

    OP_FALSE OP_IF "ord" <tag> <value> ... OP_0 <body push> ... OP_ENDIF

The helpers here read the tag/value pairs and the body pushes that follow a
marker located by :func:`ordpool_parser.ordinals.script.find_next_mark`.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, List, Optional, Sequence, Tuple

from ordpool_parser.conversions import single_byte_chars_to_bytes
from ordpool_parser.ordinals.script import (
    INSCRIPTION_MARK,
    OP_0,
    OP_ENDIF,
    encode_pushdata,
    read_pushdata,
)

MAX_CHUNK_SIZE = 520


class KnownField(IntEnum):
    """Field tags with a defined meaning in the envelope protocol."""

    CONTENT_TYPE = 1
    POINTER = 2
    PARENT = 3
    METADATA = 5
    METAPROTOCOL = 7
    CONTENT_ENCODING = 9
    DELEGATE = 11


@dataclass(frozen=True)
class Field:
    """A tag/value pair read from an envelope, kept verbatim."""

    tag: bytes
    value: bytes

    @property
    def known(self) -> Optional[KnownField]:
        if len(self.tag) != 1:
            return None
        try:
            return KnownField(self.tag[0])
        except ValueError:
            return None


def extract_fields(raw: bytes, position: int) -> Tuple[List[Field], int]:
    """Read tag/value pairs until the body separator or the end of ``raw``.

    The returned cursor points past the separator when one was found. Any
    :class:`~ordpool_parser.ordinals.script.PushdataError` propagates to the
    caller, which drops the envelope.
    """

    fields: List[Field] = []
    cursor = position
    while cursor < len(raw) and raw[cursor] != OP_0:
        tag, cursor = read_pushdata(raw, cursor)
        value, cursor = read_pushdata(raw, cursor)
        fields.append(Field(tag=tag, value=value))

    if cursor < len(raw) and raw[cursor] == OP_0:
        cursor += 1
    return fields, cursor


def assemble_body(raw: bytes, position: int) -> Tuple[bytes, int]:
    """Concatenate body pushes until ``OP_ENDIF`` or the end of ``raw``."""

    chunks: List[bytes] = []
    cursor = position
    while cursor < len(raw) and raw[cursor] != OP_ENDIF:
        chunk, cursor = read_pushdata(raw, cursor)
        chunks.append(chunk)
    return b"".join(chunks), cursor


def find_field_value(fields: Sequence[Field], tag: int) -> Optional[bytes]:
    """Return the value of the first field carrying the single-byte ``tag``."""

    for field in fields:
        if field.tag == bytes([tag]):
            return field.value
    return None


def find_field_values(fields: Sequence[Field], tag: int) -> List[bytes]:
    return [field.value for field in fields if field.tag == bytes([tag])]


def _chunks(data: bytes, size: int) -> Iterable[bytes]:
    for start in range(0, len(data), size):
        yield data[start : start + size]


def build_envelope(
    content_type: str | bytes | None,
    body: bytes,
    *,
    fields: Sequence[Tuple[bytes | int, bytes]] = (),
    content_encoding: str | None = None,
    chunk_size: int = MAX_CHUNK_SIZE,
) -> bytes:
    """Build the script bytes of one envelope.

    ``fields`` are appended after the content type and encoding; integer tags
    are written as single bytes. Passing ``content_type=None`` omits the field
    entirely, which parsers treat as a candidate to filter.
    """

    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")

    pairs: List[Tuple[bytes, bytes]] = []
    if content_type is not None:
        if isinstance(content_type, str):
            content_type = single_byte_chars_to_bytes(content_type)
        pairs.append((bytes([KnownField.CONTENT_TYPE]), content_type))
    if content_encoding is not None:
        pairs.append((bytes([KnownField.CONTENT_ENCODING]), single_byte_chars_to_bytes(content_encoding)))
    for tag, value in fields:
        tag_bytes = bytes([tag]) if isinstance(tag, int) else tag
        pairs.append((tag_bytes, value))

    script = bytearray(INSCRIPTION_MARK)
    for tag_bytes, value in pairs:
        script += encode_pushdata(tag_bytes)
        script += encode_pushdata(value)
    script.append(OP_0)
    for chunk in _chunks(body, chunk_size):
        script += encode_pushdata(chunk)
    script.append(OP_ENDIF)
    return bytes(script)
