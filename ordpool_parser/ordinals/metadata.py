"""CBOR decoding for the inscription metadata field."""

from __future__ import annotations

from typing import Any

import cbor2


class MetadataDecodeError(ValueError):
    """Raised when the metadata bytes are not a decodable CBOR item."""


def decode_metadata(raw: bytes) -> Any:
    """Decode one CBOR item from ``raw``.

    Maps, arrays, integers, text, byte strings, floats and simple values come
    back as the matching Python types; unknown semantic tags are returned as
    :class:`cbor2.CBORTag` instances.
    """

    if not raw:
        raise MetadataDecodeError("metadata is empty")
    try:
        return cbor2.loads(raw)
    except cbor2.CBORDecodeError as exc:
        raise MetadataDecodeError(f"invalid CBOR metadata: {exc}") from exc
