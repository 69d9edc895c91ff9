"""Decoding helpers for ordinal inscriptions.

This module turns transaction witness data into :class:`Inscription` records.
Parsing is a pure transform over the witness bytes: every envelope is handled
on its own, and a malformed envelope only removes that envelope from the
result. Nothing is validated at the consensus level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import brotli
import cbor2

from ordpool_parser.conversions import (
    bytes_to_hex,
    bytes_to_single_byte_chars,
    encode_base64,
    hex_to_bytes,
    little_endian_bytes_to_int,
    utf8_bytes_to_string,
)
from ordpool_parser.ordinals.envelope import (
    Field,
    KnownField,
    assemble_body,
    extract_fields,
    find_field_value,
    find_field_values,
)
from ordpool_parser.ordinals.metadata import MetadataDecodeError, decode_metadata
from ordpool_parser.ordinals.script import PushdataError, find_next_mark

logger = logging.getLogger(__name__)

BROTLI_ENCODING = "br"
TXID_LENGTH = 32
MAX_INDEX_LENGTH = 4
MAX_POINTER_LENGTH = 8


class DecompressionFailure(ValueError):
    """Raised when a ``br`` encoded body cannot be decompressed."""


def decode_pointer(raw: Optional[bytes]) -> Optional[int]:
    """Decode a little-endian pointer; empty or oversized values mean none."""

    if not raw or len(raw) > MAX_POINTER_LENGTH:
        return None
    return little_endian_bytes_to_int(raw)


def decode_inscription_reference(raw: Optional[bytes]) -> Optional[str]:
    """Render a parent/delegate reference as ``<txid>i<index>``.

    The value holds the txid in internal byte order followed by an optional
    little-endian output index whose trailing zero bytes may be omitted.
    """

    if raw is None:
        return None
    if len(raw) < TXID_LENGTH or len(raw) > TXID_LENGTH + MAX_INDEX_LENGTH:
        return None
    txid = raw[:TXID_LENGTH][::-1].hex()
    index_bytes = raw[TXID_LENGTH:]
    index = little_endian_bytes_to_int(index_bytes) if index_bytes else 0
    return f"{txid}i{index}"


@dataclass(frozen=True)
class Inscription:
    """A decoded inscription.

    ``body`` is already decompressed, so every accessor below sees the final
    content bytes. ``fields`` keeps every tag/value pair of the envelope in
    stream order, including tags this module does not interpret.
    """

    content_type: str
    fields: Tuple[Field, ...]
    body: bytes
    content_encoding: Optional[str] = None

    @property
    def content_length(self) -> int:
        return len(self.body)

    @property
    def content_string(self) -> str:
        return utf8_bytes_to_string(self.body) or ""

    @property
    def data(self) -> str:
        """Body bytes as base64."""

        return encode_base64(self.body)

    @property
    def data_uri(self) -> str:
        return f"data:{self.content_type};base64,{self.data}"

    @property
    def pointer(self) -> Optional[int]:
        return decode_pointer(find_field_value(self.fields, KnownField.POINTER))

    @property
    def parent(self) -> Optional[str]:
        return decode_inscription_reference(find_field_value(self.fields, KnownField.PARENT))

    @property
    def delegate(self) -> Optional[str]:
        return decode_inscription_reference(find_field_value(self.fields, KnownField.DELEGATE))

    @property
    def metadata(self) -> Any:
        """Decoded CBOR metadata, or ``None`` when absent or undecodable."""

        chunks = find_field_values(self.fields, KnownField.METADATA)
        if not chunks:
            return None
        try:
            return decode_metadata(b"".join(chunks))
        except MetadataDecodeError as exc:
            logger.debug("Ignoring undecodable inscription metadata: %s", exc)
            return None

    @property
    def metaprotocol(self) -> Optional[str]:
        return utf8_bytes_to_string(find_field_value(self.fields, KnownField.METAPROTOCOL))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content_type": self.content_type,
            "content_encoding": self.content_encoding,
            "content_length": self.content_length,
            "pointer": self.pointer,
            "parent": self.parent,
            "delegate": self.delegate,
            "metaprotocol": self.metaprotocol,
            "metadata": _jsonable(self.metadata),
            "fields": [{"tag": bytes_to_hex(f.tag), "value": bytes_to_hex(f.value)} for f in self.fields],
            "data": self.data,
        }


def _jsonable(value: Any) -> Any:
    """Convert decoded CBOR values into JSON-friendly structures."""

    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes_to_hex(bytes(value))
    if isinstance(value, Mapping):
        return {str(_jsonable(key)): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    if isinstance(value, cbor2.CBORTag):
        return {"tag": value.tag, "value": _jsonable(value.value)}
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def decode_content(fields: Sequence[Field], body: bytes) -> Optional[Inscription]:
    """Build an :class:`Inscription` from extracted fields and body bytes.

    Returns ``None`` when there is no content type field. Raises
    :class:`DecompressionFailure` when the body claims ``br`` encoding but is
    not a valid Brotli stream.
    """

    content_type_raw = find_field_value(fields, KnownField.CONTENT_TYPE)
    if content_type_raw is None:
        return None

    # MIME tokens are ASCII; map bytes directly rather than decoding UTF-8.
    content_type = bytes_to_single_byte_chars(content_type_raw)

    content_encoding: Optional[str] = None
    content_encoding_raw = find_field_value(fields, KnownField.CONTENT_ENCODING)
    if content_encoding_raw is not None:
        content_encoding = bytes_to_single_byte_chars(content_encoding_raw)

    if content_encoding == BROTLI_ENCODING:
        try:
            body = brotli.decompress(body)
        except brotli.error as exc:
            raise DecompressionFailure(f"brotli body could not be decompressed: {exc}") from exc

    return Inscription(
        content_type=content_type,
        fields=tuple(fields),
        body=bytes(body),
        content_encoding=content_encoding,
    )


class EnvelopeStatus(Enum):
    """How a single envelope candidate ended."""

    PARSED = "parsed"
    FILTERED = "filtered"
    FAILED = "failed"


@dataclass(frozen=True)
class EnvelopeOutcome:
    """Result of parsing one envelope candidate."""

    status: EnvelopeStatus
    offset: int
    inscription: Optional[Inscription] = None
    reason: Optional[str] = None


def parse_envelope(raw: bytes, offset: int) -> EnvelopeOutcome:
    """Parse the envelope whose fields start at ``offset``."""

    try:
        fields, cursor = extract_fields(raw, offset)
        body, _ = assemble_body(raw, cursor)
    except PushdataError as exc:
        return EnvelopeOutcome(EnvelopeStatus.FAILED, offset, reason=str(exc))

    try:
        inscription = decode_content(fields, body)
    except DecompressionFailure as exc:
        return EnvelopeOutcome(EnvelopeStatus.FAILED, offset, reason=str(exc))

    if inscription is None:
        return EnvelopeOutcome(EnvelopeStatus.FILTERED, offset, reason="missing content type")
    return EnvelopeOutcome(EnvelopeStatus.PARSED, offset, inscription=inscription)


def parse_witness_bytes(raw: bytes) -> List[Inscription]:
    """Return every inscription found in one input's concatenated witness."""

    inscriptions: List[Inscription] = []
    position = 0
    while True:
        offset = find_next_mark(raw, position)
        if offset is None:
            break

        outcome = parse_envelope(raw, offset)
        if outcome.status is EnvelopeStatus.PARSED and outcome.inscription is not None:
            inscriptions.append(outcome.inscription)
        elif outcome.status is EnvelopeStatus.FILTERED:
            logger.debug("Skipping envelope at offset %d: %s", offset, outcome.reason)
        else:
            logger.info("Dropping malformed envelope at offset %d: %s", offset, outcome.reason)

        # Resume right after the marker, not after the consumed envelope.
        position = offset
    return inscriptions


def parse_inscriptions_within_witness(witness: Sequence[str]) -> List[Inscription]:
    """Parse the hex-encoded witness items of a single input."""

    try:
        raw = hex_to_bytes("".join(witness))
    except (TypeError, ValueError) as exc:
        logger.info("Ignoring witness with undecodable hex: %s", exc)
        return []
    return parse_witness_bytes(raw)


def _witness_items(vin: Mapping[str, Any]) -> Optional[Sequence[str]]:
    witness = vin.get("witness")
    if witness is None:
        witness = vin.get("txinwitness")
    return witness


def parse_inscriptions(transaction: Mapping[str, Any]) -> List[Inscription]:
    """Parse all inscriptions in ``transaction``.

    ``transaction`` follows the JSON shape returned by Bitcoin Core
    (``vin[].txinwitness``) or esplora style APIs (``vin[].witness``).
    Results are ordered by input, then by position within the witness.
    """

    vins = transaction.get("vin") or []
    if not isinstance(vins, Sequence) or isinstance(vins, (str, bytes)):
        logger.debug("Ignoring transaction whose vin is a %s", type(vins).__name__)
        return []

    inscriptions: List[Inscription] = []
    for index, vin in enumerate(vins):
        if not isinstance(vin, Mapping):
            logger.debug("Skipping non-mapping input %d", index)
            continue
        witness = _witness_items(vin)
        if not witness:
            continue
        inscriptions.extend(parse_inscriptions_within_witness(witness))
    return inscriptions


def parse_inscription_id(inscription_id: str) -> Tuple[str, int]:
    """Split ``<txid>i<index>`` into its parts."""

    txid, sep, index = inscription_id.rpartition("i")
    if not sep or len(txid) != TXID_LENGTH * 2 or not index.isdigit():
        raise ValueError(f"invalid inscription id: {inscription_id}")
    return txid, int(index)


class OrdinalInscriptionDecoder:
    """Decode inscriptions from transactions fetched over RPC."""

    def __init__(self, rpc_client) -> None:
        self.rpc_client = rpc_client

    def decode_from_tx(self, txid: str) -> List[Inscription]:
        tx = self.rpc_client.get_raw_transaction(txid, verbose=True)
        inscriptions = parse_inscriptions(tx)
        logger.debug("Decoded %d inscription(s) from %s", len(inscriptions), txid)
        return inscriptions

    def decode_inscription(self, inscription_id: str) -> Optional[Inscription]:
        """Return the inscription named by ``<txid>i<index>``, if present."""

        txid, index = parse_inscription_id(inscription_id)
        inscriptions = self.decode_from_tx(txid)
        if index >= len(inscriptions):
            return None
        return inscriptions[index]
