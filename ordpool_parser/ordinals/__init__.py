"""Ordinal inscription parsing.

The parsing entry point is :func:`parse_inscriptions`, a pure transform from a
transaction's witness data to :class:`Inscription` records. RPC-backed helpers
for fetching and scanning transactions are exposed alongside it.
"""

from ordpool_parser.ordinals.envelope import (
    Field,
    KnownField,
    assemble_body,
    build_envelope,
    extract_fields,
)
from ordpool_parser.ordinals.indexer import InscriptionLocation, InscriptionScanner, ScanConfig
from ordpool_parser.ordinals.inscriptions import (
    DecompressionFailure,
    EnvelopeOutcome,
    EnvelopeStatus,
    Inscription,
    OrdinalInscriptionDecoder,
    decode_content,
    parse_envelope,
    parse_inscription_id,
    parse_inscriptions,
    parse_inscriptions_within_witness,
    parse_witness_bytes,
)
from ordpool_parser.ordinals.metadata import MetadataDecodeError, decode_metadata
from ordpool_parser.ordinals.script import (
    InvalidOpcode,
    PushdataError,
    TruncatedPushdata,
    encode_pushdata,
    find_next_mark,
    read_pushdata,
)

__all__ = [
    "Field",
    "KnownField",
    "assemble_body",
    "build_envelope",
    "extract_fields",
    "InscriptionLocation",
    "InscriptionScanner",
    "ScanConfig",
    "DecompressionFailure",
    "EnvelopeOutcome",
    "EnvelopeStatus",
    "Inscription",
    "OrdinalInscriptionDecoder",
    "decode_content",
    "parse_envelope",
    "parse_inscription_id",
    "parse_inscriptions",
    "parse_inscriptions_within_witness",
    "parse_witness_bytes",
    "MetadataDecodeError",
    "decode_metadata",
    "InvalidOpcode",
    "PushdataError",
    "TruncatedPushdata",
    "encode_pushdata",
    "find_next_mark",
    "read_pushdata",
]
