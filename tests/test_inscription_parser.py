from __future__ import annotations

import base64
import logging

import brotli
import cbor2
import pytest

from ordpool_parser import parse_inscriptions, parse_inscriptions_within_witness
from ordpool_parser.ordinals.envelope import build_envelope
from ordpool_parser.ordinals.inscriptions import (
    EnvelopeStatus,
    Inscription,
    decode_inscription_reference,
    parse_envelope,
    parse_inscription_id,
    parse_witness_bytes,
)
from ordpool_parser.ordinals.script import INSCRIPTION_MARK, find_next_mark

SIGNATURE_HEX = "aa" * 64
CONTROL_BLOCK_HEX = "c1" + "11" * 32
PUBKEY_PREFIX = bytes([0x20]) + b"\x22" * 32 + b"\xac"


def _reveal_witness(*envelopes: bytes) -> list[str]:
    """Shape the witness of a script-path spend carrying ``envelopes``."""

    script = PUBKEY_PREFIX + b"".join(envelopes)
    return [SIGNATURE_HEX, script.hex(), CONTROL_BLOCK_HEX]


def _tx(*witnesses: list[str] | None) -> dict:
    vin = []
    for witness in witnesses:
        vin.append({"txid": "00" * 32, "vout": 0} if witness is None else {"witness": witness})
    return {"txid": "ab" * 32, "vin": vin}


def test_transaction_without_witness_yields_nothing() -> None:
    tx = {"vin": [{"txid": "00" * 32}, {"witness": []}, {"txinwitness": None}]}

    assert parse_inscriptions(tx) == []
    assert parse_inscriptions({}) == []


def test_single_text_inscription() -> None:
    tx = _tx(_reveal_witness(build_envelope("text/plain", b"hi")))

    inscriptions = parse_inscriptions(tx)

    assert len(inscriptions) == 1
    inscription = inscriptions[0]
    assert inscription.content_type == "text/plain"
    assert inscription.content_string == "hi"
    assert inscription.data == base64.b64encode(b"hi").decode()
    assert inscription.data_uri == "data:text/plain;base64,aGk="
    assert inscription.content_encoding is None
    assert inscription.pointer is None
    assert inscription.parent is None
    assert inscription.metadata is None
    assert inscription.metaprotocol is None


def test_core_shaped_txinwitness_is_read() -> None:
    tx = {"vin": [{"txinwitness": _reveal_witness(build_envelope("text/plain", b"core"))}]}

    assert [i.content_string for i in parse_inscriptions(tx)] == ["core"]


def test_two_envelopes_in_one_witness_keep_order() -> None:
    witness = _reveal_witness(
        build_envelope("text/plain", b"first"),
        build_envelope("application/json", b'{"p":"brc-20"}'),
    )

    inscriptions = parse_inscriptions_within_witness(witness)

    assert [i.content_type for i in inscriptions] == ["text/plain", "application/json"]
    assert [i.content_string for i in inscriptions] == ["first", '{"p":"brc-20"}']


def test_results_follow_input_order() -> None:
    tx = _tx(
        _reveal_witness(build_envelope("text/plain", b"input-0")),
        None,
        _reveal_witness(build_envelope("text/plain", b"input-2a"), build_envelope("text/plain", b"input-2b")),
    )

    assert [i.content_string for i in parse_inscriptions(tx)] == ["input-0", "input-2a", "input-2b"]


def test_envelope_without_content_type_is_dropped_without_affecting_siblings() -> None:
    witness = _reveal_witness(
        build_envelope(None, b"untyped"),
        build_envelope("text/plain", b"typed"),
    )

    inscriptions = parse_inscriptions_within_witness(witness)

    assert len(inscriptions) == 1
    assert inscriptions[0].content_string == "typed"


def test_brotli_body_is_decompressed_before_accessors() -> None:
    original = b"<svg>" + b"<rect/>" * 400 + b"</svg>"
    envelope = build_envelope("image/svg+xml", brotli.compress(original), content_encoding="br")

    inscription = parse_inscriptions_within_witness(_reveal_witness(envelope))[0]

    assert inscription.content_encoding == "br"
    assert inscription.body == original
    assert inscription.content_length == len(original)
    assert inscription.content_string == original.decode()
    assert inscription.data == base64.b64encode(original).decode()


def test_unknown_content_encoding_is_stored_as_is() -> None:
    envelope = build_envelope("text/plain", b"raw", content_encoding="gzip")

    inscription = parse_inscriptions_within_witness(_reveal_witness(envelope))[0]

    assert inscription.content_encoding == "gzip"
    assert inscription.body == b"raw"


def test_broken_brotli_body_drops_only_that_envelope() -> None:
    compressed = brotli.compress(bytes(range(256)) * 8)
    broken = build_envelope("text/plain", compressed[: len(compressed) // 2], content_encoding="br")
    witness = _reveal_witness(broken, build_envelope("text/plain", b"survivor"))

    inscriptions = parse_inscriptions_within_witness(witness)

    assert [i.content_string for i in inscriptions] == ["survivor"]


def test_truncated_pushdata_drops_only_that_envelope() -> None:
    truncated = INSCRIPTION_MARK + b"\x01\x01" + b"\x4d\xff\xff" + b"abc"
    raw = truncated + build_envelope("text/plain", b"after")

    inscriptions = parse_witness_bytes(raw)

    assert [i.content_string for i in inscriptions] == ["after"]


def test_parse_is_deterministic() -> None:
    tx = _tx(
        _reveal_witness(
            build_envelope("text/plain", b"one", fields=[(2, b"\x01")]),
            build_envelope("image/png", b"\x89PNG\r\n"),
        )
    )

    first = parse_inscriptions(tx)
    second = parse_inscriptions(tx)

    assert first == second
    assert [i.to_dict() for i in first] == [i.to_dict() for i in second]


def test_pointer_decoding() -> None:
    empty = build_envelope("text/plain", b"a", fields=[(2, b"")])
    five = build_envelope("text/plain", b"b", fields=[(2, b"\x05")])
    wide = build_envelope("text/plain", b"c", fields=[(2, (1000).to_bytes(2, "little"))])
    oversized = build_envelope("text/plain", b"d", fields=[(2, b"\x01" * 9)])

    inscriptions = parse_witness_bytes(empty + five + wide + oversized)

    assert [i.pointer for i in inscriptions] == [None, 5, 1000, None]


def test_parent_and_delegate_references() -> None:
    txid_internal = bytes(range(32))
    expected_txid = txid_internal[::-1].hex()
    envelope = build_envelope(
        "text/html",
        b"<p>child</p>",
        fields=[(3, txid_internal + b"\x01"), (11, txid_internal)],
    )

    inscription = parse_witness_bytes(envelope)[0]

    assert inscription.parent == f"{expected_txid}i1"
    assert inscription.delegate == f"{expected_txid}i0"


def test_malformed_parent_is_ignored() -> None:
    assert decode_inscription_reference(b"\x01" * 31) is None
    assert decode_inscription_reference(b"\x01" * 37) is None
    assert decode_inscription_reference(None) is None
    assert decode_inscription_reference(b"\x00" * 32 + b"\x00\x01") == "00" * 32 + "i256"


def test_metadata_and_metaprotocol() -> None:
    metadata = {"title": "genesis", "traits": [1, 2, 3], "raw": b"\x00\x01"}
    envelope = build_envelope(
        "text/plain",
        b"x",
        fields=[(5, cbor2.dumps(metadata)), (7, "brc-20".encode())],
    )

    inscription = parse_witness_bytes(envelope)[0]

    assert inscription.metadata == metadata
    assert inscription.metaprotocol == "brc-20"
    assert inscription.to_dict()["metadata"] == {"title": "genesis", "traits": [1, 2, 3], "raw": "0001"}


def test_metadata_split_across_fields_is_joined() -> None:
    metadata = {"description": "d" * 900}
    encoded = cbor2.dumps(metadata)
    envelope = build_envelope(
        "text/plain",
        b"x",
        fields=[(5, encoded[:520]), (5, encoded[520:])],
    )

    assert parse_witness_bytes(envelope)[0].metadata == metadata


def test_undecodable_metadata_keeps_the_inscription() -> None:
    envelope = build_envelope("text/plain", b"still here", fields=[(5, b"\x82\x01")])

    inscriptions = parse_witness_bytes(envelope)

    assert len(inscriptions) == 1
    assert inscriptions[0].metadata is None
    assert inscriptions[0].content_string == "still here"


def test_unknown_fields_are_preserved_verbatim() -> None:
    envelope = build_envelope("text/plain", b"x", fields=[(b"\xfe\xed", b"opaque"), (13, b"\x2a")])

    inscription = parse_witness_bytes(envelope)[0]

    assert [(f.tag, f.value) for f in inscription.fields] == [
        (b"\x01", b"text/plain"),
        (b"\xfe\xed", b"opaque"),
        (b"\x0d", b"\x2a"),
    ]
    assert isinstance(inscription.fields, tuple)


def test_invalid_utf8_body_still_yields_text() -> None:
    inscription = parse_witness_bytes(build_envelope("text/plain", b"\xff\xfeok"))[0]

    assert inscription.content_string.endswith("ok")
    assert "\ufffd" in inscription.content_string


def test_empty_body_yields_empty_string() -> None:
    inscription = parse_witness_bytes(build_envelope("text/plain", b""))[0]

    assert inscription.content_string == ""
    assert inscription.data_uri == "data:text/plain;base64,"


def test_small_number_tag_opcode_is_accepted() -> None:
    raw = INSCRIPTION_MARK + b"\x51\x0atext/plain" + b"\x00" + b"\x02hi" + b"\x68"

    inscription = parse_witness_bytes(raw)[0]

    assert inscription.content_type == "text/plain"
    assert inscription.content_string == "hi"


def test_envelope_running_to_end_of_buffer() -> None:
    raw = INSCRIPTION_MARK + b"\x01\x01\x0atext/plain" + b"\x00" + b"\x04tail"

    inscription = parse_witness_bytes(raw)[0]

    assert inscription.content_string == "tail"


def test_envelope_outcomes() -> None:
    parsed_raw = build_envelope("text/plain", b"ok")
    filtered_raw = INSCRIPTION_MARK + b"\x00\x68"
    failed_raw = INSCRIPTION_MARK + b"\x01\x01\x0atext/plain\x00\xac\x68"

    parsed = parse_envelope(parsed_raw, find_next_mark(parsed_raw))
    filtered = parse_envelope(filtered_raw, find_next_mark(filtered_raw))
    failed = parse_envelope(failed_raw, find_next_mark(failed_raw))

    assert parsed.status is EnvelopeStatus.PARSED
    assert isinstance(parsed.inscription, Inscription)
    assert filtered.status is EnvelopeStatus.FILTERED
    assert filtered.inscription is None
    assert failed.status is EnvelopeStatus.FAILED
    assert "0xac" in (failed.reason or "")


def test_empty_content_type_value_is_kept() -> None:
    raw = INSCRIPTION_MARK + b"\x01\x01\x00" + b"\x00" + b"\x01x" + b"\x68"

    inscriptions = parse_witness_bytes(raw)

    assert len(inscriptions) == 1
    assert inscriptions[0].content_type == ""


def test_invalid_hex_witness_is_skipped() -> None:
    good = _reveal_witness(build_envelope("text/plain", b"ok"))
    tx = _tx(["zz"], ["abc"], good)

    assert [i.content_string for i in parse_inscriptions(tx)] == ["ok"]


def test_repeated_markers_terminate() -> None:
    raw = INSCRIPTION_MARK * 200

    assert parse_witness_bytes(raw) == []


def test_parse_inscription_id() -> None:
    txid = "ab" * 32

    assert parse_inscription_id(f"{txid}i3") == (txid, 3)
    with pytest.raises(ValueError):
        parse_inscription_id("abci0")
    with pytest.raises(ValueError):
        parse_inscription_id(f"{txid}ix")


PARSER_LOGGER = "ordpool_parser.ordinals.inscriptions"


def _parser_records(caplog: pytest.LogCaptureFixture) -> list[logging.LogRecord]:
    return [record for record in caplog.records if record.name == PARSER_LOGGER]


def test_truncated_envelope_is_logged_at_info(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger=PARSER_LOGGER)
    raw = INSCRIPTION_MARK + b"\x01\x01" + b"\x4d\xff\xff" + b"abc" + build_envelope("text/plain", b"after")

    inscriptions = parse_witness_bytes(raw)

    assert [i.content_string for i in inscriptions] == ["after"]
    records = _parser_records(caplog)
    assert [record.levelno for record in records] == [logging.INFO]
    assert "offset 6" in records[0].getMessage()


def test_broken_brotli_envelope_is_logged_at_info(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger=PARSER_LOGGER)
    compressed = brotli.compress(bytes(range(256)) * 8)
    broken = build_envelope("text/plain", compressed[: len(compressed) // 2], content_encoding="br")

    inscriptions = parse_witness_bytes(broken + build_envelope("text/plain", b"survivor"))

    assert [i.content_string for i in inscriptions] == ["survivor"]
    records = _parser_records(caplog)
    assert [record.levelno for record in records] == [logging.INFO]
    assert "offset 6" in records[0].getMessage()
    assert "brotli" in records[0].getMessage()


def test_untyped_envelope_is_logged_at_debug(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger=PARSER_LOGGER)

    inscriptions = parse_witness_bytes(build_envelope(None, b"untyped") + build_envelope("text/plain", b"typed"))

    assert [i.content_string for i in inscriptions] == ["typed"]
    records = _parser_records(caplog)
    assert [record.levelno for record in records] == [logging.DEBUG]
    assert "offset 6" in records[0].getMessage()
    assert "missing content type" in records[0].getMessage()


def test_undecodable_metadata_is_logged_at_debug(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger=PARSER_LOGGER)
    inscription = parse_witness_bytes(build_envelope("text/plain", b"x", fields=[(5, b"\x82\x01")]))[0]

    assert inscription.metadata is None
    assert [record.levelno for record in _parser_records(caplog)] == [logging.DEBUG]


@pytest.mark.parametrize("vin", [5, "0011", None, {"witness": []}])
def test_malformed_vin_yields_nothing(vin) -> None:
    assert parse_inscriptions({"vin": vin}) == []
