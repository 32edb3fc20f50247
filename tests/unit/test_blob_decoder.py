import json

import pytest

from mds_service.core.exceptions import MalformedPayloadError
from mds_service.utils.blob_decoder import PAYLOAD_PARSE_ERROR, b64url_decode, decode_feed_token
from tests.fixtures.feed_factory import blob_payload, fido2_entry, unsigned_token, uaf_entry


def test_decode_feed_token_parses_payload(pki):
    token = pki.sign(blob_payload(7, [fido2_entry("aaguid-1"), uaf_entry()]))

    feed = decode_feed_token(token)

    assert feed.payload.no == 7
    assert feed.payload.next_update == "2030-01-01"
    assert feed.payload.legal_header.startswith("Retrieval and use")
    assert feed.entry_count == 2
    assert feed.payload.entries[0].aaguid == "aaguid-1"
    assert feed.payload.entries[0].status_reports[0].status == "FIDO_CERTIFIED_L1"
    assert feed.payload.entries[1].aaid == "4e4e#4005"
    assert feed.encoded_payload == token.split(".")[1]


def test_decode_feed_token_ignores_unknown_fields_and_statuses():
    entry = fido2_entry("aaguid-2", statuses=["SOME_FUTURE_STATUS"], unknownField=True)
    token = unsigned_token(
        json.dumps({"no": 3, "nextUpdate": "2030-01-01", "entries": [entry], "extra": 1})
    )

    feed = decode_feed_token(token)

    assert feed.payload.entries[0].status_reports[0].status == "SOME_FUTURE_STATUS"


def test_decode_feed_token_strips_surrounding_whitespace(pki):
    token = pki.sign(blob_payload(1, []))

    feed = decode_feed_token(f"\n{token}\n")

    assert feed.token == token
    assert feed.entry_count == 0


@pytest.mark.parametrize(
    "token",
    [
        "not-a-token",
        "a.b",
        "a.b.c.d",
        "eyJhbGciOiJFUzI1NiJ9.!!!.c2ln",
    ],
)
def test_decode_feed_token_rejects_malformed_structure(token):
    with pytest.raises(MalformedPayloadError) as exc_info:
        decode_feed_token(token)

    assert exc_info.value.outcome.success is False
    assert exc_info.value.outcome.reason == PAYLOAD_PARSE_ERROR
    assert exc_info.value.outcome.total_count == 0
    assert exc_info.value.error_code == "MALFORMED_PAYLOAD"


@pytest.mark.parametrize(
    "payload_text",
    [
        "this is not json",
        '["a", "list"]',
        '{"entries": []}',
        '{"no": "seven", "entries": []}',
    ],
)
def test_decode_feed_token_rejects_payload_outside_schema(payload_text):
    with pytest.raises(MalformedPayloadError) as exc_info:
        decode_feed_token(unsigned_token(payload_text))

    assert exc_info.value.outcome.reason == PAYLOAD_PARSE_ERROR


def test_b64url_decode_handles_missing_padding():
    assert b64url_decode("YWI") == b"ab"
    assert b64url_decode("-_8") == b"\xfb\xff"


def test_decode_feed_token_rejects_deeply_nested_payload():
    token = unsigned_token('{"no": 1, "entries": ' + "[" * 100000)

    with pytest.raises(MalformedPayloadError) as exc_info:
        decode_feed_token(token)

    assert exc_info.value.outcome.reason == PAYLOAD_PARSE_ERROR
    assert exc_info.value.outcome.total_count == 0
