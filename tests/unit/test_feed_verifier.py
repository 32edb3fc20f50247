import json
from datetime import datetime, timedelta, timezone

import pytest

from mds_service.core.exceptions import MalformedCertificateError, UntrustedSignerError
from mds_service.models.mds_models import MdsSourceConfig
from mds_service.services.feed_verifier import (
    CERTIFICATE_PARSE_ERROR,
    UNEXPECTED_ORIGIN,
    UNTRUSTED_SIGNER,
    FeedVerifier,
    load_trust_anchor,
)
from mds_service.utils.blob_decoder import decode_feed_token
from tests.fixtures.feed_factory import (
    FEED_URL,
    FeedPki,
    blob_payload,
    certificate_pem,
    fido2_entry,
    unsigned_token,
)


@pytest.fixture
def verifier():
    return FeedVerifier()


@pytest.fixture
def payload():
    return blob_payload(5, [fido2_entry("aaguid-1"), fido2_entry("aaguid-2")])


def test_verify_accepts_feed_signed_under_anchor(verifier, pki, source, payload):
    feed = decode_feed_token(pki.sign(payload))

    signer = verifier.verify(feed, FEED_URL, source)

    assert signer == pki.signer


def test_verify_accepts_anchor_loaded_from_file(verifier, pki, payload, tmp_path):
    anchor_path = tmp_path / "root.pem"
    anchor_path.write_text(certificate_pem(pki.root))
    source = MdsSourceConfig(name="file-anchor", url=FEED_URL, root_certificate_path=str(anchor_path))

    assert verifier.verify(decode_feed_token(pki.sign(payload)), FEED_URL, source) == pki.signer


def test_verify_rejects_chain_under_other_root(verifier, pki, payload):
    other = FeedPki.generate()
    feed = decode_feed_token(other.sign(payload))

    with pytest.raises(UntrustedSignerError) as exc_info:
        verifier.verify(feed, FEED_URL, pki.source())

    outcome = exc_info.value.outcome
    assert outcome.success is False
    assert outcome.reason == UNTRUSTED_SIGNER
    assert outcome.total_count == 2
    assert outcome.updated_count == 0


def test_verify_rejects_expired_signer(verifier, payload):
    expired = FeedPki.generate(signer_not_after=datetime.now(timezone.utc) - timedelta(hours=1))
    feed = decode_feed_token(expired.sign(payload))

    with pytest.raises(UntrustedSignerError) as exc_info:
        verifier.verify(feed, FEED_URL, expired.source())

    assert "expired" in exc_info.value.message


def test_verify_rejects_tampered_payload(verifier, pki, source, payload):
    header, _, signature = pki.sign(payload).split(".")
    forged_payload = pki.sign(blob_payload(6, payload["entries"])).split(".")[1]
    feed = decode_feed_token(f"{header}.{forged_payload}.{signature}")

    with pytest.raises(UntrustedSignerError) as exc_info:
        verifier.verify(feed, FEED_URL, source)

    assert exc_info.value.outcome.reason == UNTRUSTED_SIGNER


def test_verify_rejects_token_signed_with_other_key(verifier, pki, source, payload):
    other = FeedPki.generate()
    # Genuine chain in the header, signature made by a key the chain does not certify
    feed = decode_feed_token(pki.sign(payload, key=other.signer_key))

    with pytest.raises(UntrustedSignerError):
        verifier.verify(feed, FEED_URL, source)


def test_verify_rejects_disallowed_algorithm(verifier, pki, payload):
    source = pki.source(allowed_algorithms=["RS256"])
    feed = decode_feed_token(pki.sign(payload))

    with pytest.raises(UntrustedSignerError):
        verifier.verify(feed, FEED_URL, source)


def test_verify_rejects_unexpected_origin(verifier, pki, source, payload):
    feed = decode_feed_token(pki.sign(payload))

    with pytest.raises(UntrustedSignerError) as exc_info:
        verifier.verify(feed, "https://mirror.attacker.test/blob.jwt", source)

    assert exc_info.value.outcome.reason == UNEXPECTED_ORIGIN


def test_verify_skips_origin_check_without_url(verifier, pki, source, payload):
    feed = decode_feed_token(pki.sign(payload))

    assert verifier.verify(feed, None, source) == pki.signer


@pytest.mark.parametrize(
    "header",
    [
        {"alg": "ES256"},
        {"alg": "ES256", "x5c": []},
        {"alg": "ES256", "x5c": ["%%%not-base64%%%"]},
        {"alg": "ES256", "x5c": ["aGVsbG8gd29ybGQ="]},
    ],
)
def test_verify_rejects_unparseable_chain(verifier, source, payload, header):
    feed = decode_feed_token(unsigned_token(json.dumps(payload), header=header))

    with pytest.raises(MalformedCertificateError) as exc_info:
        verifier.verify(feed, FEED_URL, source)

    assert exc_info.value.outcome.reason == CERTIFICATE_PARSE_ERROR
    assert exc_info.value.outcome.total_count == 2


def test_verify_without_anchor_is_untrusted(verifier, pki, payload):
    source = MdsSourceConfig(name="no-anchor", url=FEED_URL)

    with pytest.raises(UntrustedSignerError) as exc_info:
        verifier.verify(decode_feed_token(pki.sign(payload)), FEED_URL, source)

    assert exc_info.value.outcome.reason == UNTRUSTED_SIGNER


def test_verify_with_unparseable_anchor(verifier, pki, payload):
    source = MdsSourceConfig(name="bad-anchor", url=FEED_URL, root_certificate="not a pem")

    with pytest.raises(MalformedCertificateError):
        verifier.verify(decode_feed_token(pki.sign(payload)), FEED_URL, source)


def test_load_trust_anchor_returns_none_without_configuration():
    assert load_trust_anchor(MdsSourceConfig(name="empty")) is None
