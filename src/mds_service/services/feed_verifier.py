"""
Chain-of-trust verification for a decoded metadata BLOB.

The BLOB is a JWS whose header carries the signer certificate chain in
``x5c``. A feed is accepted only when that chain leads to the anchor
configured for its source and the JWS signature verifies under the signer
certificate's key.
"""

from __future__ import annotations

import base64
import binascii
import logging
from pathlib import Path
from urllib.parse import urlparse

import jwt
from cryptography import x509

from mds_service.core.exceptions import MalformedCertificateError, UntrustedSignerError
from mds_service.models.mds_models import IngestionOutcome, MdsSourceConfig
from mds_service.utils.blob_decoder import DecodedFeed
from mds_service.utils.certificate_validator import CertificateChainValidator, subject_name

logger = logging.getLogger(__name__)

CERTIFICATE_PARSE_ERROR = "signer certificate parse error"
UNTRUSTED_SIGNER = "untrusted signer"
UNEXPECTED_ORIGIN = "unexpected feed origin"


def _decode_x5c_entry(entry: str) -> x509.Certificate:
    der_bytes = base64.b64decode(entry, validate=True)
    return x509.load_der_x509_certificate(der_bytes)


def load_trust_anchor(source: MdsSourceConfig) -> x509.Certificate | None:
    """
    Load the PEM trust anchor configured for a source.

    Returns:
        The anchor certificate, or None when the source configures none

    Raises:
        ValueError: If the configured PEM cannot be parsed
        OSError: If the configured anchor file cannot be read
    """
    if source.root_certificate:
        pem = source.root_certificate.encode()
    elif source.root_certificate_path:
        pem = Path(source.root_certificate_path).read_bytes()
    else:
        return None
    return x509.load_pem_x509_certificate(pem)


class FeedVerifier:
    """Verifies the signer of a metadata BLOB against its source's trust anchor."""

    def verify(self, feed: DecodedFeed, url: str | None, source: MdsSourceConfig) -> x509.Certificate:
        """
        Verify the signer chain and signature of a decoded BLOB.

        Args:
            feed: The decoded BLOB
            url: Where the BLOB was fetched from, None when it was pushed directly
            source: Trust configuration of the feed source

        Returns:
            The validated signer certificate

        Raises:
            MalformedCertificateError: If the header chain or the configured
                anchor cannot be parsed
            UntrustedSignerError: If the origin, chain or signature is not trusted
        """
        total = feed.entry_count

        if not self._origin_matches(url, source.url):
            logger.warning("Feed for %s fetched from unexpected origin %s", source.name, url)
            raise UntrustedSignerError(
                f"{UNEXPECTED_ORIGIN}: {url}", IngestionOutcome.failure(UNEXPECTED_ORIGIN, total)
            )

        certificates = self._extract_certificate_chain(feed, total)

        try:
            anchor = load_trust_anchor(source)
        except (ValueError, OSError) as e:
            logger.exception("Trust anchor for %s could not be loaded", source.name)
            raise MalformedCertificateError(
                f"{CERTIFICATE_PARSE_ERROR}: trust anchor: {e}",
                IngestionOutcome.failure(CERTIFICATE_PARSE_ERROR, total),
            ) from e
        if anchor is None:
            raise UntrustedSignerError(
                f"{UNTRUSTED_SIGNER}: no trust anchor configured for {source.name}",
                IngestionOutcome.failure(UNTRUSTED_SIGNER, total),
            )

        signer_cert = certificates[0]
        validator = CertificateChainValidator([anchor])
        chain_result = validator.validate_certificate_chain(signer_cert, certificates[1:])
        if not chain_result.is_valid:
            logger.warning(
                "Signer chain for %s rejected: %s", source.name, chain_result.error_summary
            )
            raise UntrustedSignerError(
                f"{UNTRUSTED_SIGNER}: {chain_result.error_summary}",
                IngestionOutcome.failure(UNTRUSTED_SIGNER, total),
            )

        try:
            jwt.decode(
                feed.token,
                signer_cert.public_key(),
                algorithms=source.allowed_algorithms,
                options={"verify_aud": False, "verify_iss": False},
            )
        except (jwt.exceptions.PyJWTError, ValueError, TypeError) as e:
            logger.warning("Metadata BLOB signature for %s rejected: %s", source.name, e)
            raise UntrustedSignerError(
                f"{UNTRUSTED_SIGNER}: invalid BLOB signature: {e}",
                IngestionOutcome.failure(UNTRUSTED_SIGNER, total),
            ) from e

        logger.info(
            "Metadata BLOB for %s signed by %s", source.name, subject_name(signer_cert)
        )
        return signer_cert

    @staticmethod
    def _extract_certificate_chain(feed: DecodedFeed, total: int) -> list[x509.Certificate]:
        try:
            header = jwt.get_unverified_header(feed.token)
        except jwt.exceptions.PyJWTError as e:
            raise MalformedCertificateError(
                f"{CERTIFICATE_PARSE_ERROR}: invalid JWS header: {e}",
                IngestionOutcome.failure(CERTIFICATE_PARSE_ERROR, total),
            ) from e

        x5c_entries = header.get("x5c")
        if not isinstance(x5c_entries, list) or not x5c_entries:
            raise MalformedCertificateError(
                f"{CERTIFICATE_PARSE_ERROR}: missing x5c header",
                IngestionOutcome.failure(CERTIFICATE_PARSE_ERROR, total),
            )

        try:
            return [_decode_x5c_entry(entry) for entry in x5c_entries]
        except (binascii.Error, ValueError, TypeError) as e:
            raise MalformedCertificateError(
                f"{CERTIFICATE_PARSE_ERROR}: unable to parse x5c certificates: {e}",
                IngestionOutcome.failure(CERTIFICATE_PARSE_ERROR, total),
            ) from e

    @staticmethod
    def _origin_matches(url: str | None, expected_url: str | None) -> bool:
        if not url or not expected_url:
            return True
        actual = urlparse(url)
        expected = urlparse(expected_url)
        return (actual.scheme, actual.netloc.lower()) == (expected.scheme, expected.netloc.lower())
