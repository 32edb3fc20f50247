"""
Certificate chain validation for metadata BLOB signers
======================================================

Builds the path from the BLOB signing certificate through the intermediates
carried in the token header up to the trust anchor configured for the feed
source, and checks:

- validity period of every certificate at the validation moment
- CA basic constraints on every issuing certificate
- the signature on every link of the path
- that the path terminates at the configured anchor

Revocation is not checked.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization

logger = logging.getLogger(__name__)


class ValidationResult(Enum):
    """Certificate validation result types."""

    VALID = "valid"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    UNTRUSTED = "untrusted"
    INVALID_SIGNATURE = "invalid_signature"
    CHAIN_BROKEN = "chain_broken"


@dataclass
class ValidationError:
    """Individual certificate validation error."""

    certificate_subject: str
    error_type: ValidationResult
    error_message: str


@dataclass
class ChainValidationResult:
    """Result of certificate chain validation."""

    validation_time: datetime
    validation_path: list[x509.Certificate] = field(default_factory=list)
    errors: list[ValidationError] = field(default_factory=list)
    trust_anchor: x509.Certificate | None = None

    @property
    def is_valid(self) -> bool:
        return not self.errors and self.trust_anchor is not None

    @property
    def error_summary(self) -> str:
        if not self.errors:
            return "No errors"
        return "; ".join(f"{e.certificate_subject}: {e.error_message}" for e in self.errors)


def certificate_fingerprint(cert: x509.Certificate) -> str:
    """SHA-256 fingerprint of the DER encoding."""
    return hashlib.sha256(cert.public_bytes(serialization.Encoding.DER)).hexdigest().upper()


def subject_name(cert: x509.Certificate) -> str:
    try:
        return cert.subject.rfc4514_string()
    except (ValueError, AttributeError):
        return "Unknown Subject"


class CertificateChainValidator:
    """Validates a signer chain against a fixed set of trust anchors."""

    def __init__(self, trust_anchors: list[x509.Certificate] | None = None) -> None:
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._anchors: dict[str, x509.Certificate] = {}
        for anchor in trust_anchors or []:
            self.add_trust_anchor(anchor)

    def add_trust_anchor(self, cert: x509.Certificate) -> None:
        self._anchors[certificate_fingerprint(cert)] = cert
        self.logger.debug("Added trust anchor: %s", subject_name(cert))

    def validate_certificate_chain(
        self,
        end_entity_cert: x509.Certificate,
        intermediate_certs: list[x509.Certificate] | None = None,
        validation_time: datetime | None = None,
    ) -> ChainValidationResult:
        """
        Validate a signer certificate and its intermediates.

        Args:
            end_entity_cert: The certificate whose key signed the document
            intermediate_certs: Further certificates supplied with the document
            validation_time: Moment to check validity periods at (defaults to now)

        Returns:
            The validation result; ``is_valid`` is True only when every check passed
        """
        result = ChainValidationResult(validation_time=validation_time or datetime.now(timezone.utc))

        cert_path = self._build_certificate_path(end_entity_cert, intermediate_certs or [])
        result.validation_path = cert_path

        for index, cert in enumerate(cert_path):
            result.errors.extend(self._validate_single_certificate(cert, index > 0, result.validation_time))

        result.errors.extend(self._verify_signature_chain(cert_path))

        anchor = self._anchors.get(certificate_fingerprint(cert_path[-1]))
        if anchor is None:
            result.errors.append(
                ValidationError(
                    certificate_subject=subject_name(cert_path[-1]),
                    error_type=ValidationResult.UNTRUSTED,
                    error_message="Chain does not terminate at a configured trust anchor",
                )
            )
        else:
            result.trust_anchor = anchor

        self.logger.info(
            "Certificate chain validation for %s %s (%d certificates, %d errors)",
            subject_name(end_entity_cert),
            "passed" if result.is_valid else "failed",
            len(cert_path),
            len(result.errors),
        )
        return result

    def _build_certificate_path(
        self, end_entity_cert: x509.Certificate, intermediate_certs: list[x509.Certificate]
    ) -> list[x509.Certificate]:
        """Build ordered certificate path from end entity towards an anchor."""

        cert_path = [end_entity_cert]
        current_cert = end_entity_cert
        used = {certificate_fingerprint(end_entity_cert)}

        while certificate_fingerprint(current_cert) not in self._anchors:
            issuer = self._find_issuer(current_cert, intermediate_certs, used)
            if issuer is None:
                issuer = self._find_issuer(current_cert, list(self._anchors.values()), used)
            if issuer is None:
                break
            cert_path.append(issuer)
            used.add(certificate_fingerprint(issuer))
            current_cert = issuer

        self.logger.debug("Built certificate path with %d certificates", len(cert_path))
        return cert_path

    @staticmethod
    def _find_issuer(
        subject_cert: x509.Certificate, candidates: list[x509.Certificate], used: set[str]
    ) -> x509.Certificate | None:
        for candidate in candidates:
            if certificate_fingerprint(candidate) in used:
                continue
            if subject_cert.issuer == candidate.subject:
                return candidate
        return None

    def _validate_single_certificate(
        self, cert: x509.Certificate, is_issuer: bool, moment: datetime
    ) -> list[ValidationError]:
        errors = []
        subject = subject_name(cert)

        if moment > cert.not_valid_after_utc:
            errors.append(
                ValidationError(
                    certificate_subject=subject,
                    error_type=ValidationResult.EXPIRED,
                    error_message=f"Certificate expired on {cert.not_valid_after_utc.isoformat()}",
                )
            )
        elif moment < cert.not_valid_before_utc:
            errors.append(
                ValidationError(
                    certificate_subject=subject,
                    error_type=ValidationResult.NOT_YET_VALID,
                    error_message=f"Certificate not valid until {cert.not_valid_before_utc.isoformat()}",
                )
            )

        if is_issuer and not self._is_ca(cert):
            errors.append(
                ValidationError(
                    certificate_subject=subject,
                    error_type=ValidationResult.CHAIN_BROKEN,
                    error_message="Issuing certificate is not a CA",
                )
            )

        return errors

    def _verify_signature_chain(self, cert_path: list[x509.Certificate]) -> list[ValidationError]:
        """Verify the signature of every certificate by the next one in the path."""

        errors = []
        for current_cert, issuer_cert in zip(cert_path, cert_path[1:]):
            try:
                current_cert.verify_directly_issued_by(issuer_cert)
            except InvalidSignature:
                errors.append(
                    ValidationError(
                        certificate_subject=subject_name(current_cert),
                        error_type=ValidationResult.INVALID_SIGNATURE,
                        error_message=f"Invalid signature from issuer {subject_name(issuer_cert)}",
                    )
                )
            except (ValueError, TypeError) as e:
                errors.append(
                    ValidationError(
                        certificate_subject=subject_name(current_cert),
                        error_type=ValidationResult.CHAIN_BROKEN,
                        error_message=f"Signature verification failed: {e}",
                    )
                )
        return errors

    @staticmethod
    def _is_ca(cert: x509.Certificate) -> bool:
        try:
            return cert.extensions.get_extension_for_class(x509.BasicConstraints).value.ca
        except x509.ExtensionNotFound:
            return False
