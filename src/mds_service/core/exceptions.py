"""
Exceptions raised by the MDS ingestion pipeline.

Fatal pipeline failures carry the ``IngestionOutcome`` that should be handed
back to the caller, so the orchestrator can convert any of them into a
structured result without inspecting which stage failed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mds_service.models.mds_models import IngestionOutcome


class MdsError(Exception):
    """Base exception for all MDS service errors."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class MdsConfigurationError(MdsError):
    """Raised for unknown sources or unusable settings."""


class MdsFetchError(MdsError):
    """Raised when a metadata feed cannot be downloaded."""


class MdsIngestionError(MdsError):
    """A failure that ends an ingestion run before any entry is written."""

    default_error_code = "INGESTION_FAILED"

    def __init__(self, message: str, outcome: IngestionOutcome) -> None:
        super().__init__(message, self.default_error_code)
        self.outcome = outcome


class MalformedPayloadError(MdsIngestionError):
    """The token or its payload segment could not be decoded."""

    default_error_code = "MALFORMED_PAYLOAD"


class MalformedCertificateError(MdsIngestionError):
    """The embedded signer chain or the configured anchor could not be parsed."""

    default_error_code = "MALFORMED_CERTIFICATE"


class UntrustedSignerError(MdsIngestionError):
    """The signer chain or the token signature did not validate."""

    default_error_code = "UNTRUSTED_SIGNER"


class StaleFeedError(MdsIngestionError):
    """The feed is not newer than the last accepted one for its source."""

    default_error_code = "STALE_FEED"


class StatementSerializationError(MdsError):
    """A single entry's metadata could not be serialised for storage."""

    def __init__(self, aaguid: str, reason: str) -> None:
        super().__init__(
            f"Could not serialise metadata for {aaguid}: {reason}", "STATEMENT_SERIALIZATION"
        )
        self.aaguid = aaguid
