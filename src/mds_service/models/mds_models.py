"""
Data models for the MDS service
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuthenticatorStatus(str, Enum):
    """Authenticator status values published in MDS status reports"""

    NOT_FIDO_CERTIFIED = "NOT_FIDO_CERTIFIED"
    FIDO_CERTIFIED = "FIDO_CERTIFIED"
    USER_VERIFICATION_BYPASS = "USER_VERIFICATION_BYPASS"
    ATTESTATION_KEY_COMPROMISE = "ATTESTATION_KEY_COMPROMISE"
    USER_KEY_REMOTE_COMPROMISE = "USER_KEY_REMOTE_COMPROMISE"
    USER_KEY_PHYSICAL_COMPROMISE = "USER_KEY_PHYSICAL_COMPROMISE"
    UPDATE_AVAILABLE = "UPDATE_AVAILABLE"
    REVOKED = "REVOKED"
    SELF_ASSERTION_SUBMITTED = "SELF_ASSERTION_SUBMITTED"
    FIDO_CERTIFIED_L1 = "FIDO_CERTIFIED_L1"
    FIDO_CERTIFIED_L1PLUS = "FIDO_CERTIFIED_L1plus"
    FIDO_CERTIFIED_L2 = "FIDO_CERTIFIED_L2"
    FIDO_CERTIFIED_L2PLUS = "FIDO_CERTIFIED_L2plus"
    FIDO_CERTIFIED_L3 = "FIDO_CERTIFIED_L3"
    FIDO_CERTIFIED_L3PLUS = "FIDO_CERTIFIED_L3plus"


class MdsModel(BaseModel):
    """Base for wire models: camelCase aliases, unknown fields ignored."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class StatusReport(MdsModel):
    """Status report attached to a metadata BLOB entry"""

    # Kept as a plain string so statuses added to the feed later still parse
    status: str
    effective_date: Optional[str] = Field(default=None, alias="effectiveDate")
    authenticator_version: Optional[int] = Field(default=None, alias="authenticatorVersion")
    certificate: Optional[str] = None
    url: Optional[str] = None
    certification_descriptor: Optional[str] = Field(default=None, alias="certificationDescriptor")
    certificate_number: Optional[str] = Field(default=None, alias="certificateNumber")
    certification_policy_version: Optional[str] = Field(
        default=None, alias="certificationPolicyVersion"
    )
    certification_requirements_version: Optional[str] = Field(
        default=None, alias="certificationRequirementsVersion"
    )


class BiometricStatusReport(MdsModel):
    """Biometric certification status of a single modality"""

    cert_level: int = Field(alias="certLevel")
    modality: str
    effective_date: Optional[str] = Field(default=None, alias="effectiveDate")
    certification_descriptor: Optional[str] = Field(default=None, alias="certificationDescriptor")
    certificate_number: Optional[str] = Field(default=None, alias="certificateNumber")
    certification_policy_version: Optional[str] = Field(
        default=None, alias="certificationPolicyVersion"
    )
    certification_requirements_version: Optional[str] = Field(
        default=None, alias="certificationRequirementsVersion"
    )


class MetadataEntry(MdsModel):
    """One authenticator's record in the metadata BLOB"""

    aaid: Optional[str] = None
    aaguid: Optional[str] = None
    attestation_certificate_key_identifiers: Optional[list[str]] = Field(
        default=None, alias="attestationCertificateKeyIdentifiers"
    )
    metadata_statement: Optional[dict[str, Any]] = Field(default=None, alias="metadataStatement")
    biometric_status_reports: Optional[list[BiometricStatusReport]] = Field(
        default=None, alias="biometricStatusReports"
    )
    status_reports: list[StatusReport] = Field(default_factory=list, alias="statusReports")
    time_of_last_status_change: Optional[str] = Field(
        default=None, alias="timeOfLastStatusChange"
    )
    rogue_list_url: Optional[str] = Field(default=None, alias="rogueListURL")
    rogue_list_hash: Optional[str] = Field(default=None, alias="rogueListHash")


class FeedPayload(MdsModel):
    """Decoded metadata BLOB payload"""

    legal_header: Optional[str] = Field(default=None, alias="legalHeader")
    no: int
    next_update: Optional[str] = Field(default=None, alias="nextUpdate")
    entries: list[MetadataEntry] = Field(default_factory=list)


class IngestionOutcome(BaseModel):
    """Result of one ingestion run"""

    model_config = ConfigDict(frozen=True)

    success: bool
    total_count: int = 0
    updated_count: int = 0
    legacy_count: int = 0
    second_gen_count: int = 0
    modern_count: int = 0
    reason: Optional[str] = None

    @classmethod
    def failure(cls, reason: str, total_count: int = 0) -> IngestionOutcome:
        """Outcome for a run that stopped before processing any entry."""
        return cls(success=False, total_count=total_count, updated_count=0, reason=reason)


DEFAULT_ALLOWED_ALGORITHMS = ["ES256", "ES384", "ES512", "RS256", "RS384", "RS512", "PS256"]


class MdsSourceConfig(BaseModel):
    """Trust configuration for a single metadata feed source"""

    name: str
    url: Optional[str] = None
    root_certificate: Optional[str] = None
    root_certificate_path: Optional[str] = None
    allowed_algorithms: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_ALGORITHMS)
    )
    enabled: bool = True

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Source names key the ingestion ledger and must not be blank."""
        if not v or not v.strip():
            msg = "Source name cannot be empty"
            raise ValueError(msg)
        return v.strip()


# Response Models
class MetadataRecordResponse(BaseModel):
    """Cached metadata for a single FIDO2 authenticator"""

    aaguid: str
    metadata_statement: dict[str, Any]
    status_reports: Optional[list[dict[str, Any]]] = None
    biometric_status_reports: Optional[list[dict[str, Any]]] = None
    time_of_last_status_change: Optional[str] = None


class IngestTokenRequest(BaseModel):
    """Request model for pushing a metadata BLOB directly"""

    token: str
    url: Optional[str] = None


class SourceSyncStatus(BaseModel):
    """Most recent synchronization result of one source"""

    source: str
    last_successful_sync: Optional[datetime] = None
    last_outcome: Optional[IngestionOutcome] = None


class SyncStatusResponse(BaseModel):
    """Response model for the synchronization status endpoint"""

    sources: list[SourceSyncStatus] = Field(default_factory=list)
