"""SQLAlchemy models for the cached metadata and the ingestion ledger."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class MetadataRecord(Base):
    """Last accepted metadata for one FIDO2 authenticator model."""

    __tablename__ = "metadata"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    aaguid: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status_reports: Mapped[str | None] = mapped_column(Text, nullable=True)
    biometric_status_reports: Mapped[str | None] = mapped_column(Text, nullable=True)
    time_of_last_status_change: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class MetadataTocRecord(Base):
    """One accepted metadata BLOB version for a feed source. Append-only."""

    __tablename__ = "metadata_toc"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    metadata_source: Mapped[str] = mapped_column(String(128), nullable=False)
    no: Mapped[int] = mapped_column(Integer, nullable=False)
    legal_header: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_update: Mapped[str | None] = mapped_column(String(64), nullable=True)
    encoded_payload: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        UniqueConstraint("metadata_source", "no", name="uq_metadata_toc_source_no"),
        Index("idx_metadata_toc_source", "metadata_source"),
    )
