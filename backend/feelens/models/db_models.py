"""
FeeLens - SQLAlchemy ORM Models
PostgreSQL database models for persistent storage
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, String, Integer, Float, DateTime, Text, JSON, ForeignKey,
    Enum as SQLEnum, Boolean, Index, text,
)
from sqlalchemy.orm import relationship
from ..database import Base


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, Enum):
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"


class ProviderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PricingModel(str, Enum):
    """Billing structure; determines mandatory fee-breakdown fields."""
    HOURLY = "hourly"
    FIXED = "fixed"
    CAPPED = "capped"
    RETAINER = "retainer"
    CONTINGENCY_PCT = "contingency_pct"
    UPLIFT = "uplift"
    BLENDED = "blended"
    OTHER = "other"


class EvidenceTier(str, Enum):
    A = "A"
    B = "B"
    C = "C"


class Visibility(str, Enum):
    PUBLIC = "public"
    HIDDEN = "hidden"
    FLAGGED = "flagged"


class ModerationStatus(str, Enum):
    UNREVIEWED = "unreviewed"
    FLAGGED = "flagged"
    APPROVED = "approved"
    REJECTED = "rejected"


class EntryDisputeStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    RESOLVED = "resolved"


class ReportReason(str, Enum):
    INACCURATE = "inaccurate"
    FAKE = "fake"
    EXPIRED = "expired"
    OFFENSIVE = "offensive"
    DUPLICATE = "duplicate"
    OTHER = "other"


class ReportStatus(str, Enum):
    OPEN = "open"
    TRIAGED = "triaged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class DisputeStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class DisputeOutcome(str, Enum):
    MAINTAINED = "maintained"
    CORRECTED = "corrected"
    REMOVED = "removed"
    PARTIAL_HIDDEN = "partial_hidden"


class UploadState(str, Enum):
    # client-side only: nothing is stored until the upload is signed
    IDLE = "idle"
    UPLOADING = "uploading"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class AuditTargetType(str, Enum):
    ENTRY = "entry"
    REPORT = "report"
    DISPUTE = "dispute"


# =============================================================================
# USERS / PROVIDERS
# =============================================================================

class UserDB(Base):
    """
    Account row supplied by the authentication collaborator.
    Only identity, role and provider representation matter to the core.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.USER)

    # Set when the user speaks for a listed business (may raise disputes)
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class ProviderDB(Base):
    """A listed business. Entries can only be submitted once approved."""
    __tablename__ = "providers"

    id = Column(String(36), primary_key=True)  # UUID
    name = Column(String(255), nullable=False)
    industry_key = Column(String(64), nullable=True, index=True)
    suburb = Column(String(100), nullable=True)
    state = Column(String(8), nullable=True, index=True)  # NSW, VIC, ...
    postcode = Column(String(8), nullable=True, index=True)
    status = Column(SQLEnum(ProviderStatus), nullable=False, default=ProviderStatus.PENDING)
    created_by = Column(String(36), nullable=True)  # users.id

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    entries = relationship("FeeEntryDB", back_populates="provider")


# =============================================================================
# INDUSTRY SCHEMAS
# =============================================================================

class IndustrySchemaDB(Base):
    """
    Versioned per-industry validation schema.
    Exactly one active row per industry_key (partial unique index).
    """
    __tablename__ = "industry_schemas"
    __table_args__ = (
        Index(
            "uq_industry_schemas_active_key",
            "industry_key",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("ix_industry_schemas_key_version", "industry_key", "version", unique=True),
    )

    id = Column(String(36), primary_key=True)  # UUID
    industry_key = Column(String(64), nullable=False, index=True)
    display_name = Column(String(255), nullable=False)
    version = Column(Integer, nullable=False, default=1)

    # {"properties": {...}, "required": [...], "additionalProperties": bool}
    fee_breakdown_schema = Column(JSON, nullable=False, default=dict)
    context_schema = Column(JSON, nullable=False, default=dict)
    # {"pricing_model_required_fields": {...}, "auto_publish": {...}, ...}
    validation_rules = Column(JSON, nullable=False, default=dict)
    service_taxonomy = Column(JSON, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


# =============================================================================
# FEE ENTRIES
# =============================================================================

class FeeEntryDB(Base):
    """
    A submitted record of what was paid for a professional service.

    Invariants:
    - visibility == public implies moderation_status == approved
    - dispute_status == pending implies a pending DisputeDB references this row
    - evidence_tier / risk_flags are derived by the scorer, never hand-set
    """
    __tablename__ = "fee_entries"

    id = Column(String(36), primary_key=True)  # UUID
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)
    submitter_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    industry_key = Column(String(64), nullable=False, index=True)
    schema_version = Column(Integer, nullable=False)
    service_key = Column(String(100), nullable=True)
    pricing_model = Column(SQLEnum(PricingModel), nullable=False)

    fee_breakdown = Column(JSON, nullable=False, default=dict)
    context = Column(JSON, nullable=False, default=dict)
    hidden_items = Column(JSON, nullable=False, default=list)
    quote_transparency_score = Column(Integer, nullable=True)  # 1-5

    # Derived
    evidence_tier = Column(SQLEnum(EvidenceTier), nullable=False, default=EvidenceTier.C)
    risk_flags = Column(JSON, nullable=False, default=list)
    initial_quote_total = Column(Float, nullable=True)
    final_total_paid = Column(Float, nullable=True)
    delta_pct = Column(Float, nullable=True)

    # Workflow
    visibility = Column(SQLEnum(Visibility), nullable=False, default=Visibility.HIDDEN)
    moderation_status = Column(SQLEnum(ModerationStatus), nullable=False, default=ModerationStatus.UNREVIEWED)
    dispute_status = Column(SQLEnum(EntryDisputeStatus), nullable=False, default=EntryDisputeStatus.NONE)
    # Set by a "corrected" dispute outcome; only evidence confirmed later counts
    reverification_since = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    provider = relationship("ProviderDB", back_populates="entries")
    evidence = relationship("EvidenceDB", back_populates="entry")
    reports = relationship("EntryReportDB", back_populates="entry", cascade="all, delete-orphan")
    disputes = relationship("DisputeDB", back_populates="entry", cascade="all, delete-orphan")


class EvidenceDB(Base):
    """
    Uploaded proof for an entry. Bytes live in the storage collaborator;
    only the object key and upload state are tracked here.
    """
    __tablename__ = "evidence"

    id = Column(String(36), primary_key=True)  # UUID
    entry_id = Column(String(36), ForeignKey("fee_entries.id", ondelete="SET NULL"), nullable=True, index=True)
    uploader_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    object_key = Column(String(500), nullable=False, unique=True)
    mime_type = Column(String(100), nullable=False)
    size_bytes = Column(Integer, nullable=False)
    upload_state = Column(SQLEnum(UploadState), nullable=False, default=UploadState.UPLOADING)

    created_at = Column(DateTime, default=datetime.utcnow)
    confirmed_at = Column(DateTime, nullable=True)

    entry = relationship("FeeEntryDB", back_populates="evidence")


# =============================================================================
# REPORTS / DISPUTES
# =============================================================================

class EntryReportDB(Base):
    """
    A community complaint about an entry.
    Tracked independently of the entry's own state.
    """
    __tablename__ = "entry_reports"

    id = Column(String(36), primary_key=True)  # UUID
    entry_id = Column(String(36), ForeignKey("fee_entries.id", ondelete="CASCADE"), nullable=False, index=True)
    reporter_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    reason_code = Column(SQLEnum(ReportReason), nullable=False)
    details = Column(Text, nullable=True)

    status = Column(SQLEnum(ReportStatus), nullable=False, default=ReportStatus.OPEN)
    resolution_note = Column(Text, nullable=True)
    handled_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    entry = relationship("FeeEntryDB", back_populates="reports")


class DisputeDB(Base):
    """
    A formal challenge by the listed business against an entry's accuracy.
    While pending, the entry's dispute_status is kept at pending.
    """
    __tablename__ = "disputes"

    id = Column(String(36), primary_key=True)  # UUID
    entry_id = Column(String(36), ForeignKey("fee_entries.id", ondelete="CASCADE"), nullable=False, index=True)
    provider_id = Column(String(36), ForeignKey("providers.id", ondelete="CASCADE"), nullable=False, index=True)
    raised_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    provider_verification_method = Column(String(100), nullable=True)
    provider_contact = Column(String(255), nullable=True)
    provider_claim = Column(Text, nullable=False)

    status = Column(SQLEnum(DisputeStatus), nullable=False, default=DisputeStatus.PENDING)
    outcome = Column(SQLEnum(DisputeOutcome), nullable=True)
    platform_response = Column(Text, nullable=True)
    resolution_note = Column(Text, nullable=True)
    resolved_by = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    resolved_at = Column(DateTime, nullable=True)

    entry = relationship("FeeEntryDB", back_populates="disputes")


# =============================================================================
# AUDIT TRAIL
# =============================================================================

class ModerationActionDB(Base):
    """
    Immutable record of every mutating action on entries, reports and disputes.
    Append-only - one row per state-changing call.
    """
    __tablename__ = "moderation_actions"

    id = Column(String(36), primary_key=True)  # UUID

    actor_id = Column(String(36), nullable=True, index=True)  # NULL for system actions
    actor_role = Column(String(20), nullable=False)
    action = Column(String(50), nullable=False)

    target_type = Column(SQLEnum(AuditTargetType), nullable=False)
    target_id = Column(String(36), nullable=False, index=True)
    entry_id = Column(String(36), nullable=True, index=True)
    related_report_id = Column(String(36), nullable=True)

    old_state = Column(JSON, nullable=True)
    new_state = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)


class ProviderActionDB(Base):
    """Immutable record of provider approval decisions."""
    __tablename__ = "provider_actions"

    id = Column(String(36), primary_key=True)  # UUID
    provider_id = Column(String(36), nullable=False, index=True)

    actor_id = Column(String(36), nullable=True)
    actor_role = Column(String(20), nullable=False)
    action = Column(String(50), nullable=False)

    old_state = Column(JSON, nullable=True)
    new_state = Column(JSON, nullable=True)
    reason = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
