"""FeeLens - Data Models"""
from .db_models import (
    # Enums
    UserRole, ProviderStatus, PricingModel, EvidenceTier, Visibility,
    ModerationStatus, EntryDisputeStatus, ReportReason, ReportStatus,
    DisputeStatus, DisputeOutcome, UploadState, AuditTargetType,
    # Tables
    UserDB, ProviderDB, IndustrySchemaDB, FeeEntryDB, EvidenceDB,
    EntryReportDB, DisputeDB, ModerationActionDB, ProviderActionDB,
)
from .domain import (
    Actor, IndustrySchema, ValidationResult, EntrySnapshot, ScoreResult,
    SYSTEM_ACTOR_ROLE,
)

__all__ = [
    "UserRole", "ProviderStatus", "PricingModel", "EvidenceTier", "Visibility",
    "ModerationStatus", "EntryDisputeStatus", "ReportReason", "ReportStatus",
    "DisputeStatus", "DisputeOutcome", "UploadState", "AuditTargetType",
    "UserDB", "ProviderDB", "IndustrySchemaDB", "FeeEntryDB", "EvidenceDB",
    "EntryReportDB", "DisputeDB", "ModerationActionDB", "ProviderActionDB",
    "Actor", "IndustrySchema", "ValidationResult", "EntrySnapshot", "ScoreResult",
    "SYSTEM_ACTOR_ROLE",
]
