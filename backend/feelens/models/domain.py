"""
FeeLens - Domain Value Objects

Plain dataclasses passed between the pure validation/scoring layer and the
transactional services. None of these hold a database session.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .db_models import EvidenceTier, UserRole


# =============================================================================
# ACTORS
# =============================================================================

SYSTEM_ACTOR_ROLE = "system"


@dataclass(frozen=True)
class Actor:
    """Verified identity handed over by the authentication collaborator."""
    user_id: str
    role: UserRole = UserRole.USER
    provider_id: Optional[str] = None

    @property
    def is_moderator(self) -> bool:
        return self.role in (UserRole.MODERATOR, UserRole.ADMIN)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


# =============================================================================
# SCHEMAS
# =============================================================================

@dataclass(frozen=True)
class IndustrySchema:
    """Detached snapshot of the active IndustrySchemaDB row for a key."""
    industry_key: str
    version: int
    display_name: str
    fee_breakdown_schema: Dict[str, Any] = field(default_factory=dict)
    context_schema: Dict[str, Any] = field(default_factory=dict)
    validation_rules: Dict[str, Any] = field(default_factory=dict)
    service_taxonomy: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = True

    @classmethod
    def from_row(cls, row) -> "IndustrySchema":
        return cls(
            industry_key=row.industry_key,
            version=row.version,
            display_name=row.display_name,
            fee_breakdown_schema=dict(row.fee_breakdown_schema or {}),
            context_schema=dict(row.context_schema or {}),
            validation_rules=dict(row.validation_rules or {}),
            service_taxonomy=dict(row.service_taxonomy or {}),
            is_active=bool(row.is_active),
        )


# =============================================================================
# VALIDATION / SCORING RESULTS
# =============================================================================

@dataclass
class ValidationResult:
    """
    Outcome of a pure validator run.

    ``field_errors`` maps a dotted path (``fee_breakdown.hourly_rate``) to a
    message. ``normalized`` is the input with derived fields recomputed.
    """
    field_errors: Dict[str, str] = field(default_factory=dict)
    normalized: Dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.field_errors

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        merged = dict(self.field_errors)
        merged.update(other.field_errors)
        return ValidationResult(field_errors=merged, normalized=dict(self.normalized))


@dataclass
class EntrySnapshot:
    """The scorer's view of an entry. Built from a request or a stored row."""
    hidden_items: List[str] = field(default_factory=list)
    initial_quote_total: Optional[float] = None
    final_total_paid: Optional[float] = None
    similar_recent_entries: int = 0
    reverification_since: Optional[datetime] = None


@dataclass(frozen=True)
class ScoreResult:
    evidence_tier: EvidenceTier
    risk_flags: List[str]
    delta_pct: Optional[float] = None
