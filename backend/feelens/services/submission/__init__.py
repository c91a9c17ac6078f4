"""
Submission Services

Write path for community fee entries:
- RiskScorer: evidence tier and risk flags (pure)
- RateLimiter: rolling per-submitter and per-provider caps
- entry_scoring: re-derives tier/flags for a stored entry
- EvidenceService: upload tracking and attachment
- SubmissionService: the transactional submit flow and its dry run
"""

from . import risk_scorer
from .rate_limiter import RateLimiter, RateLimitDecision
from .entry_scoring import rescore_entry, count_similar_recent_entries
from .evidence_service import EvidenceService
from .submission_service import SubmissionService, validate_submission

__all__ = [
    'risk_scorer',
    'RateLimiter',
    'RateLimitDecision',
    'rescore_entry',
    'count_similar_recent_entries',
    'EvidenceService',
    'SubmissionService',
    'validate_submission',
]
