"""
Risk & Evidence Scorer

Derives an entry's evidence tier and risk flags from its content and the
evidence confirmed for it. Deterministic and side-effect free; callers
re-run it on every change instead of storing a sticky tier.

TIER POLICY:
- A: at least one confirmed evidence AND transparency >= 4
- B: confirmed evidence OR transparency >= 3
- C: otherwise

Monotonic: more confirmed evidence or a higher transparency score never
lowers the tier.
"""
from datetime import datetime
from typing import List, Optional, Sequence

from ...models.db_models import EvidenceTier, FeeEntryDB
from ...models.domain import EntrySnapshot, ScoreResult


# =============================================================================
# RISK FLAGS
# =============================================================================

FLAG_NO_EVIDENCE = "no_evidence"
FLAG_QUOTE_PAID_MISMATCH = "quote_paid_mismatch"
FLAG_DUPLICATE_SUSPECT = "duplicate_suspect"
FLAG_UNDISCLOSED_ITEMS = "undisclosed_items"
FLAG_LOW_TRANSPARENCY = "low_transparency"

QUOTE_MISMATCH_THRESHOLD_PCT = 30.0
LOW_TRANSPARENCY_MAX = 2
DUPLICATE_WINDOW_DAYS = 30

TIER_A_MIN_TRANSPARENCY = 4
TIER_B_MIN_TRANSPARENCY = 3


def derive_delta_pct(
    initial_quote_total: Optional[float],
    final_total_paid: Optional[float],
) -> Optional[float]:
    """Percentage difference between paid and quoted, 2 dp."""
    if initial_quote_total is None or final_total_paid is None:
        return None
    if initial_quote_total <= 0:
        return None
    return round((final_total_paid - initial_quote_total) / initial_quote_total * 100, 2)


def derive_tier(confirmed_evidence: int, transparency_score: Optional[int]) -> EvidenceTier:
    transparency = transparency_score or 0
    if confirmed_evidence >= 1 and transparency >= TIER_A_MIN_TRANSPARENCY:
        return EvidenceTier.A
    if confirmed_evidence >= 1 or transparency >= TIER_B_MIN_TRANSPARENCY:
        return EvidenceTier.B
    return EvidenceTier.C


def derive_risk_flags(
    entry: EntrySnapshot,
    confirmed_evidence: int,
    transparency_score: Optional[int],
    delta_pct: Optional[float],
) -> List[str]:
    # Each signal is evaluated on its own; none suppresses another.
    flags = []
    if confirmed_evidence == 0:
        flags.append(FLAG_NO_EVIDENCE)
    if delta_pct is not None and abs(delta_pct) >= QUOTE_MISMATCH_THRESHOLD_PCT:
        flags.append(FLAG_QUOTE_PAID_MISMATCH)
    if entry.similar_recent_entries > 0:
        flags.append(FLAG_DUPLICATE_SUSPECT)
    if entry.hidden_items:
        flags.append(FLAG_UNDISCLOSED_ITEMS)
    if transparency_score is not None and transparency_score <= LOW_TRANSPARENCY_MAX:
        flags.append(FLAG_LOW_TRANSPARENCY)
    return flags


def count_counted_evidence(
    confirmed_at: Sequence[Optional[datetime]],
    reverification_since: Optional[datetime],
) -> int:
    """
    Number of confirmed evidence rows that count toward the tier.

    After a "corrected" dispute outcome only evidence confirmed later counts.
    """
    if reverification_since is None:
        return len(confirmed_at)
    return sum(1 for ts in confirmed_at if ts is not None and ts > reverification_since)


def score(
    entry: EntrySnapshot,
    confirmed_evidence: int,
    transparency_score: Optional[int],
) -> ScoreResult:
    """
    Compute tier and flags.

    ``confirmed_evidence`` must already be filtered through
    count_counted_evidence(). An entry awaiting re-verification with no fresh
    evidence is held at tier C.
    """
    delta_pct = derive_delta_pct(entry.initial_quote_total, entry.final_total_paid)
    flags = derive_risk_flags(entry, confirmed_evidence, transparency_score, delta_pct)

    if entry.reverification_since is not None and confirmed_evidence == 0:
        tier = EvidenceTier.C
    else:
        tier = derive_tier(confirmed_evidence, transparency_score)

    return ScoreResult(evidence_tier=tier, risk_flags=flags, delta_pct=delta_pct)


def snapshot_of(entry: FeeEntryDB, similar_recent_entries: int = 0) -> EntrySnapshot:
    return EntrySnapshot(
        hidden_items=list(entry.hidden_items or []),
        initial_quote_total=entry.initial_quote_total,
        final_total_paid=entry.final_total_paid,
        similar_recent_entries=similar_recent_entries,
        reverification_since=entry.reverification_since,
    )
