"""
Entry re-scoring against the database.

The scorer itself is pure; this module gathers its inputs (confirmed
evidence, duplicate candidates) for a stored entry and writes the derived
tier, flags and delta back. Callers run it inside their own transaction
whenever evidence or the re-verification marker changes.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from ...models.db_models import EvidenceDB, FeeEntryDB, UploadState
from ...models.domain import ScoreResult
from . import risk_scorer

logger = logging.getLogger(__name__)


def count_similar_recent_entries(
    db: Session,
    submitter_id: str,
    provider_id: str,
    service_key: Optional[str],
    final_total_paid: Optional[float],
    as_of: datetime,
    exclude_entry_id: Optional[str] = None,
) -> int:
    """
    Earlier entries by the same submitter for the same provider and service
    with the same final total, within the duplicate window before ``as_of``.
    """
    if final_total_paid is None:
        return 0

    since = as_of - timedelta(days=risk_scorer.DUPLICATE_WINDOW_DAYS)
    query = db.query(FeeEntryDB).filter(
        FeeEntryDB.submitter_id == submitter_id,
        FeeEntryDB.provider_id == provider_id,
        FeeEntryDB.final_total_paid == final_total_paid,
        FeeEntryDB.created_at >= since,
        FeeEntryDB.created_at <= as_of,
    )
    if service_key is None:
        query = query.filter(FeeEntryDB.service_key.is_(None))
    else:
        query = query.filter(FeeEntryDB.service_key == service_key)
    if exclude_entry_id is not None:
        query = query.filter(FeeEntryDB.id != exclude_entry_id)
    return query.count()


def confirmed_evidence_times(db: Session, entry_id: str) -> List[Optional[datetime]]:
    rows = (
        db.query(EvidenceDB.confirmed_at)
        .filter(
            EvidenceDB.entry_id == entry_id,
            EvidenceDB.upload_state == UploadState.CONFIRMED,
        )
        .all()
    )
    return [row[0] for row in rows]


def rescore_entry(db: Session, entry: FeeEntryDB) -> ScoreResult:
    """
    Recompute and store tier, flags and delta for ``entry``.

    If the entry awaits re-verification and fresh evidence has arrived, the
    marker is cleared first so the tier is derived normally again.
    """
    confirmed_at = confirmed_evidence_times(db, entry.id)
    counted = risk_scorer.count_counted_evidence(confirmed_at, entry.reverification_since)

    if entry.reverification_since is not None and counted > 0:
        logger.info(f"Entry {entry.id} re-verified with fresh evidence")
        entry.reverification_since = None

    similar = count_similar_recent_entries(
        db,
        submitter_id=entry.submitter_id,
        provider_id=entry.provider_id,
        service_key=entry.service_key,
        final_total_paid=entry.final_total_paid,
        as_of=entry.created_at or datetime.utcnow(),
        exclude_entry_id=entry.id,
    )
    result = risk_scorer.score(
        risk_scorer.snapshot_of(entry, similar_recent_entries=similar),
        counted,
        entry.quote_transparency_score,
    )

    entry.evidence_tier = result.evidence_tier
    entry.risk_flags = list(result.risk_flags)
    entry.delta_pct = result.delta_pct
    db.flush()
    return result
