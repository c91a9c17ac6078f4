"""
Public Feed

Read-only views over entries that are public (and therefore approved):
the filtered explore listing with its summary, and the home page stats.
Only whitelisted fields leave this module; submitter identities never do.
"""
import logging
import math
import re
import statistics
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import func, or_
from sqlalchemy.orm import Query, Session

from ...models.db_models import (
    EvidenceTier, FeeEntryDB, IndustrySchemaDB, ModerationStatus, ProviderDB,
    ProviderStatus, Visibility,
)
from ..moderation.entry_lifecycle import serialize_entry
from .query import ExploreQuery

logger = logging.getLogger(__name__)

RECENT_LIMIT = 6
POSTCODE_PATTERN = re.compile(r"^\d{4}$")


# =============================================================================
# FORMATTING
# =============================================================================

def format_compact_aud(amount: Optional[float]) -> str:
    """4200000 -> "$4.2M", 350000 -> "$350K", 999 -> "$999"."""
    value = abs(float(amount or 0))
    if math.isnan(value) or value == 0:
        return "$0"
    if value >= 1_000_000:
        scaled, suffix = value / 1_000_000, "M"
    elif value >= 1_000:
        scaled, suffix = value / 1_000, "K"
    else:
        return f"${value:,.0f}" if value == int(value) else f"${value:,.2f}"
    return f"${scaled:.0f}{suffix}" if scaled == int(scaled) else f"${scaled:.1f}{suffix}"


def paid_quartiles(amounts: Sequence[float]) -> List[Optional[float]]:
    """P25 / P50 / P75 with linear interpolation between closest ranks."""
    if not amounts:
        return [None, None, None]
    if len(amounts) == 1:
        return [round(amounts[0], 2)] * 3
    cuts = statistics.quantiles(sorted(amounts), n=4, method="inclusive")
    return [round(c, 2) for c in cuts]


def _like(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def serialize_provider_card(provider: Optional[ProviderDB]) -> Optional[Dict[str, Any]]:
    if provider is None:
        return None
    return {
        "id": provider.id,
        "name": provider.name,
        "suburb": provider.suburb,
        "state": provider.state,
        "postcode": provider.postcode,
    }


def serialize_public_entry(entry: FeeEntryDB) -> Dict[str, Any]:
    data = serialize_entry(entry)
    data.pop("submitter_id", None)
    data["provider"] = serialize_provider_card(entry.provider)
    return data


def _location_label(provider: Optional[ProviderDB]) -> str:
    if provider is None:
        return ""
    parts = [p for p in (provider.suburb, provider.state) if p]
    if parts:
        return ", ".join(parts)
    if provider.postcode and POSTCODE_PATTERN.match(provider.postcode):
        return provider.postcode
    return ""


def _recent_card(entry: FeeEntryDB) -> Dict[str, Any]:
    total = entry.final_total_paid
    return {
        "entry_id": entry.id,
        "provider_name": entry.provider.name if entry.provider else "Provider",
        "industry_key": entry.industry_key,
        "location_label": _location_label(entry.provider),
        "total_label": f"${total:,.0f}" if total and total > 0 else "-",
        "evidence_tier": entry.evidence_tier.value,
        "transparency_score": entry.quote_transparency_score,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }


# =============================================================================
# SERVICE
# =============================================================================

class PublicFeed:

    def __init__(self, db: Session):
        self.db = db

    def _public(self) -> Query:
        return self.db.query(FeeEntryDB).filter(
            FeeEntryDB.visibility == Visibility.PUBLIC,
            FeeEntryDB.moderation_status == ModerationStatus.APPROVED,
        )

    def _filtered(self, query: ExploreQuery) -> Query:
        rows = self._public().join(ProviderDB, FeeEntryDB.provider_id == ProviderDB.id)

        if query.industry_key:
            rows = rows.filter(FeeEntryDB.industry_key == query.industry_key)
        if query.service_key:
            rows = rows.filter(FeeEntryDB.service_key == query.service_key)
        if query.provider_id:
            rows = rows.filter(FeeEntryDB.provider_id == query.provider_id)
        if query.state:
            rows = rows.filter(func.upper(ProviderDB.state) == query.state)
        if query.postcode:
            rows = rows.filter(ProviderDB.postcode == query.postcode)
        if query.suburb:
            rows = rows.filter(ProviderDB.suburb.ilike(_like(query.suburb), escape="\\"))
        if query.q:
            pattern = _like(query.q)
            rows = rows.filter(or_(
                ProviderDB.name.ilike(pattern, escape="\\"),
                ProviderDB.suburb.ilike(pattern, escape="\\"),
                ProviderDB.postcode.ilike(pattern, escape="\\"),
            ))
        if query.min_paid is not None:
            rows = rows.filter(FeeEntryDB.final_total_paid >= query.min_paid)
        if query.max_paid is not None:
            rows = rows.filter(FeeEntryDB.final_total_paid <= query.max_paid)
        if query.evidence_tiers:
            rows = rows.filter(FeeEntryDB.evidence_tier.in_(query.evidence_tiers))
        return rows

    @staticmethod
    def _ordering(sort: str) -> list:
        newest = FeeEntryDB.created_at.desc()
        if sort == "oldest":
            return [FeeEntryDB.created_at.asc()]
        if sort in ("highest_paid", "lowest_paid"):
            column = FeeEntryDB.final_total_paid
        elif sort in ("highest_delta", "lowest_delta"):
            column = FeeEntryDB.delta_pct
        elif sort == "best_evidence":
            return [FeeEntryDB.evidence_tier.asc(), newest]
        else:
            return [newest]
        # entries without the figure sort last either way
        direction = column.desc() if sort.startswith("highest") else column.asc()
        return [column.is_(None), direction, newest]

    def explore(self, query: ExploreQuery) -> Dict[str, Any]:
        rows = self._filtered(query)

        total_count = rows.count()
        total_pages = max(1, math.ceil(total_count / query.page_size))
        page = min(query.page, total_pages)
        items = (
            rows.order_by(*self._ordering(query.sort))
            .offset((page - 1) * query.page_size)
            .limit(query.page_size)
            .all()
        )
        logger.debug(f"Explore sort={query.sort} page {page}/{total_pages}: {total_count} matches")

        return {
            "items": [serialize_public_entry(e) for e in items],
            "summary": self._summary(rows, total_count),
            "meta": {
                "page": page,
                "page_size": query.page_size,
                "total_pages": total_pages,
                "total_count": total_count,
                "sort": query.sort,
            },
        }

    def _summary(self, rows: Query, total_count: int) -> Dict[str, Any]:
        amounts = [
            amount for (amount,) in rows.with_entities(FeeEntryDB.final_total_paid)
            .filter(FeeEntryDB.final_total_paid.isnot(None))
            .all()
        ]
        p25, p50, p75 = paid_quartiles(amounts)
        avg_delta = rows.with_entities(func.avg(FeeEntryDB.delta_pct)).scalar()

        counts = {tier.value: 0 for tier in EvidenceTier}
        grouped = (
            rows.with_entities(FeeEntryDB.evidence_tier, func.count(FeeEntryDB.id))
            .group_by(FeeEntryDB.evidence_tier)
            .all()
        )
        for tier, count in grouped:
            counts[tier.value] = count

        return {
            "total_count": total_count,
            "paid_p25": p25,
            "paid_p50": p50,
            "paid_p75": p75,
            "avg_delta_pct": round(avg_delta, 2) if avg_delta is not None else None,
            "evidence_counts": counts,
        }

    def home(self, recent_limit: int = RECENT_LIMIT) -> Dict[str, Any]:
        """Headline numbers and the most recent public entries."""
        public = self._public()
        fees_tracked = public.with_entities(
            func.coalesce(func.sum(FeeEntryDB.final_total_paid), 0.0)
        ).scalar()
        approved_providers = (
            self.db.query(func.count(ProviderDB.id))
            .filter(ProviderDB.status == ProviderStatus.APPROVED)
            .scalar()
        )
        industries = (
            self.db.query(func.count(IndustrySchemaDB.id))
            .filter(IndustrySchemaDB.is_active.is_(True))
            .scalar()
        )
        recent = public.order_by(FeeEntryDB.created_at.desc()).limit(recent_limit).all()

        return {
            "stats": {
                "approved_fee_entries_total": public.count(),
                "approved_providers_total": approved_providers,
                "industries_total": industries,
                "fees_tracked_total": round(float(fees_tracked or 0), 2),
                "fees_tracked_label": format_compact_aud(fees_tracked),
                "generated_at": datetime.utcnow().isoformat(),
            },
            "recent_reports": [_recent_card(e) for e in recent],
        }
