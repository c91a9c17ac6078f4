"""
Explore Query

Normalises the filters of the public listing. Nothing here rejects input:
unknown sorts fall back to newest, unknown tiers are dropped and paging is
clamped into range.
"""
import math
from dataclasses import dataclass, field
from typing import List, Optional

from ...models.db_models import EvidenceTier

EXPLORE_SORTS = (
    "newest",
    "oldest",
    "highest_paid",
    "lowest_paid",
    "highest_delta",
    "lowest_delta",
    "best_evidence",
)
DEFAULT_SORT = "newest"
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass
class ExploreQuery:
    industry_key: Optional[str] = None
    service_key: Optional[str] = None
    provider_id: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    suburb: Optional[str] = None
    q: Optional[str] = None
    min_paid: Optional[float] = None
    max_paid: Optional[float] = None
    evidence_tiers: List[EvidenceTier] = field(default_factory=list)
    sort: str = DEFAULT_SORT
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _finite(value: Optional[float]) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return None
    return value


def clamp(value: Optional[float], low: int, high: int, default: int) -> int:
    if value is None:
        return default
    if not math.isfinite(value):
        return low
    return min(high, max(low, int(value)))


def parse_tiers(raw: Optional[str]) -> List[EvidenceTier]:
    """``"a, B,x,A"`` -> ``[A, B]``: case-insensitive, deduplicated, order kept."""
    tiers: List[EvidenceTier] = []
    for part in (raw or "").split(","):
        try:
            tier = EvidenceTier(part.strip().upper())
        except ValueError:
            continue
        if tier not in tiers:
            tiers.append(tier)
    return tiers


def build_query(
    industry: Optional[str] = None,
    service: Optional[str] = None,
    provider_id: Optional[str] = None,
    state: Optional[str] = None,
    postcode: Optional[str] = None,
    suburb: Optional[str] = None,
    q: Optional[str] = None,
    min_paid: Optional[float] = None,
    max_paid: Optional[float] = None,
    tiers: Optional[str] = None,
    sort: Optional[str] = None,
    page: Optional[float] = None,
    page_size: Optional[float] = None,
) -> ExploreQuery:
    state = _clean(state)
    sort = _clean(sort)
    return ExploreQuery(
        industry_key=_clean(industry),
        service_key=_clean(service),
        provider_id=_clean(provider_id),
        state=state.upper() if state else None,
        postcode=_clean(postcode),
        suburb=_clean(suburb),
        q=_clean(q),
        min_paid=_finite(min_paid),
        max_paid=_finite(max_paid),
        evidence_tiers=parse_tiers(tiers),
        sort=sort if sort in EXPLORE_SORTS else DEFAULT_SORT,
        page=clamp(page, 1, 2 ** 31 - 1, DEFAULT_PAGE),
        page_size=clamp(page_size, 1, MAX_PAGE_SIZE, DEFAULT_PAGE_SIZE),
    )
