"""
Explore Services

Public read path:
- build_query / ExploreQuery: normalised listing filters
- PublicFeed: filtered listing with summary, home page stats
"""

from .query import ExploreQuery, build_query, parse_tiers, EXPLORE_SORTS
from .public_feed import PublicFeed, format_compact_aud, paid_quartiles

__all__ = [
    'ExploreQuery',
    'build_query',
    'parse_tiers',
    'EXPLORE_SORTS',
    'PublicFeed',
    'format_compact_aud',
    'paid_quartiles',
]
