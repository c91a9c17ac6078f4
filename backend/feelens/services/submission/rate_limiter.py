"""
Rate Limiter

Two independent rolling caps on submissions:
- daily:    entries per submitter in the last 24 hours
- provider: entries per (submitter, provider) pair in the last 365 days

check_and_reserve() must run inside the submission transaction. It locks
the submitter's user row first, so concurrent submissions by the same user
serialize and the second one counts the first one's entry.
"""
import logging
import math
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...errors import AuthRequiredError, RateLimitExceededError
from ...models.db_models import FeeEntryDB, UserDB

logger = logging.getLogger(__name__)

RATE_LIMIT_DAILY_CAP = int(os.getenv("RATE_LIMIT_DAILY_CAP", "3"))
RATE_LIMIT_PROVIDER_CAP = int(os.getenv("RATE_LIMIT_PROVIDER_CAP", "5"))

DAILY_WINDOW = timedelta(hours=24)
PROVIDER_WINDOW = timedelta(days=365)


@dataclass(frozen=True)
class RateLimitDecision:
    """Remaining allowance after the reserved submission is written."""
    daily_remaining: int
    provider_remaining: int


class RateLimiter:

    def __init__(
        self,
        db: Session,
        daily_cap: int = RATE_LIMIT_DAILY_CAP,
        provider_cap: int = RATE_LIMIT_PROVIDER_CAP,
    ):
        self.db = db
        self.daily_cap = daily_cap
        self.provider_cap = provider_cap

    def check_and_reserve(
        self,
        submitter_id: str,
        provider_id: str,
        now: Optional[datetime] = None,
    ) -> RateLimitDecision:
        """
        Lock the submitter and verify both caps.

        Raises RateLimitExceededError with the scope that tripped first
        (daily is checked before provider) and the seconds until the oldest
        counted entry leaves that window.
        """
        now = now or datetime.utcnow()

        submitter = (
            self.db.query(UserDB)
            .filter(UserDB.id == submitter_id)
            .with_for_update()
            .first()
        )
        if submitter is None:
            raise AuthRequiredError("Submitter account not found")

        daily_count, daily_oldest = self._window_stats(
            now - DAILY_WINDOW,
            FeeEntryDB.submitter_id == submitter_id,
        )
        if daily_count >= self.daily_cap:
            retry_after = self._retry_after(daily_oldest, DAILY_WINDOW, now)
            logger.info(f"Daily cap reached for submitter {submitter_id}; retry in {retry_after}s")
            raise RateLimitExceededError("daily", retry_after)

        provider_count, provider_oldest = self._window_stats(
            now - PROVIDER_WINDOW,
            FeeEntryDB.submitter_id == submitter_id,
            FeeEntryDB.provider_id == provider_id,
        )
        if provider_count >= self.provider_cap:
            retry_after = self._retry_after(provider_oldest, PROVIDER_WINDOW, now)
            logger.info(
                f"Provider cap reached for submitter {submitter_id} / provider {provider_id}; "
                f"retry in {retry_after}s"
            )
            raise RateLimitExceededError("provider", retry_after)

        return RateLimitDecision(
            daily_remaining=self.daily_cap - daily_count - 1,
            provider_remaining=self.provider_cap - provider_count - 1,
        )

    def _window_stats(self, since: datetime, *criteria):
        count, oldest = (
            self.db.query(func.count(FeeEntryDB.id), func.min(FeeEntryDB.created_at))
            .filter(FeeEntryDB.created_at > since, *criteria)
            .one()
        )
        return count or 0, oldest

    @staticmethod
    def _retry_after(oldest: Optional[datetime], window: timedelta, now: datetime) -> int:
        if oldest is None:
            return int(window.total_seconds())
        remaining = (oldest + window - now).total_seconds()
        return max(1, math.ceil(remaining))
