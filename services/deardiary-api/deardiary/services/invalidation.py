from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import UpstreamDataError
from ..periods import month_key, utc_date
from ..repositories import EmotionCacheRepository, ThemeCacheRepository

LOGGER = logging.getLogger(__name__)


class CacheInvalidator:
    """Marks the analysis periods touched by an entry mutation as stale.

    Invalidation is unconditional: any create, update or delete of an entry
    created on day D makes the (owner, D) emotion row and the (owner,
    month-of-D) theme row stale, and nothing else.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        emotions: EmotionCacheRepository | None = None,
        themes: ThemeCacheRepository | None = None,
    ):
        self._session = session
        self._emotions = emotions or EmotionCacheRepository()
        self._themes = themes or ThemeCacheRepository()

    async def invalidate_for_entry(self, owner_id: UUID, created_at: datetime) -> bool:
        """Return ``False`` if either cache could not be marked stale."""
        day = utc_date(created_at)
        year, month = month_key(created_at)
        ok = True
        try:
            await self._emotions.mark_stale(self._session, owner_id, day)
        except UpstreamDataError:
            LOGGER.exception("Failed to invalidate emotional analysis for %s", day.isoformat())
            ok = False
        try:
            await self._themes.mark_stale(self._session, owner_id, year, month)
        except UpstreamDataError:
            LOGGER.exception("Failed to invalidate themes for %04d-%02d", year, month)
            ok = False
        return ok
