from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ..entry_text import clean_labels, combine_entries, parse_json_object
from ..errors import GenerationFailure, UpstreamDataError
from ..ollama import complete
from ..periods import (
    CacheState,
    cache_state,
    latest_created_at,
    month_bounds,
    month_key,
    to_utc,
)
from ..repositories import EntryRepository, ThemeCacheRepository

LOGGER = logging.getLogger(__name__)

MAX_THEMES = 3
NO_ENTRIES_SUMMARY = "No entries found for this month."
UNABLE_SUMMARY = "Unable to analyze themes for this month."
NO_THEMES_SUMMARY = "No clear themes identified for this month."

THEME_SYSTEM_PROMPT = (
    "You are a thoughtful journal analysis assistant. Identify meaningful themes "
    "and patterns in journal entries to help users understand their life focus "
    "areas and recurring topics."
)


def build_theme_prompt(entries: list[dict[str, Any]]) -> str:
    return f"""Analyze the following journal entries from a month and identify the top 3 most prominent themes or topics that appear across the entries. Focus on recurring subjects, concerns, activities, relationships, or life areas that the person writes about most frequently.

Journal entries:
{combine_entries(entries)}

Please provide:
1. The top 3 most prominent themes (be specific and descriptive)
2. A brief summary of the overall month's focus

Respond in JSON format:
{{
  "themes": ["theme1", "theme2", "theme3"],
  "summary": "brief summary of the month's main focus areas"
}}

Make the themes specific and meaningful, not generic. For example, instead of "relationships" say "navigating workplace conflicts" or "strengthening family bonds"."""


def parse_theme_reply(reply: str) -> dict[str, Any]:
    data = parse_json_object(reply)
    summary = data.get("summary")
    return {
        "themes": clean_labels(data.get("themes"), MAX_THEMES),
        "summary": summary.strip() if isinstance(summary, str) and summary.strip() else NO_THEMES_SUMMARY,
    }


class ThemeAnalysisService:
    def __init__(
        self,
        session: AsyncSession,
        client: httpx.AsyncClient,
        *,
        entries: EntryRepository | None = None,
        cache: ThemeCacheRepository | None = None,
    ):
        self._session = session
        self._client = client
        self._entries = entries or EntryRepository()
        self._cache = cache or ThemeCacheRepository()

    async def get_monthly_themes(
        self, owner_id: UUID, month_start: datetime, month_end: datetime
    ) -> dict[str, Any]:
        """Return the themes and summary for the month starting at ``month_start``.

        The range must lie within one calendar month; naive timestamps are
        read as UTC.
        """
        month_start = to_utc(month_start)
        month_end = to_utc(month_end)
        if month_end < month_start:
            raise ValueError("month end must not be before month start")
        year, month = month_key(month_start)
        if month_end > month_bounds(year, month)[1]:
            raise ValueError("range must lie within a single calendar month")

        computed_at = datetime.now(timezone.utc)
        entries = await self._entries.list_entries_in_range(
            self._session, owner_id, month_start, month_end, end_inclusive=True
        )
        cached = await self._cache.get(self._session, owner_id, year, month)
        if not entries:
            if cached is not None:
                await self._drop_row(owner_id, year, month)
            return {"themes": [], "summary": NO_ENTRIES_SUMMARY, "cached": False}

        entry_count = len(entries)
        last_entry_at = latest_created_at(entries)
        if cache_state(cached, entry_count, last_entry_at) is CacheState.VALID:
            LOGGER.info("Theme cache hit owner=%s month=%04d-%02d", owner_id, year, month)
            return {"themes": list(cached["themes"]), "summary": cached["summary"], "cached": True}

        try:
            reply = await complete(
                THEME_SYSTEM_PROMPT,
                build_theme_prompt(entries),
                self._client,
                temperature=0.3,
                max_tokens=400,
            )
            analysis = parse_theme_reply(reply)
        except (GenerationFailure, httpx.HTTPError):
            LOGGER.exception("Theme analysis failed for %04d-%02d", year, month)
            return {"themes": [], "summary": UNABLE_SUMMARY, "cached": False}

        # An answer without themes is returned but not kept, so it is retried.
        if analysis["themes"]:
            try:
                await self._cache.upsert(
                    self._session,
                    owner_id,
                    year,
                    month,
                    themes=analysis["themes"],
                    summary=analysis["summary"],
                    entry_count=entry_count,
                    last_entry_at=last_entry_at,
                    computed_at=computed_at,
                )
            except UpstreamDataError:
                LOGGER.exception("Failed to cache themes for %04d-%02d", year, month)
        return {**analysis, "cached": False}

    async def _drop_row(self, owner_id: UUID, year: int, month: int) -> None:
        try:
            await self._cache.delete(self._session, owner_id, year, month)
        except UpstreamDataError:
            LOGGER.exception("Failed to drop themes for %04d-%02d", year, month)

    async def invalidate(self, owner_id: UUID, year: int, month: int) -> None:
        await self._cache.mark_stale(self._session, owner_id, year, month)

    async def clear_cache(self, owner_id: UUID) -> None:
        await self._cache.delete_all(self._session, owner_id)
        LOGGER.info("Theme cache cleared for owner=%s", owner_id)
