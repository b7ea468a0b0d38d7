from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ..entry_text import clean_labels, combine_entries, parse_json_object
from ..errors import GenerationFailure, UpstreamDataError
from ..ollama import complete
from ..periods import CacheState, cache_state, day_range_bounds, latest_created_at, utc_date
from ..repositories import EmotionCacheRepository, EntryRepository

LOGGER = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 10
MAX_EMOTIONS = 3

EMOTION_SYSTEM_PROMPT = (
    "You are an empathetic emotional analysis assistant. Analyze journal entries "
    "with care and provide helpful insights about emotional patterns."
)


def build_emotion_prompt(day: date, entries: list[dict[str, Any]]) -> str:
    return f"""Analyze the emotional content of the following journal entries from {day.isoformat()}.

Journal entries:
{combine_entries(entries)}

Please provide:
1. An emotional score from 1-10 (1 = very negative/sad, 10 = very positive/happy)
2. The top 2-3 dominant emotions present
3. A brief summary of the emotional state

Respond in JSON format:
{{
  "emotional_score": number,
  "dominant_emotions": ["emotion1", "emotion2"],
  "summary": "brief emotional summary"
}}"""


def clamp_score(value: Any) -> int:
    """Coerce a model-supplied score into the 1-10 range.

    Raises ``GenerationFailure`` when there is no number to clamp.
    """
    if isinstance(value, bool):
        raise GenerationFailure("emotional_score is not a number")
    try:
        score = float(value)
    except (TypeError, ValueError) as exc:
        raise GenerationFailure("emotional_score is not a number") from exc
    if math.isnan(score):
        raise GenerationFailure("emotional_score is not a number")
    if math.isinf(score):
        return MAX_SCORE if score > 0 else MIN_SCORE
    return max(MIN_SCORE, min(MAX_SCORE, round(score)))


def parse_emotion_reply(reply: str) -> dict[str, Any]:
    data = parse_json_object(reply)
    summary = data.get("summary")
    return {
        "emotional_score": clamp_score(data.get("emotional_score")),
        "dominant_emotions": clean_labels(data.get("dominant_emotions"), MAX_EMOTIONS),
        "summary": summary.strip() if isinstance(summary, str) else "",
    }


def group_entries_by_date(entries: list[dict[str, Any]]) -> dict[date, list[dict[str, Any]]]:
    grouped: dict[date, list[dict[str, Any]]] = defaultdict(list)
    for entry in sorted(entries, key=lambda item: item["created_at"]):
        grouped[utc_date(entry["created_at"])].append(entry)
    return dict(grouped)


def _cached_record(row: dict[str, Any], *, stale: bool = False) -> dict[str, Any]:
    return {
        "date": row["date"],
        "emotional_score": row["emotional_score"],
        "dominant_emotions": list(row["dominant_emotions"] or []),
        "summary": row["summary"],
        "entry_count": row["entry_count"],
        "last_entry_at": row["last_entry_at"],
        "stale": stale,
    }


class EmotionalAnalysisService:
    """Per-day emotional summaries backed by the analysis cache.

    Only days whose cached row is missing or no longer matches the day's
    entries are sent to the language model, one call per day. A day whose
    call fails is left as it was and retried on the next request.
    """

    def __init__(
        self,
        session: AsyncSession,
        client: httpx.AsyncClient,
        *,
        entries: EntryRepository | None = None,
        cache: EmotionCacheRepository | None = None,
    ):
        self._session = session
        self._client = client
        self._entries = entries or EntryRepository()
        self._cache = cache or EmotionCacheRepository()

    async def get_emotional_analysis(
        self, owner_id: UUID, start: date, end: date
    ) -> list[dict[str, Any]]:
        if end < start:
            raise ValueError("end date must not be before start date")

        computed_at = datetime.now(timezone.utc)
        cached_rows = await self._cache.get_by_date_range(self._session, owner_id, start, end)
        lower, upper = day_range_bounds(start, end)
        entries = await self._entries.list_entries_in_range(self._session, owner_id, lower, upper)

        entries_by_date = group_entries_by_date(entries)
        cached_by_date = {row["date"]: row for row in cached_rows}

        stale_dates: list[date] = []
        results: dict[date, dict[str, Any]] = {}
        for day, day_entries in entries_by_date.items():
            state = cache_state(
                cached_by_date.get(day), len(day_entries), latest_created_at(day_entries)
            )
            # An empty cache means nothing has been analysed yet for this range.
            if not cached_rows or state is not CacheState.VALID:
                stale_dates.append(day)
            else:
                results[day] = _cached_record(cached_by_date[day])

        LOGGER.info(
            "Emotional analysis owner=%s days=%s cached=%s stale=%s",
            owner_id,
            len(entries_by_date),
            len(results),
            len(stale_dates),
        )

        for day in stale_dates:
            record = await self._regenerate(owner_id, day, entries_by_date[day], computed_at)
            if record is not None:
                results[day] = record
            elif day in cached_by_date:
                results[day] = _cached_record(cached_by_date[day], stale=True)

        for day in sorted(set(cached_by_date) - set(entries_by_date)):
            await self._drop_row(owner_id, day)

        return [results[day] for day in sorted(results)]

    async def _regenerate(
        self,
        owner_id: UUID,
        day: date,
        day_entries: list[dict[str, Any]],
        computed_at: datetime,
    ) -> dict[str, Any] | None:
        try:
            reply = await complete(
                EMOTION_SYSTEM_PROMPT,
                build_emotion_prompt(day, day_entries),
                self._client,
                temperature=0.3,
                max_tokens=300,
            )
            analysis = parse_emotion_reply(reply)
        except (GenerationFailure, httpx.HTTPError):
            LOGGER.exception("Emotional analysis failed for %s", day.isoformat())
            return None

        record = {
            "date": day,
            **analysis,
            "entry_count": len(day_entries),
            "last_entry_at": latest_created_at(day_entries),
            "stale": False,
        }
        try:
            await self._cache.upsert(
                self._session,
                owner_id,
                day,
                emotional_score=record["emotional_score"],
                dominant_emotions=record["dominant_emotions"],
                summary=record["summary"],
                entry_count=record["entry_count"],
                last_entry_at=record["last_entry_at"],
                computed_at=computed_at,
            )
        except UpstreamDataError:
            LOGGER.exception("Failed to cache emotional analysis for %s", day.isoformat())
        return record

    async def _drop_row(self, owner_id: UUID, day: date) -> None:
        # Every entry of this day is gone, so its row can never be valid again.
        try:
            await self._cache.delete(self._session, owner_id, day)
        except UpstreamDataError:
            LOGGER.exception("Failed to drop emotional analysis for %s", day.isoformat())

    async def clear_cache(self, owner_id: UUID) -> None:
        await self._cache.delete_all(self._session, owner_id)
        LOGGER.info("Emotional analysis cache cleared for owner=%s", owner_id)
