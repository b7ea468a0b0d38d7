from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import EmotionalAnalysisCache, ThemeAnalysisCache
from .base import store_operation


def _emotion_to_dict(row: EmotionalAnalysisCache) -> dict[str, Any]:
    return {
        "user_id": row.user_id,
        "date": row.entry_date,
        "emotional_score": row.emotional_score,
        "dominant_emotions": list(row.dominant_emotions or []),
        "summary": row.summary,
        "entry_count": row.entry_count,
        "last_entry_at": row.last_entry_at,
        "invalidated_at": row.invalidated_at,
    }


def _theme_to_dict(row: ThemeAnalysisCache) -> dict[str, Any]:
    return {
        "user_id": row.user_id,
        "year": row.year,
        "month": row.month,
        "themes": list(row.themes or []),
        "summary": row.summary,
        "entry_count": row.entry_count,
        "last_entry_at": row.last_entry_at,
        "invalidated_at": row.invalidated_at,
    }


def _kept_invalidation(column, computed_at: datetime):
    # A stale mark set after the analysis started reading entries survives the write.
    return case((column >= computed_at, column), else_=None)


class EmotionCacheRepository:
    """Per-owner, per-day emotional analysis rows."""

    @store_operation
    async def get_by_date_range(
        self, session: AsyncSession, owner_id: UUID, start: date, end: date
    ) -> list[dict[str, Any]]:
        result = await session.execute(
            select(EmotionalAnalysisCache)
            .where(
                EmotionalAnalysisCache.user_id == owner_id,
                EmotionalAnalysisCache.entry_date >= start,
                EmotionalAnalysisCache.entry_date <= end,
            )
            .order_by(EmotionalAnalysisCache.entry_date.asc())
        )
        return [_emotion_to_dict(row) for row in result.scalars().all()]

    @store_operation
    async def upsert(
        self,
        session: AsyncSession,
        owner_id: UUID,
        entry_date: date,
        *,
        emotional_score: int,
        dominant_emotions: list[str],
        summary: str,
        entry_count: int,
        last_entry_at: datetime,
        computed_at: datetime,
    ) -> None:
        values = {
            "emotional_score": emotional_score,
            "dominant_emotions": dominant_emotions,
            "summary": summary,
            "entry_count": entry_count,
            "last_entry_at": last_entry_at,
            "invalidated_at": None,
        }
        statement = insert(EmotionalAnalysisCache).values(
            id=uuid4(), user_id=owner_id, entry_date=entry_date, **values
        )
        statement = statement.on_conflict_do_update(
            constraint="emotional_analysis_cache_user_date_key",
            set_={
                **values,
                "invalidated_at": _kept_invalidation(
                    EmotionalAnalysisCache.invalidated_at, computed_at
                ),
                "updated_at": func.now(),
            },
        )
        await session.execute(statement)
        await session.commit()

    @store_operation
    async def mark_stale(self, session: AsyncSession, owner_id: UUID, entry_date: date) -> None:
        await session.execute(
            update(EmotionalAnalysisCache)
            .where(
                EmotionalAnalysisCache.user_id == owner_id,
                EmotionalAnalysisCache.entry_date == entry_date,
            )
            .values(invalidated_at=datetime.now(timezone.utc))
        )
        await session.commit()

    @store_operation
    async def delete(self, session: AsyncSession, owner_id: UUID, entry_date: date) -> None:
        await session.execute(
            delete(EmotionalAnalysisCache).where(
                EmotionalAnalysisCache.user_id == owner_id,
                EmotionalAnalysisCache.entry_date == entry_date,
            )
        )
        await session.commit()

    @store_operation
    async def delete_all(self, session: AsyncSession, owner_id: UUID) -> None:
        await session.execute(
            delete(EmotionalAnalysisCache).where(EmotionalAnalysisCache.user_id == owner_id)
        )
        await session.commit()


class ThemeCacheRepository:
    """Per-owner, per-month theme analysis rows."""

    @store_operation
    async def get(
        self, session: AsyncSession, owner_id: UUID, year: int, month: int
    ) -> dict[str, Any] | None:
        result = await session.execute(
            select(ThemeAnalysisCache).where(
                ThemeAnalysisCache.user_id == owner_id,
                ThemeAnalysisCache.year == year,
                ThemeAnalysisCache.month == month,
            )
        )
        row = result.scalar_one_or_none()
        return _theme_to_dict(row) if row else None

    @store_operation
    async def upsert(
        self,
        session: AsyncSession,
        owner_id: UUID,
        year: int,
        month: int,
        *,
        themes: list[str],
        summary: str,
        entry_count: int,
        last_entry_at: datetime,
        computed_at: datetime,
    ) -> None:
        values = {
            "themes": themes,
            "summary": summary,
            "entry_count": entry_count,
            "last_entry_at": last_entry_at,
            "invalidated_at": None,
        }
        statement = insert(ThemeAnalysisCache).values(
            id=uuid4(), user_id=owner_id, year=year, month=month, **values
        )
        statement = statement.on_conflict_do_update(
            constraint="theme_analysis_cache_user_month_key",
            set_={
                **values,
                "invalidated_at": _kept_invalidation(ThemeAnalysisCache.invalidated_at, computed_at),
                "updated_at": func.now(),
            },
        )
        await session.execute(statement)
        await session.commit()

    @store_operation
    async def mark_stale(
        self, session: AsyncSession, owner_id: UUID, year: int, month: int
    ) -> None:
        await session.execute(
            update(ThemeAnalysisCache)
            .where(
                ThemeAnalysisCache.user_id == owner_id,
                ThemeAnalysisCache.year == year,
                ThemeAnalysisCache.month == month,
            )
            .values(invalidated_at=datetime.now(timezone.utc))
        )
        await session.commit()

    @store_operation
    async def delete(self, session: AsyncSession, owner_id: UUID, year: int, month: int) -> None:
        await session.execute(
            delete(ThemeAnalysisCache).where(
                ThemeAnalysisCache.user_id == owner_id,
                ThemeAnalysisCache.year == year,
                ThemeAnalysisCache.month == month,
            )
        )
        await session.commit()

    @store_operation
    async def delete_all(self, session: AsyncSession, owner_id: UUID) -> None:
        await session.execute(
            delete(ThemeAnalysisCache).where(ThemeAnalysisCache.user_id == owner_id)
        )
        await session.commit()
