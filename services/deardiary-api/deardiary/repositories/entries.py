from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import JournalEntry
from .base import store_operation


def _entry_to_dict(entry: JournalEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "title": entry.title,
        "content": entry.content,
        "prompt": entry.prompt,
        "is_favorite": entry.is_favorite,
        "created_at": entry.created_at,
        "updated_at": entry.updated_at,
    }


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class EntryRepository:
    """Owner-scoped access to journal entries."""

    @store_operation
    async def list_entries(
        self,
        session: AsyncSession,
        owner_id: UUID,
        *,
        query: str | None = None,
        favorites_only: bool = False,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """List entries newest first, optionally filtered.

        ``query`` matches title or content case-insensitively.
        """
        filters = [JournalEntry.user_id == owner_id]
        if query and query.strip():
            pattern = f"%{_escape_like(query.strip())}%"
            filters.append(
                or_(
                    JournalEntry.title.ilike(pattern, escape="\\"),
                    JournalEntry.content.ilike(pattern, escape="\\"),
                )
            )
        if favorites_only:
            filters.append(JournalEntry.is_favorite.is_(True))
        result = await session.execute(
            select(JournalEntry)
            .where(*filters)
            .order_by(JournalEntry.created_at.desc())
            .limit(limit)
        )
        return [_entry_to_dict(item) for item in result.scalars().all()]

    async def list_recent_entries(
        self, session: AsyncSession, owner_id: UUID, limit: int = 5
    ) -> list[dict[str, Any]]:
        return await self.list_entries(session, owner_id, limit=limit)

    @store_operation
    async def list_entries_in_range(
        self,
        session: AsyncSession,
        owner_id: UUID,
        start: datetime,
        end: datetime,
        *,
        end_inclusive: bool = False,
    ) -> list[dict[str, Any]]:
        """List entries created in ``[start, end)`` (or ``[start, end]``), oldest first."""
        upper = JournalEntry.created_at <= end if end_inclusive else JournalEntry.created_at < end
        result = await session.execute(
            select(JournalEntry)
            .where(
                JournalEntry.user_id == owner_id,
                JournalEntry.created_at >= start,
                upper,
            )
            .order_by(JournalEntry.created_at.asc())
        )
        return [_entry_to_dict(item) for item in result.scalars().all()]

    @store_operation
    async def get_entry(
        self, session: AsyncSession, owner_id: UUID, entry_id: UUID
    ) -> dict[str, Any] | None:
        result = await session.execute(
            select(JournalEntry).where(
                JournalEntry.id == entry_id, JournalEntry.user_id == owner_id
            )
        )
        entry = result.scalar_one_or_none()
        return _entry_to_dict(entry) if entry else None

    @store_operation
    async def create_entry(
        self,
        session: AsyncSession,
        owner_id: UUID,
        *,
        title: str,
        content: str,
        prompt: str | None = None,
    ) -> dict[str, Any]:
        entry = JournalEntry(
            id=uuid4(),
            user_id=owner_id,
            title=title.strip(),
            content=content,
            prompt=prompt or None,
            is_favorite=False,
        )
        session.add(entry)
        await session.commit()
        await session.refresh(entry)
        return _entry_to_dict(entry)

    @store_operation
    async def update_entry(
        self,
        session: AsyncSession,
        owner_id: UUID,
        entry_id: UUID,
        *,
        title: str | None = None,
        content: str | None = None,
    ) -> dict[str, Any] | None:
        result = await session.execute(
            select(JournalEntry).where(
                JournalEntry.id == entry_id, JournalEntry.user_id == owner_id
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            return None
        if title is not None:
            entry.title = title.strip()
        if content is not None:
            entry.content = content
        await session.commit()
        await session.refresh(entry)
        return _entry_to_dict(entry)

    @store_operation
    async def set_favorite(
        self,
        session: AsyncSession,
        owner_id: UUID,
        entry_id: UUID,
        is_favorite: bool,
    ) -> dict[str, Any] | None:
        result = await session.execute(
            select(JournalEntry).where(
                JournalEntry.id == entry_id, JournalEntry.user_id == owner_id
            )
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            return None
        entry.is_favorite = is_favorite
        await session.commit()
        await session.refresh(entry)
        return _entry_to_dict(entry)

    @store_operation
    async def delete_entry(
        self, session: AsyncSession, owner_id: UUID, entry_id: UUID
    ) -> dict[str, Any] | None:
        """Delete an entry and return the removed row, or ``None`` if it did not exist."""
        result = await session.execute(
            delete(JournalEntry)
            .where(JournalEntry.id == entry_id, JournalEntry.user_id == owner_id)
            .returning(JournalEntry)
        )
        entry = result.scalar_one_or_none()
        removed = _entry_to_dict(entry) if entry else None
        await session.commit()
        return removed
