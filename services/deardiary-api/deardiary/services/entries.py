from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from ..repositories import EntryRepository
from .crisis import CrisisAlertDispatcher, CrisisDetectionService
from .invalidation import CacheInvalidator


class JournalService:
    """Entry writes plus everything that has to follow them.

    Every successful create, update and delete invalidates the affected
    analysis periods; creates and updates are then assessed for crisis risk.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        crisis: CrisisDetectionService,
        alerts: CrisisAlertDispatcher,
        entries: EntryRepository | None = None,
        invalidator: CacheInvalidator | None = None,
    ):
        self._session = session
        self._crisis = crisis
        self._alerts = alerts
        self._repo = entries or EntryRepository()
        self._invalidator = invalidator or CacheInvalidator(session)

    async def list_entries(
        self,
        owner_id: UUID,
        *,
        query: str | None = None,
        favorites_only: bool = False,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        return await self._repo.list_entries(
            self._session, owner_id, query=query, favorites_only=favorites_only, limit=limit
        )

    async def get_entry(self, owner_id: UUID, entry_id: UUID) -> dict[str, Any] | None:
        return await self._repo.get_entry(self._session, owner_id, entry_id)

    async def create_entry(
        self,
        owner_id: UUID,
        *,
        title: str,
        content: str,
        prompt: str | None = None,
    ) -> dict[str, Any]:
        entry = await self._repo.create_entry(
            self._session, owner_id, title=title, content=content, prompt=prompt
        )
        return await self._after_write(owner_id, entry)

    async def update_entry(
        self,
        owner_id: UUID,
        entry_id: UUID,
        *,
        title: str | None = None,
        content: str | None = None,
    ) -> dict[str, Any] | None:
        entry = await self._repo.update_entry(
            self._session, owner_id, entry_id, title=title, content=content
        )
        if entry is None:
            return None
        return await self._after_write(owner_id, entry)

    async def delete_entry(self, owner_id: UUID, entry_id: UUID) -> bool:
        removed = await self._repo.delete_entry(self._session, owner_id, entry_id)
        if removed is None:
            return False
        await self._invalidator.invalidate_for_entry(owner_id, removed["created_at"])
        return True

    async def set_favorite(
        self, owner_id: UUID, entry_id: UUID, is_favorite: bool
    ) -> dict[str, Any] | None:
        # The favorite flag is not an analysis input, so no invalidation.
        return await self._repo.set_favorite(self._session, owner_id, entry_id, is_favorite)

    async def _after_write(self, owner_id: UUID, entry: dict[str, Any]) -> dict[str, Any]:
        await self._invalidator.invalidate_for_entry(owner_id, entry["created_at"])
        assessment = await self._crisis.assess(entry["title"], entry["content"])
        await self._alerts.dispatch(owner_id, entry["title"], entry["content"], assessment)
        return {"entry": entry, "crisis": assessment}
