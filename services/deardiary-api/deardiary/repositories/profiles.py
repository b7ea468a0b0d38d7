from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import UserProfile
from .base import store_operation


class ProfileRepository:
    @store_operation
    async def get_emergency_contact(self, session: AsyncSession, owner_id: UUID) -> str | None:
        result = await session.execute(
            select(UserProfile.emergency_contact_email).where(UserProfile.user_id == owner_id)
        )
        return result.scalar_one_or_none()

    @store_operation
    async def set_emergency_contact(
        self, session: AsyncSession, owner_id: UUID, email: str | None
    ) -> str | None:
        statement = insert(UserProfile).values(user_id=owner_id, emergency_contact_email=email)
        statement = statement.on_conflict_do_update(
            index_elements=[UserProfile.user_id],
            set_={"emergency_contact_email": email, "updated_at": func.now()},
        )
        await session.execute(statement)
        await session.commit()
        return email
