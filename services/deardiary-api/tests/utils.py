import json
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any
from uuid import UUID, uuid4

import httpx

from deardiary.errors import UpstreamDataError
from deardiary.main import app

OWNER = UUID("11111111-1111-1111-1111-111111111111")
OTHER_OWNER = UUID("22222222-2222-2222-2222-222222222222")


def build_mock_transport(handler):
    return httpx.MockTransport(handler)


def ollama_reply(content: Any) -> httpx.Response:
    text = content if isinstance(content, str) else json.dumps(content)
    return httpx.Response(
        200,
        json={"message": {"role": "assistant", "content": text}, "done": True},
    )


def request_prompt(request: httpx.Request) -> str:
    payload = json.loads(request.content)
    return payload["messages"][-1]["content"]


def ts(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def make_entry(
    created_at: datetime,
    *,
    owner_id: UUID = OWNER,
    title: str = "Entry",
    content: str = "Some thoughts.",
    is_favorite: bool = False,
) -> dict[str, Any]:
    return {
        "id": uuid4(),
        "user_id": owner_id,
        "title": title,
        "content": content,
        "prompt": None,
        "is_favorite": is_favorite,
        "created_at": created_at,
        "updated_at": created_at,
    }


class FakeEntryRepository:
    def __init__(self, entries: list[dict[str, Any]] | None = None, now: datetime | None = None):
        self.entries = list(entries or [])
        self.now = now
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise UpstreamDataError("entry store unavailable")

    def _owned(self, owner_id: UUID) -> list[dict[str, Any]]:
        return [entry for entry in self.entries if entry["user_id"] == owner_id]

    async def list_entries(self, session, owner_id, *, query=None, favorites_only=False, limit=100):
        self._check()
        items = self._owned(owner_id)
        if query:
            lowered = query.lower()
            items = [
                entry
                for entry in items
                if lowered in entry["title"].lower() or lowered in entry["content"].lower()
            ]
        if favorites_only:
            items = [entry for entry in items if entry["is_favorite"]]
        items.sort(key=lambda entry: entry["created_at"], reverse=True)
        return items[:limit]

    async def list_recent_entries(self, session, owner_id, limit=5):
        return await self.list_entries(session, owner_id, limit=limit)

    async def list_entries_in_range(self, session, owner_id, start, end, *, end_inclusive=False):
        self._check()
        items = [
            entry
            for entry in self._owned(owner_id)
            if entry["created_at"] >= start
            and (entry["created_at"] <= end if end_inclusive else entry["created_at"] < end)
        ]
        return sorted(items, key=lambda entry: entry["created_at"])

    async def get_entry(self, session, owner_id, entry_id):
        self._check()
        for entry in self._owned(owner_id):
            if entry["id"] == entry_id:
                return entry
        return None

    async def create_entry(self, session, owner_id, *, title, content, prompt=None):
        self._check()
        created_at = self.now or datetime.now(timezone.utc)
        entry = make_entry(created_at, owner_id=owner_id, title=title, content=content)
        entry["prompt"] = prompt
        self.entries.append(entry)
        return entry

    async def update_entry(self, session, owner_id, entry_id, *, title=None, content=None):
        entry = await self.get_entry(session, owner_id, entry_id)
        if entry is None:
            return None
        if title is not None:
            entry["title"] = title
        if content is not None:
            entry["content"] = content
        return entry

    async def set_favorite(self, session, owner_id, entry_id, is_favorite):
        entry = await self.get_entry(session, owner_id, entry_id)
        if entry is None:
            return None
        entry["is_favorite"] = is_favorite
        return entry

    async def delete_entry(self, session, owner_id, entry_id):
        entry = await self.get_entry(session, owner_id, entry_id)
        if entry is None:
            return None
        self.entries.remove(entry)
        return entry


def kept_invalidation(previous: dict[str, Any] | None, computed_at: datetime) -> datetime | None:
    if previous is None or previous["invalidated_at"] is None:
        return None
    return previous["invalidated_at"] if previous["invalidated_at"] >= computed_at else None


class FakeEmotionCache:
    def __init__(self):
        self.rows: dict[tuple[UUID, date], dict[str, Any]] = {}
        self.upserts: list[date] = []
        self.stale_marks: list[tuple[UUID, date]] = []
        self.deletes: list[tuple[UUID, date]] = []
        self.fail_writes = False
        self.fail_stale = False

    def seed(self, owner_id: UUID, day: date, **fields: Any) -> dict[str, Any]:
        row = {
            "user_id": owner_id,
            "date": day,
            "emotional_score": 5,
            "dominant_emotions": ["calm"],
            "summary": "Cached summary",
            "entry_count": 1,
            "last_entry_at": datetime.combine(day, datetime.min.time(), tzinfo=timezone.utc),
            "invalidated_at": None,
        }
        row.update(fields)
        self.rows[(owner_id, day)] = row
        return row

    async def get_by_date_range(self, session, owner_id, start, end):
        return [
            dict(row)
            for (owner, day), row in sorted(self.rows.items(), key=lambda item: item[0][1])
            if owner == owner_id and start <= day <= end
        ]

    async def upsert(self, session, owner_id, entry_date, *, computed_at, **fields):
        if self.fail_writes:
            raise UpstreamDataError("cache write failed")
        self.upserts.append(entry_date)
        previous = self.rows.get((owner_id, entry_date))
        self.rows[(owner_id, entry_date)] = {
            "user_id": owner_id,
            "date": entry_date,
            "invalidated_at": kept_invalidation(previous, computed_at),
            **fields,
        }

    async def mark_stale(self, session, owner_id, entry_date):
        if self.fail_stale:
            raise UpstreamDataError("cache write failed")
        self.stale_marks.append((owner_id, entry_date))
        row = self.rows.get((owner_id, entry_date))
        if row is not None:
            row["invalidated_at"] = datetime.now(timezone.utc)

    async def delete(self, session, owner_id, entry_date):
        self.deletes.append((owner_id, entry_date))
        self.rows.pop((owner_id, entry_date), None)

    async def delete_all(self, session, owner_id):
        for key in [key for key in self.rows if key[0] == owner_id]:
            del self.rows[key]


class FakeThemeCache:
    def __init__(self):
        self.rows: dict[tuple[UUID, int, int], dict[str, Any]] = {}
        self.upserts: list[tuple[int, int]] = []
        self.stale_marks: list[tuple[UUID, int, int]] = []
        self.deletes: list[tuple[UUID, int, int]] = []

    async def get(self, session, owner_id, year, month):
        row = self.rows.get((owner_id, year, month))
        return dict(row) if row else None

    async def upsert(self, session, owner_id, year, month, *, computed_at, **fields):
        self.upserts.append((year, month))
        previous = self.rows.get((owner_id, year, month))
        self.rows[(owner_id, year, month)] = {
            "user_id": owner_id,
            "year": year,
            "month": month,
            "invalidated_at": kept_invalidation(previous, computed_at),
            **fields,
        }

    async def mark_stale(self, session, owner_id, year, month):
        self.stale_marks.append((owner_id, year, month))
        row = self.rows.get((owner_id, year, month))
        if row is not None:
            row["invalidated_at"] = datetime.now(timezone.utc)

    async def delete(self, session, owner_id, year, month):
        self.deletes.append((owner_id, year, month))
        self.rows.pop((owner_id, year, month), None)

    async def delete_all(self, session, owner_id):
        for key in [key for key in self.rows if key[0] == owner_id]:
            del self.rows[key]


class FakeProfiles:
    def __init__(self, contacts: dict[UUID, str] | None = None):
        self.contacts = dict(contacts or {})

    async def get_emergency_contact(self, session, owner_id):
        return self.contacts.get(owner_id)

    async def set_emergency_contact(self, session, owner_id, email):
        self.contacts[owner_id] = email
        return email


@asynccontextmanager
async def app_client(overrides: dict | None = None):
    app.dependency_overrides.update(overrides or {})
    asgi_transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=asgi_transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
