from __future__ import annotations

import logging
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ..entry_text import format_recent_entries
from ..errors import GenerationFailure
from ..ollama import PROMPT_MODEL, complete
from ..repositories import EntryRepository

LOGGER = logging.getLogger(__name__)

RECENT_ENTRY_LIMIT = 5
EXCERPT_CHARS = 500
FALLBACK_QUESTION = "What emotions are you experiencing right now, and what might be behind them?"

PROMPT_SYSTEM_PROMPT = (
    "You are a compassionate journaling companion who helps people reflect on "
    "their thoughts and experiences through thoughtful questions."
)


def build_prompt_request(entries_context: str) -> str:
    return f"""Based on the following recent journal entries from a user, generate ONE empathetic and thoughtful follow-up question that would encourage deeper reflection and continued journaling. The question should be:

1. Empathetic and supportive in tone
2. Open-ended to encourage reflection
3. Related to themes or emotions present in their recent entries
4. Suitable for personal journaling
5. Not too personal or invasive
6. Encouraging growth and self-discovery

Recent journal entries:
{entries_context}

Generate only the question, nothing else. Make it warm, thoughtful, and encouraging."""


def clean_question(text: str) -> str:
    return text.strip().strip('"').strip()


class PromptService:
    def __init__(
        self,
        session: AsyncSession,
        client: httpx.AsyncClient,
        *,
        entries: EntryRepository | None = None,
    ):
        self._session = session
        self._client = client
        self._entries = entries or EntryRepository()

    async def generate_prompt(self, owner_id: UUID) -> str:
        recent = await self._entries.list_recent_entries(
            self._session, owner_id, limit=RECENT_ENTRY_LIMIT
        )
        context = format_recent_entries(recent, EXCERPT_CHARS)
        try:
            reply = await complete(
                PROMPT_SYSTEM_PROMPT,
                build_prompt_request(context),
                self._client,
                model=PROMPT_MODEL,
                json_output=False,
                temperature=0.7,
                max_tokens=150,
            )
        except (GenerationFailure, httpx.HTTPError):
            LOGGER.exception("Prompt generation failed; using fallback question")
            return FALLBACK_QUESTION
        return clean_question(reply) or FALLBACK_QUESTION
