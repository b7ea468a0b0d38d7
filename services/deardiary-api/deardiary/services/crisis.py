from __future__ import annotations

import asyncio
import logging
import math
from typing import Any
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ..entry_text import clean_labels, entry_heading, parse_json_object
from ..errors import GenerationFailure, UpstreamDataError
from ..notifications import notify
from ..ollama import complete
from ..repositories import ProfileRepository
from ..schemas import CrisisAssessment

LOGGER = logging.getLogger(__name__)

SEVERITIES = ("low", "medium", "high")
MAX_INDICATORS = 10

CRISIS_SYSTEM_PROMPT = (
    "You are a mental health crisis detection system. Your role is to identify "
    "potential signs of suicidal ideation or self-harm in journal entries. Be "
    "extremely careful and sensitive, erring on the side of caution to protect "
    "user safety."
)

_pending_alerts: set[asyncio.Task] = set()


def build_crisis_prompt(title: str, body: str) -> str:
    return f"""Analyze the following journal entry for signs of suicidal ideation, self-harm, or mental health crisis. Be very careful and err on the side of caution.

Title: {entry_heading({"title": title})}
Content: {body}

Look for indicators such as:
- Direct mentions of suicide, self-harm, or wanting to die
- Expressions of hopelessness or feeling trapped
- Mentions of having no reason to live
- References to ending pain or suffering
- Goodbye messages or final preparations
- Feeling like a burden to others
- Extreme despair or emotional pain

Respond in JSON format:
{{
  "is_crisis": boolean,
  "confidence": number (0-100),
  "detected_indicators": ["indicator1", "indicator2"],
  "severity": "low" | "medium" | "high"
}}

Be sensitive but thorough. If there's any doubt about potential self-harm, mark as crisis."""


def safe_assessment() -> CrisisAssessment:
    return CrisisAssessment(is_crisis=False, confidence=0, detected_indicators=[], severity="low")


def _coerce_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


def _coerce_confidence(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0
    if math.isnan(confidence):
        return 0
    return round(max(0.0, min(100.0, confidence)))


def _coerce_severity(value: Any) -> str:
    if isinstance(value, str) and value.strip().lower() in SEVERITIES:
        return value.strip().lower()
    return "low"


def normalize_assessment(data: dict[str, Any]) -> CrisisAssessment:
    return CrisisAssessment(
        is_crisis=_coerce_flag(data.get("is_crisis")),
        confidence=_coerce_confidence(data.get("confidence")),
        detected_indicators=clean_labels(data.get("detected_indicators"), MAX_INDICATORS),
        severity=_coerce_severity(data.get("severity")),
    )


class CrisisDetectionService:
    """Risk assessment of a single entry's text. Never cached."""

    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def assess(self, title: str | None, body: str | None) -> CrisisAssessment:
        if not body or not body.strip():
            return safe_assessment()
        try:
            reply = await complete(
                CRISIS_SYSTEM_PROMPT,
                build_crisis_prompt(title or "", body),
                self._client,
                temperature=0.1,
                max_tokens=300,
            )
            return normalize_assessment(parse_json_object(reply))
        except (GenerationFailure, httpx.HTTPError):
            LOGGER.exception("Crisis detection failed; returning non-crisis default")
            return safe_assessment()


class CrisisAlertDispatcher:
    """Notify the owner's emergency contact about a high severity entry.

    The alert is sent in the background; nothing here can fail the entry write.
    """

    def __init__(
        self,
        session: AsyncSession,
        client: httpx.AsyncClient,
        *,
        profiles: ProfileRepository | None = None,
    ):
        self._session = session
        self._client = client
        self._profiles = profiles or ProfileRepository()

    async def dispatch(
        self,
        owner_id: UUID,
        title: str,
        body: str,
        assessment: CrisisAssessment,
    ) -> asyncio.Task | None:
        if assessment.severity != "high":
            return None
        try:
            contact = await self._profiles.get_emergency_contact(self._session, owner_id)
        except UpstreamDataError:
            LOGGER.exception("Emergency contact lookup failed; crisis alert not sent")
            return None
        if not contact:
            LOGGER.info("High severity entry for owner=%s but no emergency contact", owner_id)
            return None

        indicators = list(assessment.detected_indicators)
        client = self._client

        async def _runner() -> None:
            try:
                delivered = await notify(contact, title, body, indicators, client)
            except Exception:
                LOGGER.exception("Crisis alert notification failed")
                return
            if not delivered:
                LOGGER.warning("Crisis alert for owner=%s was not delivered", owner_id)

        task = asyncio.create_task(_runner())
        _pending_alerts.add(task)
        task.add_done_callback(_pending_alerts.discard)
        return task
