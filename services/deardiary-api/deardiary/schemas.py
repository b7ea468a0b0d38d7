from datetime import date, datetime
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, Field

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
Severity = Literal["low", "medium", "high"]
EmailAddress = Annotated[str, Field(pattern=EMAIL_PATTERN, max_length=320)]


class JournalEntryCreate(BaseModel):
    title: str = ""
    content: str
    prompt: str | None = None


class JournalEntryUpdate(BaseModel):
    title: str | None = None
    content: str | None = None


class FavoriteUpdate(BaseModel):
    is_favorite: bool


class JournalEntry(BaseModel):
    id: UUID
    user_id: UUID
    title: str
    content: str
    prompt: str | None = None
    is_favorite: bool = False
    created_at: datetime
    updated_at: datetime


class CrisisAssessment(BaseModel):
    is_crisis: bool = False
    confidence: int = Field(default=0, ge=0, le=100)
    detected_indicators: list[str] = Field(default_factory=list)
    severity: Severity = "low"


class CrisisAssessRequest(BaseModel):
    title: str = ""
    content: str = ""


class SavedJournalEntry(BaseModel):
    entry: JournalEntry
    crisis: CrisisAssessment


class DailyEmotionRecord(BaseModel):
    date: date
    emotional_score: int = Field(ge=1, le=10)
    dominant_emotions: list[str]
    summary: str
    entry_count: int
    last_entry_at: datetime
    stale: bool = False


class MonthlyThemes(BaseModel):
    themes: list[str] = Field(default_factory=list, max_length=3)
    summary: str
    cached: bool = False


class WritingPrompt(BaseModel):
    question: str


class EmergencyContact(BaseModel):
    emergency_contact_email: EmailAddress | None = None
