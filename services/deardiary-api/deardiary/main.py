import logging
import os
from datetime import date, datetime
from uuid import UUID

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_session, shutdown_db, startup_db
from .errors import AuthenticationError, UpstreamDataError
from .notifications import get_notify_client, shutdown_notify_client, startup_notify_client
from .ollama import get_ollama_client, shutdown_ollama_client, startup_ollama_client
from .repositories import ProfileRepository
from .schemas import (
    CrisisAssessment,
    CrisisAssessRequest,
    DailyEmotionRecord,
    EmergencyContact,
    FavoriteUpdate,
    JournalEntry,
    JournalEntryCreate,
    JournalEntryUpdate,
    MonthlyThemes,
    SavedJournalEntry,
    WritingPrompt,
)
from .services import (
    CrisisAlertDispatcher,
    CrisisDetectionService,
    EmotionalAnalysisService,
    JournalService,
    PromptService,
    ThemeAnalysisService,
)

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="Dear Diary API")

cors_origins = [origin.strip() for origin in os.getenv("CORS_ALLOW_ORIGINS", "").split(",") if origin.strip()]
if cors_origins:
    allow_all = "*" in cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else cors_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
async def startup() -> None:
    await startup_ollama_client()
    await startup_notify_client()
    await startup_db()


@app.on_event("shutdown")
async def shutdown() -> None:
    await shutdown_ollama_client()
    await shutdown_notify_client()
    await shutdown_db()


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"detail": str(exc) or "Not authenticated"})


@app.exception_handler(UpstreamDataError)
async def upstream_error_handler(request: Request, exc: UpstreamDataError) -> JSONResponse:
    LOGGER.error("Upstream data failure: %s", exc)
    return JSONResponse(status_code=503, content={"detail": "Journal data is unavailable"})


def get_owner_id(x_owner_id: str | None = Header(default=None)) -> UUID:
    if not x_owner_id:
        raise AuthenticationError("X-Owner-Id header required")
    try:
        return UUID(x_owner_id)
    except ValueError as exc:
        raise AuthenticationError("Invalid owner id") from exc


def get_crisis_service(
    client: httpx.AsyncClient = Depends(get_ollama_client),
) -> CrisisDetectionService:
    return CrisisDetectionService(client)


def get_journal_service(
    session: AsyncSession = Depends(get_session),
    crisis: CrisisDetectionService = Depends(get_crisis_service),
    notify_client: httpx.AsyncClient = Depends(get_notify_client),
) -> JournalService:
    return JournalService(
        session,
        crisis=crisis,
        alerts=CrisisAlertDispatcher(session, notify_client),
    )


def get_emotion_service(
    session: AsyncSession = Depends(get_session),
    client: httpx.AsyncClient = Depends(get_ollama_client),
) -> EmotionalAnalysisService:
    return EmotionalAnalysisService(session, client)


def get_theme_service(
    session: AsyncSession = Depends(get_session),
    client: httpx.AsyncClient = Depends(get_ollama_client),
) -> ThemeAnalysisService:
    return ThemeAnalysisService(session, client)


def get_prompt_service(
    session: AsyncSession = Depends(get_session),
    client: httpx.AsyncClient = Depends(get_ollama_client),
) -> PromptService:
    return PromptService(session, client)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/v1/journal/entries", response_model=SavedJournalEntry, status_code=201)
async def create_entry(
    request: JournalEntryCreate,
    owner_id: UUID = Depends(get_owner_id),
    journal: JournalService = Depends(get_journal_service),
):
    return await journal.create_entry(
        owner_id, title=request.title, content=request.content, prompt=request.prompt
    )


@app.get("/v1/journal/entries", response_model=list[JournalEntry])
async def list_entries(
    q: str | None = Query(default=None, max_length=200),
    favorites: bool = Query(default=False),
    limit: int = Query(100, ge=1, le=500),
    owner_id: UUID = Depends(get_owner_id),
    journal: JournalService = Depends(get_journal_service),
):
    return await journal.list_entries(owner_id, query=q, favorites_only=favorites, limit=limit)


@app.get("/v1/journal/entries/{entry_id}", response_model=JournalEntry)
async def get_entry(
    entry_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    journal: JournalService = Depends(get_journal_service),
):
    entry = await journal.get_entry(owner_id, entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Journal entry not found")
    return entry


@app.patch("/v1/journal/entries/{entry_id}", response_model=SavedJournalEntry)
async def update_entry(
    entry_id: UUID,
    request: JournalEntryUpdate,
    owner_id: UUID = Depends(get_owner_id),
    journal: JournalService = Depends(get_journal_service),
):
    fields: dict[str, str] = {}
    if "title" in request.model_fields_set and request.title is not None:
        fields["title"] = request.title
    if "content" in request.model_fields_set and request.content is not None:
        fields["content"] = request.content
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")
    saved = await journal.update_entry(owner_id, entry_id, **fields)
    if saved is None:
        raise HTTPException(status_code=404, detail="Journal entry not found")
    return saved


@app.put("/v1/journal/entries/{entry_id}/favorite", response_model=JournalEntry)
async def set_favorite(
    entry_id: UUID,
    request: FavoriteUpdate,
    owner_id: UUID = Depends(get_owner_id),
    journal: JournalService = Depends(get_journal_service),
):
    entry = await journal.set_favorite(owner_id, entry_id, request.is_favorite)
    if entry is None:
        raise HTTPException(status_code=404, detail="Journal entry not found")
    return entry


@app.delete("/v1/journal/entries/{entry_id}", status_code=204)
async def delete_entry(
    entry_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    journal: JournalService = Depends(get_journal_service),
):
    deleted = await journal.delete_entry(owner_id, entry_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Journal entry not found")


@app.get("/v1/analysis/emotions", response_model=list[DailyEmotionRecord])
async def emotional_analysis(
    start: date = Query(...),
    end: date = Query(...),
    owner_id: UUID = Depends(get_owner_id),
    emotions: EmotionalAnalysisService = Depends(get_emotion_service),
):
    try:
        return await emotions.get_emotional_analysis(owner_id, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.delete("/v1/analysis/emotions/cache", status_code=204)
async def clear_emotional_cache(
    owner_id: UUID = Depends(get_owner_id),
    emotions: EmotionalAnalysisService = Depends(get_emotion_service),
):
    await emotions.clear_cache(owner_id)


@app.get("/v1/analysis/themes", response_model=MonthlyThemes)
async def monthly_themes(
    start: datetime = Query(...),
    end: datetime = Query(...),
    owner_id: UUID = Depends(get_owner_id),
    themes: ThemeAnalysisService = Depends(get_theme_service),
):
    try:
        return await themes.get_monthly_themes(owner_id, start, end)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@app.delete("/v1/analysis/themes/cache", status_code=204)
async def clear_theme_cache(
    owner_id: UUID = Depends(get_owner_id),
    themes: ThemeAnalysisService = Depends(get_theme_service),
):
    await themes.clear_cache(owner_id)


@app.delete("/v1/analysis/themes/{year}/{month}", status_code=204)
async def invalidate_month_themes(
    year: int,
    month: int,
    owner_id: UUID = Depends(get_owner_id),
    themes: ThemeAnalysisService = Depends(get_theme_service),
):
    if not 1 <= month <= 12:
        raise HTTPException(status_code=422, detail="month must be between 1 and 12")
    await themes.invalidate(owner_id, year, month)


@app.post("/v1/crisis/assess", response_model=CrisisAssessment)
async def assess_crisis(
    request: CrisisAssessRequest,
    owner_id: UUID = Depends(get_owner_id),
    crisis: CrisisDetectionService = Depends(get_crisis_service),
):
    return await crisis.assess(request.title, request.content)


@app.post("/v1/prompts", response_model=WritingPrompt)
async def writing_prompt(
    owner_id: UUID = Depends(get_owner_id),
    prompts: PromptService = Depends(get_prompt_service),
):
    return {"question": await prompts.generate_prompt(owner_id)}


@app.get("/v1/profile/emergency-contact", response_model=EmergencyContact)
async def get_emergency_contact(
    owner_id: UUID = Depends(get_owner_id),
    session: AsyncSession = Depends(get_session),
):
    email = await ProfileRepository().get_emergency_contact(session, owner_id)
    return {"emergency_contact_email": email}


@app.put("/v1/profile/emergency-contact", response_model=EmergencyContact)
async def set_emergency_contact(
    request: EmergencyContact,
    owner_id: UUID = Depends(get_owner_id),
    session: AsyncSession = Depends(get_session),
):
    email = await ProfileRepository().set_emergency_contact(
        session, owner_id, request.emergency_contact_email
    )
    return {"emergency_contact_email": email}
