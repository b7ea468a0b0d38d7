import logging
import os
from typing import Any

import httpx

from .errors import GenerationFailure

LOGGER = logging.getLogger(__name__)

OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://ollama:11434")
OLLAMA_TIMEOUT = float(os.getenv("OLLAMA_TIMEOUT", "60"))
ANALYSIS_MODEL = os.getenv("ANALYSIS_MODEL", "llama3.1:8b").strip()
PROMPT_MODEL = os.getenv("PROMPT_MODEL", "").strip() or ANALYSIS_MODEL
_ollama_client: httpx.AsyncClient | None = None


def _ollama_timeout() -> httpx.Timeout:
    return httpx.Timeout(OLLAMA_TIMEOUT)


async def startup_ollama_client() -> None:
    global _ollama_client
    if _ollama_client is None:
        _ollama_client = httpx.AsyncClient(base_url=OLLAMA_BASE_URL, timeout=_ollama_timeout())


async def shutdown_ollama_client() -> None:
    global _ollama_client
    if _ollama_client is not None:
        await _ollama_client.aclose()
        _ollama_client = None


def get_ollama_client() -> httpx.AsyncClient:
    if _ollama_client is None:
        raise RuntimeError("Ollama client is not initialized")
    return _ollama_client


def _build_payload(
    system: str,
    prompt: str,
    *,
    model: str,
    json_output: bool,
    temperature: float,
    max_tokens: int,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "model": model,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        "stream": False,
        "options": {"temperature": temperature, "num_predict": max_tokens},
    }
    if json_output:
        payload["format"] = "json"
    return payload


async def complete(
    system: str,
    prompt: str,
    client: httpx.AsyncClient,
    *,
    model: str | None = None,
    json_output: bool = True,
    temperature: float = 0.3,
    max_tokens: int = 300,
) -> str:
    """Run one non-streaming chat completion and return the reply text.

    Transport errors surface as ``httpx.HTTPError``; everything else that
    leaves no usable reply raises ``GenerationFailure``.
    """
    payload = _build_payload(
        system,
        prompt,
        model=model or ANALYSIS_MODEL,
        json_output=json_output,
        temperature=temperature,
        max_tokens=max_tokens,
    )
    response = await client.post("/api/chat", json=payload)
    if response.status_code != 200:
        raise GenerationFailure(
            f"Ollama chat request failed ({response.status_code}): {response.text}"
        )
    try:
        data = response.json()
    except ValueError as exc:
        raise GenerationFailure("Ollama chat response is not JSON") from exc
    if data.get("error"):
        raise GenerationFailure(f"Ollama chat error: {data['error']}")

    message = data.get("message") or {}
    content = (message.get("content") or "").strip()
    if not content:
        raise GenerationFailure("Ollama chat response is empty")
    return content
