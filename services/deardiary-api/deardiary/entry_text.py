import json
from typing import Any

from .errors import GenerationFailure


def entry_heading(entry: dict[str, Any]) -> str:
    title = (entry.get("title") or "").strip()
    return title or "Untitled"


def combine_entries(entries: list[dict[str, Any]]) -> str:
    """Join entries into one block, one ``Title: content`` paragraph each."""
    blocks = []
    for entry in entries:
        content = (entry.get("content") or "").strip()
        blocks.append(f"{entry_heading(entry)}: {content}")
    return "\n\n".join(blocks)


def excerpt(text: str, max_chars: int = 500) -> str:
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}..."


def format_recent_entries(entries: list[dict[str, Any]], max_chars: int = 500) -> str:
    if not entries:
        return "No previous entries found."
    blocks = [
        f"Title: {entry_heading(entry)}\nContent: {excerpt(entry.get('content') or '', max_chars)}"
        for entry in entries
    ]
    return "\n\n---\n\n".join(blocks)


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if not stripped.startswith("```"):
        return stripped
    lines = stripped.splitlines()[1:]
    if lines and lines[-1].strip().startswith("```"):
        lines = lines[:-1]
    return "\n".join(lines).strip()


def parse_json_object(text: str | None) -> dict[str, Any]:
    """Parse the JSON object in a model reply.

    Models sometimes wrap the object in a Markdown fence or add a sentence
    before it, so fall back to the outermost ``{...}`` span.
    """
    if not text or not text.strip():
        raise GenerationFailure("Empty model response")
    candidate = _strip_code_fence(text)
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        start = candidate.find("{")
        end = candidate.rfind("}")
        if start < 0 or end <= start:
            raise GenerationFailure("Model response is not JSON") from None
        try:
            data = json.loads(candidate[start : end + 1])
        except json.JSONDecodeError as exc:
            raise GenerationFailure("Model response is not JSON") from exc
    if not isinstance(data, dict):
        raise GenerationFailure("Model response is not a JSON object")
    return data


def clean_labels(value: Any, limit: int) -> list[str]:
    if not isinstance(value, list):
        return []
    labels = [str(item).strip() for item in value if isinstance(item, (str, int, float))]
    return [label for label in labels if label][:limit]
