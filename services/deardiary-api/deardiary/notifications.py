import html
import logging
import os
from typing import Any

import httpx

LOGGER = logging.getLogger(__name__)

CRISIS_ALERT_URL = os.getenv("CRISIS_ALERT_URL", "").strip() or None
CRISIS_ALERT_TIMEOUT = float(os.getenv("CRISIS_ALERT_TIMEOUT", "15"))
CRISIS_ALERT_FROM = os.getenv(
    "CRISIS_ALERT_FROM", "Dear Diary Crisis Alert <alerts@deardiary.invalid>"
)
ALERT_SUBJECT = "Urgent: Crisis Alert for Your Emergency Contact"

_IMMEDIATE_ACTIONS = [
    "Reach out immediately - contact them by phone, text, or in person",
    "Listen without judgment - let them know you care and are there for them",
    "Encourage professional help - suggest they speak with a counselor or therapist",
    "Stay with them - if possible, don't leave them alone",
]
_CRISIS_LINES = [
    "988 Suicide & Crisis Lifeline: call or text 988",
    "Crisis Text Line: text HOME to 741741",
    "Emergency: call 911 if in immediate danger",
]

_notify_client: httpx.AsyncClient | None = None


async def startup_notify_client() -> None:
    global _notify_client
    if _notify_client is None:
        _notify_client = httpx.AsyncClient(timeout=httpx.Timeout(CRISIS_ALERT_TIMEOUT))


async def shutdown_notify_client() -> None:
    global _notify_client
    if _notify_client is not None:
        await _notify_client.aclose()
        _notify_client = None


def get_notify_client() -> httpx.AsyncClient:
    if _notify_client is None:
        raise RuntimeError("Notification client is not initialized")
    return _notify_client


def render_alert_text(indicators: list[str]) -> str:
    lines = [
        "This is an urgent message regarding someone who has listed you as their "
        "emergency contact.",
        "",
        "A journal entry they wrote contains content that suggests thoughts of "
        "suicide or self-harm.",
        "",
        "Detected indicators:",
    ]
    lines.extend(f"- {indicator}" for indicator in indicators or ["(none reported)"])
    lines.extend(["", "Immediate actions you can take:"])
    lines.extend(f"- {action}" for action in _IMMEDIATE_ACTIONS)
    lines.extend(["", "Crisis resources:"])
    lines.extend(f"- {line}" for line in _CRISIS_LINES)
    return "\n".join(lines)


def render_alert_html(indicators: list[str]) -> str:
    items = "".join(f"<li>{html.escape(indicator)}</li>" for indicator in indicators)
    actions = "".join(f"<li>{html.escape(action)}</li>" for action in _IMMEDIATE_ACTIONS)
    resources = "".join(f"<p>{html.escape(line)}</p>" for line in _CRISIS_LINES)
    return (
        "<div>"
        "<h1>Crisis Alert</h1>"
        "<p><strong>This is an urgent message regarding someone who has listed you "
        "as their emergency contact.</strong></p>"
        "<p>A journal entry they wrote contains content that suggests thoughts of "
        "suicide or self-harm.</p>"
        f"<h3>Detected Indicators:</h3><ul>{items}</ul>"
        f"<h3>Immediate Actions You Can Take:</h3><ul>{actions}</ul>"
        f"<h3>Crisis Resources</h3>{resources}"
        "</div>"
    )


def build_alert_message(
    contact: str,
    entry_title: str,
    entry_body: str,
    indicators: list[str],
) -> dict[str, Any]:
    # The entry itself is not forwarded; only its indicators leave the service.
    return {
        "from": CRISIS_ALERT_FROM,
        "to": contact,
        "subject": ALERT_SUBJECT,
        "text": render_alert_text(indicators),
        "html": render_alert_html(indicators),
        "metadata": {
            "entry_title": entry_title or "Untitled",
            "entry_length": len(entry_body or ""),
        },
    }


async def notify(
    contact: str,
    entry_title: str,
    entry_body: str,
    indicators: list[str],
    client: httpx.AsyncClient,
    *,
    relay_url: str | None = None,
) -> bool:
    """Send a crisis alert to ``contact`` through the mail relay.

    Returns ``False`` instead of raising when the alert could not be sent.
    """
    url = relay_url or CRISIS_ALERT_URL
    if not url:
        LOGGER.warning("Crisis alert relay is not configured; alert not sent")
        return False
    message = build_alert_message(contact, entry_title, entry_body, indicators)
    try:
        response = await client.post(url, json=message)
    except httpx.HTTPError:
        LOGGER.exception("Crisis alert request failed")
        return False
    if response.status_code >= 300:
        LOGGER.error(
            "Crisis alert relay rejected message (%s): %s",
            response.status_code,
            response.text,
        )
        return False
    LOGGER.info("Crisis alert sent to emergency contact")
    return True
