import json

import httpx
import pytest

from deardiary import notifications
from tests.utils import build_mock_transport


def capture(sent, status=202):
    def handler(request: httpx.Request) -> httpx.Response:
        sent.append((str(request.url), json.loads(request.content)))
        return httpx.Response(status, json={"id": "msg-1"})

    return handler


@pytest.mark.asyncio
async def test_alert_message_names_contact_and_indicators():
    sent = []
    async with httpx.AsyncClient(transport=build_mock_transport(capture(sent))) as client:
        ok = await notifications.notify(
            "friend@example.com",
            "Tonight",
            "Private words that stay private.",
            ["feeling like a burden", "<b>goodbye</b>"],
            client,
            relay_url="http://relay/send",
        )

    assert ok is True
    url, message = sent[0]
    assert url == "http://relay/send"
    assert message["to"] == "friend@example.com"
    assert message["subject"] == notifications.ALERT_SUBJECT
    assert "- feeling like a burden" in message["text"]
    assert "988" in message["text"]
    assert "&lt;b&gt;goodbye&lt;/b&gt;" in message["html"]
    assert "Private words" not in json.dumps(message)
    assert message["metadata"] == {"entry_title": "Tonight", "entry_length": 32}


@pytest.mark.asyncio
async def test_unconfigured_relay_returns_false(monkeypatch):
    monkeypatch.setattr(notifications, "CRISIS_ALERT_URL", None)
    sent = []
    async with httpx.AsyncClient(transport=build_mock_transport(capture(sent))) as client:
        ok = await notifications.notify("friend@example.com", "t", "b", [], client)

    assert ok is False
    assert sent == []


@pytest.mark.asyncio
async def test_rejected_message_returns_false():
    sent = []
    async with httpx.AsyncClient(transport=build_mock_transport(capture(sent, status=500))) as client:
        ok = await notifications.notify(
            "friend@example.com", "t", "b", [], client, relay_url="http://relay/send"
        )

    assert ok is False
    assert len(sent) == 1


@pytest.mark.asyncio
async def test_transport_error_returns_false():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("relay down", request=request)

    async with httpx.AsyncClient(transport=build_mock_transport(handler)) as client:
        ok = await notifications.notify(
            "friend@example.com", "t", "b", [], client, relay_url="http://relay/send"
        )

    assert ok is False


def test_empty_indicator_list_is_rendered():
    assert "(none reported)" in notifications.render_alert_text([])
