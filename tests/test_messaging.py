"""Tests for text and media send jobs."""

import asyncio

import pytest

from tests.conftest import FakeMediaClient, FakeSession, FakeWhatsAppClient
from whatsapp_gateway.domain.errors import MediaFetchError, SessionNotReady
from whatsapp_gateway.domain.messages import (
    MediaPayload,
    SendReceipt,
    chat_id_for,
    phone_from_chat_id,
)
from whatsapp_gateway.services.dispatch import DispatchQueue
from whatsapp_gateway.services.messaging import MessagingService, media_job

CHAT_ID = "5551234567@c.us"


def test_chat_id_for_phone() -> None:
    assert chat_id_for("5551234567") == CHAT_ID
    assert phone_from_chat_id(CHAT_ID) == "5551234567"


def test_media_job_sends_text_then_media() -> None:
    media_client = FakeMediaClient(content_type="image/png", content=b"\x01\x02")
    client = FakeWhatsAppClient()
    job = media_job(media_client, CHAT_ID, "hi", "https://files.example/pic.png")

    receipt = asyncio.run(job(client))

    assert receipt == SendReceipt(chat_id=CHAT_ID, parts=2)
    assert media_client.requested == ["https://files.example/pic.png"]
    assert client.sent == [
        (CHAT_ID, "hi"),
        (CHAT_ID, MediaPayload(mimetype="image/png", data="AQI=", filename="pic.png")),
    ]
    assert client.sent[1][1].content() == b"\x01\x02"


def test_media_job_sends_nothing_when_download_fails() -> None:
    media_client = FakeMediaClient(error=MediaFetchError("Could not download"))
    client = FakeWhatsAppClient()
    job = media_job(media_client, CHAT_ID, "hi", "https://files.example/missing.png")

    with pytest.raises(MediaFetchError):
        asyncio.run(job(client))

    assert client.sent == []


def test_send_text_goes_through_queue() -> None:
    session = FakeSession()
    service = MessagingService(
        dispatch_queue=DispatchQueue(session=session, concurrency=3),
        media_client=FakeMediaClient(),
    )

    receipt = asyncio.run(service.send_text("5551234567", "hello"))

    assert receipt == SendReceipt(chat_id=CHAT_ID, parts=1)
    assert session.client.sent == [(CHAT_ID, "hello")]


def test_send_media_rejected_when_session_not_ready() -> None:
    session = FakeSession(ready=False)
    media_client = FakeMediaClient()
    service = MessagingService(
        dispatch_queue=DispatchQueue(session=session, concurrency=3),
        media_client=media_client,
    )

    with pytest.raises(SessionNotReady):
        asyncio.run(
            service.send_media("5551234567", "hi", "https://files.example/pic.png")
        )

    assert media_client.requested == []
    assert session.client.sent == []
