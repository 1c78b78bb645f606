"""Tests for container wiring."""

import asyncio

from whatsapp_gateway.adapters.media_client import HttpxMediaClient
from whatsapp_gateway.containers import build_container


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    assert container.session_manager.status().is_ready is False
    assert container.session_manager.startup_attempts == 3
    assert container.dispatch_queue.concurrency == 3
    assert container.dispatch_queue.session is container.session_manager
    assert isinstance(container.media_client, HttpxMediaClient)
    assert container.messaging_service.dispatch_queue is container.dispatch_queue

    asyncio.run(container.close_resources())

    assert container.media_client.http_client.is_closed
