"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from whatsapp_gateway.adapters.media_client import HttpxMediaClient, MediaClient
from whatsapp_gateway.adapters.whatsapp_client import PlaywrightWhatsAppClient
from whatsapp_gateway.config import Settings
from whatsapp_gateway.services.dispatch import DispatchQueue
from whatsapp_gateway.services.messaging import MessagingService
from whatsapp_gateway.services.session_manager import SessionManager


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_manager: SessionManager
    dispatch_queue: DispatchQueue
    messaging_service: MessagingService
    media_client: MediaClient
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    session_manager = SessionManager(
        client_factory=lambda: PlaywrightWhatsAppClient.from_settings(
            resolved_settings
        ),
        startup_attempts=resolved_settings.startup_attempts,
        retry_delay_seconds=resolved_settings.startup_retry_delay_seconds,
    )
    dispatch_queue = DispatchQueue(
        session=session_manager,
        concurrency=resolved_settings.dispatch_concurrency,
    )
    media_client = HttpxMediaClient.create(
        timeout_seconds=resolved_settings.media_fetch_timeout_seconds
    )
    messaging_service = MessagingService(
        dispatch_queue=dispatch_queue,
        media_client=media_client,
    )

    async def close_resources() -> None:
        dispatch_queue.close()
        await session_manager.close()
        await media_client.close()

    return AppContainer(
        settings=resolved_settings,
        session_manager=session_manager,
        dispatch_queue=dispatch_queue,
        messaging_service=messaging_service,
        media_client=media_client,
        close_resources=close_resources,
    )
