"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field

import pytest

from whatsapp_gateway.adapters.media_client import MediaClient, filename_from_url
from whatsapp_gateway.adapters.whatsapp_client import SignalHandler, WhatsAppClient
from whatsapp_gateway.config import Settings
from whatsapp_gateway.containers import AppContainer
from whatsapp_gateway.domain.messages import FetchedMedia, MediaPayload
from whatsapp_gateway.domain.sessions import SessionSignal, SessionState, SessionStatus
from whatsapp_gateway.services.dispatch import DispatchQueue
from whatsapp_gateway.services.messaging import MessagingService
from whatsapp_gateway.services.session_manager import SessionManager, Sleep


def fake_render(payload: str) -> str:
    """Challenge renderer that skips QR encoding."""
    return f"data:image/png;base64,{payload}"


@dataclass
class FakeWhatsAppClient(WhatsAppClient):
    """Fake client handle that records its lifecycle and sends."""

    name: str = "1"
    log: list[str] = field(default_factory=list)
    startup_signals: list[tuple[SessionSignal, str | None]] = field(
        default_factory=list
    )
    startup_error: Exception | None = None
    send_error: Exception | None = None
    sent: list[tuple[str, str | MediaPayload]] = field(default_factory=list)
    handlers: dict[SessionSignal, list[SignalHandler]] = field(default_factory=dict)
    destroyed: bool = False

    def on(self, signal: SessionSignal, handler: SignalHandler) -> None:
        self.handlers.setdefault(signal, []).append(handler)

    def emit(self, signal: SessionSignal, payload: str | None = None) -> None:
        for handler in self.handlers.get(signal, []):
            handler(payload)

    async def initialize(self) -> None:
        self.log.append(f"initialize:{self.name}")
        if self.startup_error is not None:
            raise self.startup_error
        for signal, payload in self.startup_signals:
            self.emit(signal, payload)

    async def send_message(self, chat_id: str, content: str | MediaPayload) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append((chat_id, content))

    async def destroy(self) -> None:
        self.log.append(f"destroy:{self.name}")
        self.destroyed = True


@dataclass
class FakeClientFactory:
    """Creates fake clients; the first ``failures`` of them fail to start."""

    failures: int = 0
    startup_signals: list[tuple[SessionSignal, str | None]] = field(
        default_factory=lambda: [(SessionSignal.CHALLENGE, "qr-payload")]
    )
    send_error: Exception | None = None
    create_error: Exception | None = None
    log: list[str] = field(default_factory=list)
    clients: list[FakeWhatsAppClient] = field(default_factory=list)

    def __call__(self) -> FakeWhatsAppClient:
        name = str(len(self.clients) + 1)
        self.log.append(f"create:{name}")
        if self.create_error is not None:
            raise self.create_error
        startup_error = None
        if len(self.clients) < self.failures:
            startup_error = RuntimeError(f"startup {name} failed")
        client = FakeWhatsAppClient(
            name=name,
            log=self.log,
            startup_signals=list(self.startup_signals),
            startup_error=startup_error,
            send_error=self.send_error,
        )
        self.clients.append(client)
        return client

    @property
    def latest(self) -> FakeWhatsAppClient:
        return self.clients[-1]


@dataclass
class RecordingSleep:
    """Sleep replacement that returns immediately and records delays."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@dataclass
class BlockingSleep:
    """Sleep replacement that never returns until cancelled."""

    delays: list[float] = field(default_factory=list)
    entered: asyncio.Event = field(default_factory=asyncio.Event)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.entered.set()
        await asyncio.Event().wait()


@dataclass
class FakeSession:
    """Minimal session view for driving the dispatch queue directly."""

    client: FakeWhatsAppClient | None = field(default_factory=FakeWhatsAppClient)
    ready: bool = True

    def status(self) -> SessionStatus:
        state = SessionState.READY if self.ready else SessionState.ABSENT
        return SessionStatus(state=state)


@dataclass
class FakeMediaClient(MediaClient):
    """Fake media client returning static content."""

    content_type: str = "image/png"
    content: bytes = b"\x01\x02"
    error: Exception | None = None
    requested: list[str] = field(default_factory=list)

    async def fetch(self, url: str) -> FetchedMedia:
        self.requested.append(url)
        if self.error is not None:
            raise self.error
        return FetchedMedia(
            content_type=self.content_type,
            content=self.content,
            filename=filename_from_url(url),
        )


def build_manager(
    factory: FakeClientFactory,
    sleep: Sleep | None = None,
    attempts: int = 3,
) -> SessionManager:
    return SessionManager(
        client_factory=factory,
        render_challenge=fake_render,
        startup_attempts=attempts,
        retry_delay_seconds=5.0,
        sleep=sleep or RecordingSleep(),
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(port=3000, startup_attempts=3, dispatch_concurrency=3)


@pytest.fixture
def client_factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture
def media_client() -> FakeMediaClient:
    return FakeMediaClient()


@pytest.fixture
def container(
    settings: Settings,
    client_factory: FakeClientFactory,
    media_client: FakeMediaClient,
) -> AppContainer:
    session_manager = SessionManager(
        client_factory=client_factory,
        render_challenge=fake_render,
        startup_attempts=settings.startup_attempts,
        retry_delay_seconds=settings.startup_retry_delay_seconds,
        sleep=RecordingSleep(),
    )
    dispatch_queue = DispatchQueue(
        session=session_manager,
        concurrency=settings.dispatch_concurrency,
    )
    messaging_service = MessagingService(
        dispatch_queue=dispatch_queue,
        media_client=media_client,
    )

    async def close_resources() -> None:
        dispatch_queue.close()
        await session_manager.close()

    return AppContainer(
        settings=settings,
        session_manager=session_manager,
        dispatch_queue=dispatch_queue,
        messaging_service=messaging_service,
        media_client=media_client,
        close_resources=close_resources,
    )
