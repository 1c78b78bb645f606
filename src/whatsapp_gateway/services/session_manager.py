"""Lifecycle manager for the single WhatsApp session."""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from whatsapp_gateway.adapters.whatsapp_client import (
    ClientFactory,
    SignalHandler,
    WhatsAppClient,
)
from whatsapp_gateway.domain.errors import StartupCancelled, StartupExhausted
from whatsapp_gateway.domain.sessions import (
    SessionEvent,
    SessionSignal,
    SessionState,
    SessionStatus,
)
from whatsapp_gateway.services.challenge import challenge_data_url

_logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
ChallengeRenderer = Callable[[str], str]


@dataclass
class SessionManager:
    """Owns the single WhatsApp session and mediates every state transition.

    Initialize and Close are serialized by one lock, so at most one client
    handle is alive at a time. Signals from the client are queued in an inbox
    and applied by ``_drain``; signals from a handle that is no longer current
    are dropped.
    """

    client_factory: ClientFactory
    render_challenge: ChallengeRenderer = challenge_data_url
    startup_attempts: int = 3
    retry_delay_seconds: float = 5.0
    sleep: Sleep = asyncio.sleep
    _state: SessionState = field(default=SessionState.ABSENT, init=False)
    _client: WhatsAppClient | None = field(default=None, init=False, repr=False)
    _challenge: str | None = field(default=None, init=False, repr=False)
    _auth_failure: str | None = field(default=None, init=False)
    _generation: int = field(default=0, init=False)
    _epoch: int = field(default=0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)
    _inbox: deque[SessionEvent] = field(default_factory=deque, init=False, repr=False)
    _startup_task: asyncio.Task[None] | None = field(
        default=None, init=False, repr=False
    )
    _discarded: set[asyncio.Task[None]] = field(
        default_factory=set, init=False, repr=False
    )

    def __post_init__(self) -> None:
        if self.startup_attempts < 1:
            raise ValueError("startup_attempts must be at least 1")

    @property
    def client(self) -> WhatsAppClient | None:
        """Current client handle, for read-only use by senders."""
        return self._client

    def status(self) -> SessionStatus:
        """Return the current session status without touching the client."""
        return SessionStatus(
            state=self._state,
            challenge=self._challenge,
            auth_failure=self._auth_failure,
        )

    async def initialize(self) -> SessionStatus:
        """Start a fresh session, tearing down any existing one first."""
        epoch = self._epoch
        async with self._lock:
            if self._state is not SessionState.ABSENT or self._client is not None:
                _logger.info("Closing the current session before initializing")
            await self._teardown()
            if epoch != self._epoch:
                raise StartupCancelled("Session was closed before startup began")
            self._state = SessionState.INITIALIZING
            self._startup_task = asyncio.create_task(self._start_with_retry())
            try:
                await self._startup_task
            except asyncio.CancelledError:
                await self._teardown()
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
                raise StartupCancelled("Session was closed during startup") from None
            finally:
                self._startup_task = None
            return self.status()

    async def close(self) -> None:
        """Destroy the session if any; cancels a startup in progress."""
        self._epoch += 1
        task = self._startup_task
        if task is not None and not task.done():
            _logger.info("Cancelling WhatsApp client startup")
            task.cancel()
        async with self._lock:
            await self._teardown()
        _logger.info("WhatsApp session closed")

    async def _start_with_retry(self) -> None:
        for attempt in range(1, self.startup_attempts + 1):
            _logger.info(
                "Starting WhatsApp client (attempt %s of %s)",
                attempt,
                self.startup_attempts,
            )
            try:
                client = self._attach(self.client_factory())
                await client.initialize()
                self._drain()
                if self._client is not client:
                    raise RuntimeError("WhatsApp client disconnected during startup")
            except Exception as exc:
                _logger.exception("WhatsApp client startup attempt %s failed", attempt)
                await self._discard_current()
                if attempt == self.startup_attempts:
                    self._reset()
                    raise StartupExhausted(attempt, exc) from exc
                await self.sleep(self.retry_delay_seconds)
            else:
                _logger.info("WhatsApp client started (state=%s)", self._state)
                return

    def _attach(self, client: WhatsAppClient) -> WhatsAppClient:
        self._generation += 1
        self._client = client
        self._challenge = None
        self._auth_failure = None
        self._state = SessionState.INITIALIZING
        for signal in SessionSignal:
            client.on(signal, self._receiver(self._generation, signal))
        return client

    def _receiver(self, generation: int, signal: SessionSignal) -> SignalHandler:
        def receive(payload: str | None = None) -> None:
            self._inbox.append(SessionEvent(generation, signal, payload))
            self._drain()

        return receive

    def _drain(self) -> None:
        while self._inbox:
            event = self._inbox.popleft()
            if event.generation != self._generation or self._client is None:
                _logger.debug("Ignoring %s signal from a stale client", event.signal)
                continue
            self._apply(event)

    def _apply(self, event: SessionEvent) -> None:
        if event.signal is SessionSignal.CHALLENGE:
            if self._state not in {
                SessionState.INITIALIZING,
                SessionState.AWAITING_SCAN,
            }:
                return
            self._state = SessionState.AWAITING_SCAN
            try:
                self._challenge = self.render_challenge(event.payload or "")
            except Exception:
                _logger.exception("Failed to render QR code")
                self._challenge = None
            else:
                _logger.info("QR code received")
        elif event.signal is SessionSignal.READY:
            self._state = SessionState.READY
            self._challenge = None
            _logger.info("WhatsApp client is ready")
        elif event.signal is SessionSignal.AUTH_FAILURE:
            self._auth_failure = event.payload or "authentication failed"
            _logger.error("WhatsApp authentication failed: %s", event.payload)
        elif event.signal is SessionSignal.DISCONNECTED:
            _logger.warning("WhatsApp client disconnected: %s", event.payload)
            client = self._client
            self._reset()
            if client is not None:
                self._destroy_in_background(client)

    async def _teardown(self) -> None:
        client = self._client
        self._reset()
        if client is not None:
            await self._destroy(client)
        if self._discarded:
            await asyncio.gather(*self._discarded)

    async def _discard_current(self) -> None:
        client = self._client
        self._client = None
        self._challenge = None
        self._state = SessionState.INITIALIZING
        if client is not None:
            await self._destroy(client)

    def _reset(self) -> None:
        self._state = SessionState.ABSENT
        self._client = None
        self._challenge = None
        self._auth_failure = None

    def _destroy_in_background(self, client: WhatsAppClient) -> None:
        task = asyncio.get_running_loop().create_task(self._destroy(client))
        self._discarded.add(task)
        task.add_done_callback(self._discarded.discard)

    async def _destroy(self, client: WhatsAppClient) -> None:
        try:
            await client.destroy()
        except Exception:
            _logger.exception("Failed to destroy WhatsApp client")
