"""WhatsApp Web client driven by a headless Chromium through Playwright."""

import asyncio
import logging
import platform
from collections.abc import Callable
from dataclasses import dataclass, field
from importlib import metadata
from typing import Protocol

from playwright.async_api import (
    Browser,
    BrowserContext,
    Locator,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError

from whatsapp_gateway.config import Settings, parse_browser_args
from whatsapp_gateway.domain.messages import MediaPayload, phone_from_chat_id
from whatsapp_gateway.domain.sessions import SessionSignal

_logger = logging.getLogger(__name__)

SignalHandler = Callable[[str | None], None]

BASE_BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-blink-features=AutomationControlled",
]
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
VIEWPORT = {"width": 1280, "height": 800}

READY_SELECTOR = '#side, [data-testid="chat-list"]'
QR_SELECTOR = "div[data-ref]"
AUTH_FAILURE_TEXT = "Couldn't link device"
COMPOSER_SELECTOR = 'footer div[contenteditable="true"]'
INVALID_NUMBER_SELECTOR = 'div[data-testid="popup-controls-ok"]'
ATTACH_SELECTOR = (
    '[data-icon="plus"], [data-icon="attach-menu-plus"], '
    '[data-icon="clip"], button[aria-label="Attach"]'
)
FILE_INPUT_SELECTOR = 'input[type="file"]'
SEND_SELECTOR = '[data-icon="send"], button[aria-label="Send"]'
PENDING_SELECTOR = '[data-icon="msg-time"]'
SEND_SETTLE_MS = 1000


class WhatsAppClient(Protocol):
    """Interface of the external WhatsApp session handle."""

    def on(self, signal: SessionSignal, handler: SignalHandler) -> None:
        """Register a handler for a lifecycle signal."""

    async def initialize(self) -> None:
        """Start the session; returns once a QR code or the chat list shows."""

    async def send_message(self, chat_id: str, content: str | MediaPayload) -> None:
        """Send a text or media message to a chat."""

    async def destroy(self) -> None:
        """Tear the session down."""


ClientFactory = Callable[[], WhatsAppClient]


@dataclass
class PlaywrightWhatsAppClient(WhatsAppClient):
    """WhatsApp Web session running in a non-persistent browser context."""

    web_url: str
    headless: bool = True
    executable_path: str | None = None
    browser_args: list[str] = field(default_factory=list)
    startup_timeout_seconds: float = 60.0
    watch_interval_seconds: float = 2.0
    send_timeout_seconds: float = 30.0
    _handlers: dict[SessionSignal, list[SignalHandler]] = field(
        default_factory=dict, init=False, repr=False
    )
    _playwright: Playwright | None = field(default=None, init=False, repr=False)
    _browser: Browser | None = field(default=None, init=False, repr=False)
    _context: BrowserContext | None = field(default=None, init=False, repr=False)
    _page: Page | None = field(default=None, init=False, repr=False)
    _watch_task: asyncio.Task[None] | None = field(
        default=None, init=False, repr=False
    )
    _settled: asyncio.Event = field(
        default_factory=asyncio.Event, init=False, repr=False
    )
    _startup_error: Exception | None = field(default=None, init=False, repr=False)
    _ready: bool = field(default=False, init=False)
    _closing: bool = field(default=False, init=False)
    _disconnected: bool = field(default=False, init=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PlaywrightWhatsAppClient":
        """Create a client configured from application settings."""
        return cls(
            web_url=settings.whatsapp_web_url.rstrip("/"),
            headless=settings.browser_headless,
            executable_path=settings.browser_executable_path,
            browser_args=parse_browser_args(settings.browser_args),
            startup_timeout_seconds=settings.startup_timeout_seconds,
            watch_interval_seconds=settings.watch_interval_seconds,
            send_timeout_seconds=settings.send_timeout_seconds,
        )

    def on(self, signal: SessionSignal, handler: SignalHandler) -> None:
        """Register a handler for a lifecycle signal."""
        self._handlers.setdefault(signal, []).append(handler)

    async def initialize(self) -> None:
        """Launch the browser, open WhatsApp Web and wait for it to settle."""
        _logger.info(
            "Launching Chromium "
            "(python=%s, playwright=%s, headless=%s, executable=%s)",
            platform.python_version(),
            _package_version("playwright"),
            self.headless,
            self.executable_path or "bundled",
        )
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.headless,
            executable_path=self.executable_path,
            args=[*BASE_BROWSER_ARGS, *self.browser_args],
        )
        self._browser.on(
            "disconnected", lambda _: self._emit_disconnected("browser disconnected")
        )
        self._context = await self._browser.new_context(
            user_agent=USER_AGENT, viewport=VIEWPORT, locale="en-US"
        )
        self._page = await self._context.new_page()
        self._page.on("crash", lambda _: self._emit_disconnected("page crashed"))
        await self._page.goto(
            self.web_url,
            wait_until="domcontentloaded",
            timeout=self._timeout_ms(self.startup_timeout_seconds),
        )
        self._watch_task = asyncio.create_task(self._watch(self._page))
        try:
            await asyncio.wait_for(
                self._settled.wait(), timeout=self.startup_timeout_seconds
            )
        except TimeoutError as exc:
            raise RuntimeError(
                "WhatsApp Web showed neither a QR code nor the chat list in time"
            ) from exc
        if self._startup_error is not None:
            raise RuntimeError("WhatsApp Web page failed during startup") from (
                self._startup_error
            )

    async def send_message(self, chat_id: str, content: str | MediaPayload) -> None:
        """Open the chat in a fresh tab and send the content."""
        if self._context is None:
            raise RuntimeError("WhatsApp client is not initialized")
        phone = phone_from_chat_id(chat_id)
        timeout_ms = self._timeout_ms(self.send_timeout_seconds)
        page = await self._context.new_page()
        try:
            await page.goto(
                f"{self.web_url}/send?phone={phone}",
                wait_until="domcontentloaded",
                timeout=timeout_ms,
            )
            await page.wait_for_selector(
                f"{COMPOSER_SELECTOR}, {INVALID_NUMBER_SELECTOR}", timeout=timeout_ms
            )
            if await page.locator(INVALID_NUMBER_SELECTOR).count() > 0:
                raise RuntimeError(f"Phone number {phone} is not on WhatsApp")
            if isinstance(content, MediaPayload):
                await self._send_media(page, content, timeout_ms)
            else:
                await self._send_text(page, content)
            await page.wait_for_timeout(SEND_SETTLE_MS)
            await page.locator(PENDING_SELECTOR).first.wait_for(
                state="detached", timeout=timeout_ms
            )
        finally:
            await page.close()

    async def destroy(self) -> None:
        """Stop the watcher and close the browser; safe after a failed start."""
        self._closing = True
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None
        for name, resource in (
            ("context", self._context),
            ("browser", self._browser),
        ):
            if resource is None:
                continue
            try:
                await resource.close()
            except PlaywrightError as exc:
                _logger.warning("Failed to close browser %s: %s", name, exc)
        if self._playwright is not None:
            await self._playwright.stop()
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None

    async def _watch(self, page: Page) -> None:
        last_challenge: str | None = None
        auth_failure_reported = False
        while True:
            try:
                if await page.locator(READY_SELECTOR).count() > 0:
                    if not self._ready:
                        self._ready = True
                        self._emit(SessionSignal.READY)
                        self._settled.set()
                elif await page.locator(QR_SELECTOR).count() > 0:
                    if self._ready:
                        self._emit_disconnected("LOGOUT")
                        return
                    challenge = await page.locator(QR_SELECTOR).first.get_attribute(
                        "data-ref"
                    )
                    if challenge and challenge != last_challenge:
                        last_challenge = challenge
                        self._emit(SessionSignal.CHALLENGE, challenge)
                        self._settled.set()
                failure = page.get_by_text(AUTH_FAILURE_TEXT)
                if not auth_failure_reported and await failure.count() > 0:
                    auth_failure_reported = True
                    self._emit(SessionSignal.AUTH_FAILURE, AUTH_FAILURE_TEXT)
            except PlaywrightError as exc:
                self._watch_failed(exc)
                return
            except Exception as exc:
                _logger.exception("WhatsApp Web watcher failed")
                self._watch_failed(exc)
                return
            await asyncio.sleep(self.watch_interval_seconds)

    def _watch_failed(self, exc: Exception) -> None:
        if not self._settled.is_set():
            self._startup_error = exc
            self._settled.set()
            return
        self._emit_disconnected(str(exc) or type(exc).__name__)

    async def _send_text(self, page: Page, text: str) -> None:
        composer = page.locator(COMPOSER_SELECTOR).last
        await composer.click()
        await composer.fill(text)
        await composer.press("Enter")

    async def _send_media(
        self, page: Page, media: MediaPayload, timeout_ms: float
    ) -> None:
        attach = page.locator(ATTACH_SELECTOR).first
        await attach.click(timeout=timeout_ms)
        file_input: Locator = page.locator(FILE_INPUT_SELECTOR).first
        await file_input.set_input_files(
            files={
                "name": media.filename,
                "mimeType": media.mimetype,
                "buffer": media.content(),
            },
            timeout=timeout_ms,
        )
        send = page.locator(SEND_SELECTOR).first
        await send.wait_for(timeout=timeout_ms)
        await send.click()

    def _emit(self, signal: SessionSignal, payload: str | None = None) -> None:
        _logger.info("WhatsApp Web signal: %s", signal)
        for handler in self._handlers.get(signal, []):
            handler(payload)

    def _emit_disconnected(self, reason: str) -> None:
        if self._closing or self._disconnected:
            return
        self._disconnected = True
        self._emit(SessionSignal.DISCONNECTED, reason)

    @staticmethod
    def _timeout_ms(seconds: float) -> float:
        return seconds * 1000


def _package_version(name: str) -> str:
    try:
        return metadata.version(name)
    except metadata.PackageNotFoundError:
        return "unknown"
