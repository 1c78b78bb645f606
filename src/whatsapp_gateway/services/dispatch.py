"""Bounded-concurrency FIFO queue for outbound sends."""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

from whatsapp_gateway.adapters.whatsapp_client import WhatsAppClient
from whatsapp_gateway.domain.errors import GatewayError, SendFailure, SessionNotReady
from whatsapp_gateway.domain.sessions import SessionStatus

_logger = logging.getLogger(__name__)

DispatchJob = Callable[[WhatsAppClient], Awaitable[Any]]


class SessionView(Protocol):
    """Read-only view of the session used to gate and run jobs."""

    @property
    def client(self) -> WhatsAppClient | None:
        """Current client handle, if any."""

    def status(self) -> SessionStatus:
        """Current session status."""


@dataclass
class _QueuedJob:
    job: DispatchJob
    future: asyncio.Future[Any]


@dataclass
class DispatchQueue:
    """Runs at most ``concurrency`` jobs at once, starting them in FIFO order."""

    session: SessionView
    concurrency: int = 3
    _pending: deque[_QueuedJob] = field(default_factory=deque, init=False)
    _running: set[asyncio.Task[None]] = field(default_factory=set, init=False)

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")

    @property
    def pending(self) -> int:
        """Number of jobs waiting for a free slot."""
        return len(self._pending)

    @property
    def in_flight(self) -> int:
        """Number of jobs currently running."""
        return len(self._running)

    def submit(self, job: DispatchJob) -> asyncio.Future[Any]:
        """Queue a job and return a future resolved with its outcome.

        Raises ``SessionNotReady`` without queueing when the session is not
        ready.
        """
        if not self.session.status().is_ready:
            raise SessionNotReady("WhatsApp session is not ready")
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending.append(_QueuedJob(job=job, future=future))
        self._start_next()
        return future

    async def run(self, job: DispatchJob) -> Any:
        """Submit a job and wait for its result."""
        return await self.submit(job)

    def close(self) -> None:
        """Cancel jobs that have not started yet."""
        while self._pending:
            queued = self._pending.popleft()
            queued.future.cancel()

    def _start_next(self) -> None:
        while self._pending and len(self._running) < self.concurrency:
            queued = self._pending.popleft()
            if queued.future.cancelled():
                continue
            task = asyncio.get_running_loop().create_task(self._execute(queued))
            self._running.add(task)
            task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task[None]) -> None:
        self._running.discard(task)
        self._start_next()

    async def _execute(self, queued: _QueuedJob) -> None:
        try:
            client = self.session.client
            if client is None or not self.session.status().is_ready:
                raise SessionNotReady("WhatsApp session not ready when the job ran")
            result = await queued.job(client)
        except GatewayError as exc:
            _set_exception(queued.future, exc)
        except Exception as exc:
            _logger.exception("Dispatch job failed")
            failure = SendFailure(str(exc) or type(exc).__name__)
            failure.__cause__ = exc
            _set_exception(queued.future, failure)
        else:
            if not queued.future.done():
                queued.future.set_result(result)


def _set_exception(future: asyncio.Future[Any], exc: BaseException) -> None:
    if not future.done():
        future.set_exception(exc)
