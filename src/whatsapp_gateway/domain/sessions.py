"""Domain models for the WhatsApp session lifecycle."""

from dataclasses import dataclass
from enum import StrEnum


class SessionState(StrEnum):
    """Lifecycle states of the single WhatsApp session."""

    ABSENT = "absent"
    INITIALIZING = "initializing"
    AWAITING_SCAN = "awaiting_scan"
    READY = "ready"


class SessionSignal(StrEnum):
    """Signals emitted by the external WhatsApp client."""

    CHALLENGE = "challenge"
    READY = "ready"
    AUTH_FAILURE = "auth_failure"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class SessionEvent:
    """A signal received from the client handle of a given generation."""

    generation: int
    signal: SessionSignal
    payload: str | None = None


@dataclass(frozen=True)
class SessionStatus:
    """Read-only projection of the current session."""

    state: SessionState
    challenge: str | None = None
    auth_failure: str | None = None

    @property
    def is_ready(self) -> bool:
        return self.state is SessionState.READY

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self.state]


_DESCRIPTIONS = {
    SessionState.ABSENT: "WhatsApp is not started",
    SessionState.INITIALIZING: "WhatsApp is starting",
    SessionState.AWAITING_SCAN: "Scan the QR code with WhatsApp",
    SessionState.READY: "WhatsApp is ready",
}
