"""Error taxonomy for the gateway."""


class GatewayError(Exception):
    """Base class for errors surfaced to API callers."""


class StartupExhausted(GatewayError):
    """Every configured startup attempt failed."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"WhatsApp client failed to start after {attempts} attempts: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error


class StartupCancelled(GatewayError):
    """A close request interrupted a startup in progress."""


class SessionNotReady(GatewayError):
    """No ready WhatsApp session is available."""


class InvalidRequest(GatewayError):
    """A request is missing required parameters."""


class SendFailure(GatewayError):
    """A dispatch job failed."""


class MediaFetchError(SendFailure):
    """The media referenced by a send request could not be downloaded."""
