"""FastAPI application factory."""

import logging
import traceback
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import HTMLResponse, JSONResponse

from whatsapp_gateway.api.pages import CONTROL_PAGE_HTML, render_instance_status
from whatsapp_gateway.app_logging import configure_logging
from whatsapp_gateway.containers import AppContainer
from whatsapp_gateway.domain.errors import (
    InvalidRequest,
    SendFailure,
    SessionNotReady,
    StartupCancelled,
    StartupExhausted,
)


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("WhatsApp gateway listening on port %s", container.settings.port)
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/", response_class=HTMLResponse)
    async def control_page() -> HTMLResponse:
        """Control page for starting the session and scanning the QR code."""
        return HTMLResponse(CONTROL_PAGE_HTML)

    @app.get("/initialize", response_model=None)
    async def initialize(request: Request) -> dict[str, object] | JSONResponse:
        """Start a fresh WhatsApp session and return the QR code, if any."""
        state_container: AppContainer = request.app.state.container
        try:
            session = await state_container.session_manager.initialize()
        except StartupExhausted as exc:
            logger.exception("WhatsApp client initialization failed")
            return _startup_failure(exc.last_error)
        except StartupCancelled as exc:
            logger.info("WhatsApp client initialization cancelled: %s", exc)
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content={"error": str(exc)},
            )
        except Exception as exc:
            logger.exception("Unexpected error while initializing WhatsApp client")
            return _startup_failure(exc)
        return {"message": "WhatsApp client initialized.", "qr": session.challenge}

    @app.get("/close")
    async def close(request: Request) -> dict[str, str]:
        """Close the WhatsApp session; always succeeds."""
        state_container: AppContainer = request.app.state.container
        await state_container.session_manager.close()
        return {"message": "WhatsApp session closed."}

    @app.get("/status")
    async def session_status(request: Request) -> dict[str, object]:
        """Return the readiness of the WhatsApp session."""
        state_container: AppContainer = request.app.state.container
        current = state_container.session_manager.status()
        return {"status": current.description, "isReady": current.is_ready}

    @app.get("/send-message", response_model=None)
    async def send_message(
        request: Request, phone: str | None = None, message: str | None = None
    ) -> dict[str, object] | JSONResponse:
        """Queue a text message and wait until it is sent."""
        state_container: AppContainer = request.app.state.container
        try:
            _require(phone=phone, message=message)
            await state_container.messaging_service.send_text(phone, message)
        except InvalidRequest as exc:
            return _error(status.HTTP_400_BAD_REQUEST, str(exc))
        except SessionNotReady:
            return _error(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "The WhatsApp client is not ready yet.",
            )
        except SendFailure as exc:
            logger.exception("Failed to send message", extra={"phone": phone})
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to send the message",
                details=str(exc),
            )
        return {"success": True, "message": "Message sent successfully"}

    @app.get("/send-message_media", response_model=None)
    async def send_message_media(
        request: Request,
        phone: str | None = None,
        message: str | None = None,
        fileUrl: str | None = None,  # noqa: N803
    ) -> dict[str, object] | JSONResponse:
        """Queue a text message followed by a media file."""
        state_container: AppContainer = request.app.state.container
        try:
            _require(phone=phone, message=message, fileUrl=fileUrl)
            await state_container.messaging_service.send_media(phone, message, fileUrl)
        except InvalidRequest as exc:
            return _error(status.HTTP_400_BAD_REQUEST, str(exc))
        except SessionNotReady:
            return _error(
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "The WhatsApp client is not ready yet.",
            )
        except SendFailure as exc:
            logger.exception(
                "Failed to send media message",
                extra={"phone": phone, "file_url": fileUrl},
            )
            return _error(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "Failed to send the media message",
                details=str(exc),
            )
        return {"success": True, "message": "Message and media sent successfully"}

    @app.get("/statusinstancias", response_class=HTMLResponse)
    async def instance_status(request: Request) -> HTMLResponse:
        """HTML snippet with the instance status and a close control."""
        state_container: AppContainer = request.app.state.container
        current = state_container.session_manager.status()
        return HTMLResponse(render_instance_status(current.is_ready))

    return app


def _require(**params: str | None) -> None:
    """Raise when any required query parameter is missing or empty."""
    missing = [name for name, value in params.items() if not value]
    if missing:
        names = ", ".join(params)
        raise InvalidRequest(f"The parameters {names} are required")


def _startup_failure(error: BaseException) -> JSONResponse:
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Could not initialize the WhatsApp client",
        details=str(error),
        stack="".join(traceback.format_exception(error)),
    )


def _error(status_code: int, error: str, **extra: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, **extra})
