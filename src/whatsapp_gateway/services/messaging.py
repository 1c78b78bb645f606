"""Outbound text and media sends funneled through the dispatch queue."""

import logging
from dataclasses import dataclass

from whatsapp_gateway.adapters.media_client import MediaClient
from whatsapp_gateway.adapters.whatsapp_client import WhatsAppClient
from whatsapp_gateway.domain.messages import MediaPayload, SendReceipt, chat_id_for
from whatsapp_gateway.services.dispatch import DispatchJob, DispatchQueue

_logger = logging.getLogger(__name__)


@dataclass
class MessagingService:
    """Builds send jobs and waits for the queue to run them."""

    dispatch_queue: DispatchQueue
    media_client: MediaClient

    async def send_text(self, phone: str, message: str) -> SendReceipt:
        """Send a text message to a phone number."""
        return await self.dispatch_queue.run(text_job(chat_id_for(phone), message))

    async def send_media(self, phone: str, message: str, file_url: str) -> SendReceipt:
        """Send a text message followed by the media found at ``file_url``."""
        job = media_job(self.media_client, chat_id_for(phone), message, file_url)
        return await self.dispatch_queue.run(job)


def text_job(chat_id: str, message: str) -> DispatchJob:
    """Return a job that sends a single text message."""

    async def run(client: WhatsAppClient) -> SendReceipt:
        await client.send_message(chat_id, message)
        _logger.info("Sent text message to %s", chat_id)
        return SendReceipt(chat_id=chat_id, parts=1)

    return run


def media_job(
    media_client: MediaClient, chat_id: str, message: str, file_url: str
) -> DispatchJob:
    """Return a job that fetches media, then sends the text and the media."""

    async def run(client: WhatsAppClient) -> SendReceipt:
        fetched = await media_client.fetch(file_url)
        media = MediaPayload.from_fetched(fetched)
        await client.send_message(chat_id, message)
        await client.send_message(chat_id, media)
        _logger.info(
            "Sent text and media %s (%s) to %s",
            media.filename,
            media.mimetype,
            chat_id,
        )
        return SendReceipt(chat_id=chat_id, parts=2)

    return run
