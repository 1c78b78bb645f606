"""Domain models for outbound messages."""

import base64
from dataclasses import dataclass

CHAT_ID_SUFFIX = "@c.us"


@dataclass(frozen=True)
class FetchedMedia:
    """A media file downloaded into memory."""

    content_type: str
    content: bytes
    filename: str


@dataclass(frozen=True)
class MediaPayload:
    """Media ready to be attached to a WhatsApp chat."""

    mimetype: str
    data: str
    filename: str

    @classmethod
    def from_fetched(cls, media: FetchedMedia) -> "MediaPayload":
        """Build a base64 payload from downloaded media."""
        return cls(
            mimetype=media.content_type,
            data=base64.b64encode(media.content).decode("ascii"),
            filename=media.filename,
        )

    def content(self) -> bytes:
        """Return the decoded media bytes."""
        return base64.b64decode(self.data)


@dataclass(frozen=True)
class SendReceipt:
    """Result of a completed dispatch job."""

    chat_id: str
    parts: int


def chat_id_for(phone: str) -> str:
    """Return the WhatsApp chat id for a phone number."""
    return f"{phone}{CHAT_ID_SUFFIX}"


def phone_from_chat_id(chat_id: str) -> str:
    """Return the digits of a chat id, dropping the transport suffix."""
    phone = chat_id.removesuffix(CHAT_ID_SUFFIX)
    return "".join(char for char in phone if char.isdigit())
