"""HTTP client for downloading media attachments."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from whatsapp_gateway.domain.errors import MediaFetchError
from whatsapp_gateway.domain.messages import FetchedMedia

DEFAULT_CONTENT_TYPE = "application/octet-stream"
DEFAULT_FILENAME = "file"


class MediaClient(Protocol):
    """Interface for fetching media by URL."""

    async def fetch(self, url: str) -> FetchedMedia:
        """Download a file and return its bytes with metadata."""


@dataclass
class HttpxMediaClient(MediaClient):
    """Media client implemented with httpx."""

    http_client: httpx.AsyncClient
    timeout_seconds: float = 30.0

    @classmethod
    def create(cls, timeout_seconds: float = 30.0) -> "HttpxMediaClient":
        """Create a media client with a managed httpx session."""
        return cls(
            http_client=httpx.AsyncClient(follow_redirects=True),
            timeout_seconds=timeout_seconds,
        )

    async def fetch(self, url: str) -> FetchedMedia:
        """Download the whole file into memory."""
        try:
            response = await self.http_client.get(url, timeout=self.timeout_seconds)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise MediaFetchError(f"Could not download {url}: {exc}") from exc
        return FetchedMedia(
            content_type=_content_type(response.headers.get("content-type")),
            content=response.content,
            filename=filename_from_url(url),
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def filename_from_url(url: str) -> str:
    """Return the last path segment of a URL."""
    path = httpx.URL(url).path
    return path.rstrip("/").rsplit("/", 1)[-1] or DEFAULT_FILENAME


def _content_type(header: str | None) -> str:
    if not header:
        return DEFAULT_CONTENT_TYPE
    return header.split(";", 1)[0].strip() or DEFAULT_CONTENT_TYPE
