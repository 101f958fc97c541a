"""Bounded HTTPS download of candidate icon images.

Only https URLs are accepted; anything else is rejected before a connection
is attempted. Redirects are followed, but a hop to a non-https URL
is rejected the same way. Connect and read are each limited to FETCH_TIMEOUT seconds.
A 200 response with an image/* content type is required. Size is checked
twice: against the declared Content-Length before reading the body, and
against the bytes actually received while streaming, aborting the transfer
as soon as MAX_IMAGE_BYTES is exceeded.

The content type is only what the server claims. Decoding in the ingestion
pipeline is what actually validates the payload.
"""

import httpx
from loguru import logger

from .errors import RemoteError, SchemeRejected, Timeout, TooLarge, UnsupportedContentType

FETCH_TIMEOUT = 5.0
MAX_IMAGE_BYTES = 5 * 1024 * 1024
USER_AGENT = "Mozilla/5.0 (compatible; iconic)"


def check_url(url: str) -> httpx.URL:
    """Parse `url` and require the https scheme. Raises SchemeRejected."""
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as e:
        raise SchemeRejected(f"Invalid URL {url!r}: {e}") from e
    if parsed.scheme != "https" or not parsed.host:
        raise SchemeRejected("URL must use HTTPS.")
    return parsed


async def _require_https(request: httpx.Request) -> None:
    """Request hook: every redirect hop must stay on https."""
    if request.url.scheme != "https":
        raise SchemeRejected(f"Refusing redirect to non-HTTPS URL {request.url}")


class RemoteFetcher:
    """Downloads image bytes over HTTPS. Creates and owns an httpx.AsyncClient.

    Redirects are followed as long as every hop is https.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, max_bytes: int = MAX_IMAGE_BYTES):
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(FETCH_TIMEOUT),
            headers={"User-Agent": USER_AGENT},
        )
        self.client.event_hooks["request"].append(_require_https)
        self.max_bytes = max_bytes

    async def fetch(self, url: str) -> bytes:
        """Download `url` and return its body. Raises a FetchError subclass on any failure."""
        parsed = check_url(url)
        try:
            async with self.client.stream("GET", parsed, follow_redirects=True) as response:
                self._check_response(response)
                return await self._read_capped(response)
        except httpx.TimeoutException as e:
            raise Timeout(f"Timed out fetching {url}: {e}") from e
        except httpx.HTTPError as e:
            raise RemoteError(f"Request to {url} failed: {e}") from e

    def _check_response(self, response: httpx.Response) -> None:
        if response.status_code != 200:
            raise RemoteError(
                f"Failed to download image. HTTP response code: {response.status_code}",
                status=response.status_code,
            )
        content_type = response.headers.get("Content-Type", "")
        if not content_type.startswith("image/"):
            raise UnsupportedContentType(content_type)
        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > self.max_bytes:
            raise TooLarge(int(declared), self.max_bytes)

    async def _read_capped(self, response: httpx.Response) -> bytes:
        chunks = []
        received = 0
        async for chunk in response.aiter_bytes():
            received += len(chunk)
            if received > self.max_bytes:
                raise TooLarge(received, self.max_bytes)
            chunks.append(chunk)
        logger.debug(f"Downloaded {received} bytes from {response.url}")
        return b"".join(chunks)

    async def close(self) -> None:
        """Close the httpx client."""
        await self.client.aclose()
