"""HTTP transport for fetching raw feed documents."""

import json
import logging
from urllib.parse import quote

import httpx

from newsdeck.errors import FeedError, HttpStatusError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0
USER_AGENT = "newsdeck/0.1 (RSS aggregator)"

# Keys under which JSON proxy services wrap the upstream body.
_ENVELOPE_KEYS = ("contents", "body", "data")


class Transport:
    """Fetches feed documents directly or through a chain of proxies.

    Each proxy is a URL prefix; the percent-encoded target URL is appended to
    it. Proxies are tried in order and the first response that looks like a
    feed wins.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        proxies: list[str] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        )
        self._owns_client = client is None
        self.proxies = list(proxies or [])

    async def fetch_remote(self, url: str) -> str:
        """Return the body of the feed at url.

        Raises:
            TransportError: On network failures or unusable proxy responses.
            HttpStatusError: When the last attempted endpoint answered non-2xx.
        """
        if not self.proxies:
            return await self._get(url)

        last_error: FeedError | None = None
        for index, proxy in enumerate(self.proxies, start=1):
            logger.debug("Trying proxy %d/%d for %s", index, len(self.proxies), url)
            try:
                body = _unwrap_envelope(await self._get(f"{proxy}{quote(url, safe='')}"))
            except FeedError as e:
                logger.debug("Proxy %s failed for %s: %s", proxy, url, e)
                last_error = e
                continue

            if _looks_like_feed(body):
                return body
            last_error = TransportError(f"Invalid response format from proxy {proxy}")

        raise last_error

    async def _get(self, url: str) -> str:
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise TransportError(f"Could not reach {url}: {e}") from e

        if not response.is_success:
            raise HttpStatusError(response.status_code, url)
        return response.text

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _unwrap_envelope(body: str) -> str:
    """Extract the upstream document from a JSON proxy envelope, if any."""
    stripped = body.lstrip()
    if not stripped.startswith("{"):
        return body
    try:
        payload = json.loads(stripped)
    except ValueError:
        return body
    if isinstance(payload, dict):
        for key in _ENVELOPE_KEYS:
            if isinstance(payload.get(key), str):
                return payload[key]
    return body


def _looks_like_feed(body: str) -> bool:
    head = body[:2048].lower()
    return "<rss" in head or "<feed" in head or "<rdf:rdf" in head
