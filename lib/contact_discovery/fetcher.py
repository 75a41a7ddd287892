"""HTTP page fetching with bounded retries.

Timeouts, connection errors and 5xx responses are retried with exponential
backoff (max 2 retries by default). 4xx responses are final. A fetch that is
cancelled by the overall timeout counts as a transient failure, never as a
success.
"""

import asyncio
from typing import Optional

import httpx
from loguru import logger

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

DEFAULT_TIMEOUT = 20.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_BACKOFF = 1.0


class PageFetcher:
    """Fetches HTML pages over a shared httpx client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff: float = DEFAULT_BACKOFF,
    ):
        self._client = client
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff = backoff

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def fetch(
        self,
        url: str,
        params: Optional[dict] = None,
        require_html: bool = True,
    ) -> Optional[str]:
        """Fetch a page body, or None when the page is unavailable."""
        for attempt in range(self.max_retries + 1):
            try:
                resp = await asyncio.wait_for(
                    self._client.get(
                        url,
                        params=params,
                        headers=BROWSER_HEADERS,
                        timeout=self.timeout,
                        follow_redirects=True,
                    ),
                    timeout=self.timeout + 1.0,
                )
            except (
                httpx.TimeoutException,
                httpx.NetworkError,
                httpx.RemoteProtocolError,
                asyncio.TimeoutError,
            ) as e:
                if attempt < self.max_retries:
                    logger.debug(
                        f"Retrying {url} after {type(e).__name__} "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(self.backoff * (2 ** attempt))
                    continue
                logger.debug(f"Failed to fetch {url}: {type(e).__name__}")
                return None
            except httpx.HTTPError as e:
                logger.debug(f"Failed to fetch {url}: {e}")
                return None

            if 400 <= resp.status_code < 500:
                return None
            if resp.status_code >= 500:
                if attempt < self.max_retries:
                    logger.debug(
                        f"Retrying {url} after HTTP {resp.status_code} "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(self.backoff * (2 ** attempt))
                    continue
                return None
            if resp.status_code != 200:
                return None

            if require_html:
                content_type = resp.headers.get("content-type", "")
                if "text/html" not in content_type:
                    return None
            return resp.text
        return None
