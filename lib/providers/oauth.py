"""OAuth client-credentials token provider.

One instance per credential pair. The token is fetched lazily, reused until
shortly before it expires, and refreshed by a single caller at a time even
when many workers ask concurrently.
"""

import asyncio
import time
from typing import Callable, Optional

import httpx
from loguru import logger

from lib.providers.base import ProviderError, json_or_raise

EXPIRY_BUFFER_SECONDS = 60
DEFAULT_EXPIRES_IN = 3600


class OAuthTokenProvider:
    def __init__(
        self,
        client: httpx.AsyncClient,
        token_url: str,
        client_id: str,
        client_secret: str,
        provider: str = "oauth",
        timeout: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self.token_url = token_url
        self.client_id = client_id
        self.client_secret = client_secret
        self.provider = provider
        self.timeout = timeout
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()
        self.refresh_count = 0

    def _valid(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at - EXPIRY_BUFFER_SECONDS

    async def get_token(self) -> str:
        """Return a live access token, refreshing it if needed."""
        if self._valid():
            return self._token
        async with self._lock:
            # Another caller may have refreshed while we waited
            if self._valid():
                return self._token
            await self._refresh()
            return self._token

    def invalidate(self) -> None:
        """Forget the cached token (e.g. after a 401)."""
        self._token = None
        self._expires_at = 0.0

    async def _refresh(self) -> None:
        try:
            resp = await self._client.post(
                self.token_url,
                json={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                },
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise ProviderError(self.provider, f"token request failed: {type(e).__name__}") from e

        data = json_or_raise(self.provider, resp)
        token = data.get("access_token")
        if not token:
            raise ProviderError(self.provider, "token response missing access_token")

        self._token = token
        self._expires_at = self._clock() + float(data.get("expires_in") or DEFAULT_EXPIRES_IN)
        self.refresh_count += 1
        logger.debug(f"{self.provider}: refreshed access token (expires in {data.get('expires_in')}s)")
