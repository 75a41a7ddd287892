"""Snov.io client.

All search endpoints are asynchronous: a `start` call returns a task hash and
the result is polled until the task completes (2s interval, 15 attempts).
Auth is OAuth client-credentials through OAuthTokenProvider.

Rate limit: 60 requests per minute.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import httpx
from loguru import logger

from lib.providers.base import (
    DomainSearchResponse,
    EmailFinderResponse,
    ProviderContact,
    ProviderError,
    VerificationResponse,
    json_or_raise,
)
from lib.providers.oauth import OAuthTokenProvider

API_BASE = "https://api.snov.io"
TOKEN_URL = f"{API_BASE}/v1/oauth/access_token"

POLL_INTERVAL = 2.0
MAX_POLL_ATTEMPTS = 15

DONE_STATUSES = ("completed", "ready")
FAILED_STATUSES = ("error", "failed")


def map_smtp_status(smtp_status: Optional[str]) -> str:
    status = (smtp_status or "").lower()
    if status == "valid":
        return "valid"
    if status == "invalid":
        return "invalid"
    if status in ("risky", "catch-all", "catch_all"):
        return "risky"
    return "unknown"


class SnovClient:
    name = "snov"

    def __init__(
        self,
        client: httpx.AsyncClient,
        tokens: OAuthTokenProvider,
        domain_search_cost_cents: int = 1,
        finder_cost_cents: int = 1,
        verify_cost_cents: int = 1,
        timeout: float = 15.0,
        poll_interval: float = POLL_INTERVAL,
        max_poll_attempts: int = MAX_POLL_ATTEMPTS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._client = client
        self.tokens = tokens
        self.domain_search_cost_cents = domain_search_cost_cents
        self.finder_cost_cents = finder_cost_cents
        self.verify_cost_cents = verify_cost_cents
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self._sleep = sleep

    async def _request(self, method: str, path: str, body: Optional[dict] = None) -> dict:
        url = path if path.startswith("http") else f"{API_BASE}{path}"
        for attempt in range(2):
            token = await self.tokens.get_token()
            try:
                resp = await self._client.request(
                    method,
                    url,
                    json=body if method == "POST" else None,
                    headers={"Authorization": f"Bearer {token}"},
                    timeout=self.timeout,
                )
            except httpx.HTTPError as e:
                raise ProviderError(self.name, f"{path} request failed: {type(e).__name__}") from e
            if resp.status_code == 401 and attempt == 0:
                self.tokens.invalidate()
                continue
            return json_or_raise(self.name, resp)
        raise ProviderError(self.name, f"{path} unauthorized")

    async def _start(self, path: str, body: dict) -> str:
        data = await self._request("POST", path, body)
        task_hash = (data.get("meta") or {}).get("task_hash") or data.get("task_hash")
        if not task_hash:
            raise ProviderError(self.name, f"{path} returned no task hash")
        return task_hash

    async def _poll(self, path: str) -> dict:
        for _ in range(self.max_poll_attempts):
            result = await self._request("GET", path)
            status = (result.get("status") or "").lower()
            if not status or status in DONE_STATUSES:
                return result
            if status in FAILED_STATUSES:
                raise ProviderError(self.name, f"task failed: {status}")
            await self._sleep(self.poll_interval)
        raise ProviderError(self.name, f"task not ready after {self.max_poll_attempts} polls")

    async def domain_search(self, domain: str) -> DomainSearchResponse:
        task_hash = await self._start("/v2/domain-search/domain-emails/start", {"domain": domain})
        result = await self._poll(f"/v2/domain-search/domain-emails/result/{task_hash}")
        items = result.get("data") if isinstance(result.get("data"), list) else []
        contacts = [
            ProviderContact(
                email=item["email"],
                first_name=item.get("first_name") or None,
                last_name=item.get("last_name") or None,
                position=item.get("position") or None,
                metadata={"source_url": item.get("source_url"), "smtp_status": item.get("smtp_status")},
            )
            for item in items
            if item.get("email")
        ]
        logger.debug(f"Snov domain search {domain}: {len(contacts)} emails")
        return DomainSearchResponse(contacts=contacts, cost_cents=self.domain_search_cost_cents)

    async def find_email(self, first_name: str, last_name: str, domain: str) -> EmailFinderResponse:
        task_hash = await self._start("/v2/emails-by-domain-by-name/start", {
            "items": [{"first_name": first_name, "last_name": last_name, "domain": domain}],
        })
        result = await self._poll(f"/v2/emails-by-domain-by-name/result?task_hash={task_hash}")
        items = result.get("data") if isinstance(result.get("data"), list) else []
        item = items[0] if items else {}
        return EmailFinderResponse(
            email=item.get("email") or None,
            status=map_smtp_status(item.get("smtp_status")) if item.get("email") else None,
            cost_cents=self.finder_cost_cents,
        )

    async def verify_email(self, email: str) -> VerificationResponse:
        task_hash = await self._start("/v2/email-verification/start", {"emails": [email]})
        result = await self._poll(f"/v2/email-verification/result?task_hash={task_hash}")
        items = result.get("data") if isinstance(result.get("data"), list) else []
        if not items:
            return VerificationResponse(status="unknown", cost_cents=self.verify_cost_cents)
        item = items[0]
        return VerificationResponse(
            status=map_smtp_status(item.get("smtp_status")),
            raw_status=item.get("smtp_status"),
            free_email=item.get("is_webmail"),
            disposable=item.get("is_disposable"),
            cost_cents=self.verify_cost_cents,
        )
