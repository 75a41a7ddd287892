"""Hunter.io client: domain search, email finder, email verifier.

Pricing (approximate, per call):
  domain search   5¢
  email finder    1¢ (billed even when nothing is found)
  verification    1¢
"""

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

API_BASE = "https://api.hunter.io/v2"

STATUS_MAP = {
    "valid": "valid",
    "invalid": "invalid",
    "risky": "risky",
    "accept_all": "risky",
    "webmail": "risky",
    "disposable": "invalid",
    "unknown": "unknown",
}


class HunterClient:
    name = "hunter"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        domain_search_cost_cents: int = 5,
        finder_cost_cents: int = 1,
        verify_cost_cents: int = 1,
        timeout: float = 20.0,
        limit: int = 10,
    ):
        self._client = client
        self.api_key = api_key
        self.domain_search_cost_cents = domain_search_cost_cents
        self.finder_cost_cents = finder_cost_cents
        self.verify_cost_cents = verify_cost_cents
        self.timeout = timeout
        self.limit = limit

    async def _get(self, path: str, params: dict) -> dict:
        try:
            resp = await self._client.get(
                f"{API_BASE}{path}",
                params={**params, "api_key": self.api_key},
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"{path} request failed: {type(e).__name__}") from e
        return json_or_raise(self.name, resp)

    async def domain_search(self, domain: str) -> DomainSearchResponse:
        data = await self._get("/domain-search", {"domain": domain, "limit": self.limit})
        emails = (data.get("data") or {}).get("emails") or []
        contacts = [
            ProviderContact(
                email=e["value"],
                first_name=e.get("first_name"),
                last_name=e.get("last_name"),
                position=e.get("position"),
                linkedin_url=e.get("linkedin"),
                metadata={
                    "hunter_confidence": e.get("confidence"),
                    "department": e.get("department"),
                },
            )
            for e in emails
            if e.get("value")
        ]
        logger.debug(f"Hunter domain search {domain}: {len(contacts)} emails")
        return DomainSearchResponse(contacts=contacts, cost_cents=self.domain_search_cost_cents)

    async def find_email(self, first_name: str, last_name: str, domain: str) -> EmailFinderResponse:
        data = await self._get("/email-finder", {
            "domain": domain,
            "first_name": first_name,
            "last_name": last_name,
        })
        found = data.get("data") or {}
        return EmailFinderResponse(
            email=found.get("email"),
            position=found.get("position"),
            linkedin_url=found.get("linkedin_url"),
            cost_cents=self.finder_cost_cents,
        )

    async def verify_email(self, email: str) -> VerificationResponse:
        data = await self._get("/email-verifier", {"email": email})
        result = data.get("data") or {}
        raw = (result.get("status") or "unknown").lower()
        return VerificationResponse(
            status=STATUS_MAP.get(raw, "unknown"),
            raw_status=raw,
            smtp_check=result.get("smtp_check"),
            free_email=result.get("webmail"),
            disposable=result.get("disposable"),
            cost_cents=self.verify_cost_cents,
        )
