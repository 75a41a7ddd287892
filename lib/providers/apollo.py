"""Apollo.io client.

People search at a domain is free (names, titles, LinkedIn URLs, no emails).
Person match reveals the email and costs one credit per call.
"""

import httpx
from loguru import logger

from lib.providers.base import (
    EmailFinderResponse,
    PeopleSearchResponse,
    PersonProfile,
    ProviderError,
    json_or_raise,
)

API_BASE = "https://api.apollo.io/api/v1"


class ApolloClient:
    name = "apollo"
    people_search_cost_cents = 0

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        finder_cost_cents: int = 1,
        timeout: float = 15.0,
        per_page: int = 10,
    ):
        self._client = client
        self.api_key = api_key
        self.finder_cost_cents = finder_cost_cents
        self.timeout = timeout
        self.per_page = per_page

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Cache-Control": "no-cache",
            "x-api-key": self.api_key,
        }

    async def _post(self, path: str, **kwargs) -> dict:
        try:
            resp = await self._client.post(
                f"{API_BASE}{path}", headers=self._headers(), timeout=self.timeout, **kwargs,
            )
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"{path} request failed: {type(e).__name__}") from e
        return json_or_raise(self.name, resp)

    async def search_people(self, domain: str) -> PeopleSearchResponse:
        data = await self._post("/mixed_people/search", json={
            "q_organization_domains": domain,
            "page": 1,
            "per_page": self.per_page,
        })
        people = [
            PersonProfile(
                name=f"{p['first_name']} {p['last_name']}",
                first_name=p["first_name"],
                last_name=p["last_name"],
                title=p.get("title") or None,
                linkedin_url=p.get("linkedin_url") or None,
                metadata={"apollo_id": p.get("id")},
            )
            for p in data.get("people") or []
            if p.get("first_name") and p.get("last_name")
        ]
        if people:
            logger.debug(f"Apollo search found {len(people)} people at {domain}")
        return PeopleSearchResponse(people=people, cost_cents=self.people_search_cost_cents)

    async def find_email(self, first_name: str, last_name: str, domain: str) -> EmailFinderResponse:
        data = await self._post("/people/match", params={
            "first_name": first_name,
            "last_name": last_name,
            "domain": domain,
        })
        person = data.get("person") or {}
        return EmailFinderResponse(
            email=person.get("email") or None,
            position=person.get("title") or None,
            linkedin_url=person.get("linkedin_url") or None,
            cost_cents=self.finder_cost_cents,
        )
