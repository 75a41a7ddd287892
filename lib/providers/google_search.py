"""Google Custom Search for professional-network profiles at a domain.

Queries `site:linkedin.com/in "<domain>"` with decision-maker keywords and
turns result titles ("Jane Doe - Editor - Acme | LinkedIn") into profiles.
"""

import re
from typing import Optional

import httpx
from loguru import logger

from lib.providers.base import PeopleSearchResponse, PersonProfile, ProviderError, json_or_raise

API_URL = "https://www.googleapis.com/customsearch/v1"

QUERY_TEMPLATE = 'site:linkedin.com/in "{domain}" (founder OR CEO OR editor OR "content director")'

TITLE_SPLIT = re.compile(r"\s+[-–|]\s+")


def parse_profile_title(title: str) -> tuple[Optional[str], Optional[str]]:
    """("Jane Doe - Editor at Acme | LinkedIn") -> ("Jane Doe", "Editor at Acme")."""
    parts = [p.strip() for p in TITLE_SPLIT.split(title or "") if p.strip()]
    parts = [p for p in parts if p.lower() != "linkedin"]
    if not parts:
        return None, None
    name = parts[0]
    if len(name.split()) < 2:
        return None, None
    return name, parts[1] if len(parts) > 1 else None


class GoogleLinkedInSearch:
    name = "google_linkedin_search"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        cx: str,
        people_search_cost_cents: int = 5,
        timeout: float = 15.0,
        num: int = 5,
    ):
        self._client = client
        self.api_key = api_key
        self.cx = cx
        self.people_search_cost_cents = people_search_cost_cents
        self.timeout = timeout
        self.num = num

    async def search_people(self, domain: str) -> PeopleSearchResponse:
        try:
            resp = await self._client.get(
                API_URL,
                params={
                    "key": self.api_key,
                    "cx": self.cx,
                    "q": QUERY_TEMPLATE.format(domain=domain),
                    "num": self.num,
                },
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request failed: {type(e).__name__}") from e
        data = json_or_raise(self.name, resp)

        people = []
        for item in data.get("items") or []:
            link = item.get("link") or ""
            if "linkedin.com/in/" not in link:
                continue
            name, title = parse_profile_title(item.get("title", ""))
            if not name:
                continue
            people.append(PersonProfile(
                name=name,
                title=title,
                linkedin_url=link,
                metadata={"snippet": item.get("snippet", "")[:200]},
            ))
        logger.debug(f"Google CSE found {len(people)} profiles for {domain}")
        return PeopleSearchResponse(people=people, cost_cents=self.people_search_cost_cents)
