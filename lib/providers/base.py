"""Provider protocols and result models.

Every paid (or rate-limited) contact data provider implements one or more of
the small protocols below. Results always carry the cost actually billed so
the caller can keep its ledger honest.
"""

from typing import Any, Optional, Protocol, runtime_checkable

import httpx
from pydantic import BaseModel, Field

VERIFICATION_STATUSES = ("valid", "invalid", "risky", "unknown")


class ProviderError(Exception):
    """A provider call failed (HTTP error, bad payload, task failure)."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class ProviderContact(BaseModel):
    """An email a provider knows about for a domain."""

    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    position: Optional[str] = None
    linkedin_url: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def name(self) -> Optional[str]:
        full = f"{self.first_name or ''} {self.last_name or ''}".strip()
        return full or None


class PersonProfile(BaseModel):
    """A person at a domain, usually without an email yet."""

    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    title: Optional[str] = None
    linkedin_url: Optional[str] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def split_name(self) -> tuple[Optional[str], Optional[str]]:
        if self.first_name and self.last_name:
            return self.first_name, self.last_name
        parts = self.name.split()
        if len(parts) < 2:
            return None, None
        return parts[0], " ".join(parts[1:])


class DomainSearchResponse(BaseModel):
    contacts: list[ProviderContact] = []
    cost_cents: int = 0


class EmailFinderResponse(BaseModel):
    email: Optional[str] = None
    status: Optional[str] = None
    position: Optional[str] = None
    linkedin_url: Optional[str] = None
    cost_cents: int = 0


class VerificationResponse(BaseModel):
    status: str = "unknown"  # valid, invalid, risky, unknown
    raw_status: Optional[str] = None
    smtp_check: Optional[bool] = None
    free_email: Optional[bool] = None
    disposable: Optional[bool] = None
    cost_cents: int = 0


class PeopleSearchResponse(BaseModel):
    people: list[PersonProfile] = []
    cost_cents: int = 0


@runtime_checkable
class DomainSearchProvider(Protocol):
    name: str
    domain_search_cost_cents: int

    async def domain_search(self, domain: str) -> DomainSearchResponse:
        ...


@runtime_checkable
class EmailFinderProvider(Protocol):
    name: str
    finder_cost_cents: int

    async def find_email(self, first_name: str, last_name: str, domain: str) -> EmailFinderResponse:
        ...


@runtime_checkable
class EmailVerifierProvider(Protocol):
    name: str
    verify_cost_cents: int

    async def verify_email(self, email: str) -> VerificationResponse:
        ...


@runtime_checkable
class PeopleSearchProvider(Protocol):
    name: str
    people_search_cost_cents: int

    async def search_people(self, domain: str) -> PeopleSearchResponse:
        ...


def json_or_raise(provider: str, resp: httpx.Response) -> dict:
    """Decode a JSON body, turning HTTP or payload errors into ProviderError."""
    if resp.status_code >= 400:
        raise ProviderError(provider, f"HTTP {resp.status_code}: {resp.text[:200]}")
    try:
        data = resp.json()
    except ValueError as e:
        raise ProviderError(provider, f"invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProviderError(provider, "unexpected payload")
    return data
