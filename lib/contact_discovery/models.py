"""Data models for the contact discovery pipeline."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class ContactSource(str, Enum):
    """Where a candidate contact came from."""

    SCRAPED = "scraped"
    SCRAPED_AUTHOR = "scraped_author"
    SCRAPED_TEAM_PAGE = "scraped_team_page"
    DOMAIN_SEARCH = "domain_search"
    NAME_SEARCH = "name_search"
    LINKEDIN_SEARCH = "linkedin_search"
    PATTERN = "pattern"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CandidateContact(BaseModel):
    """A contact harvested by the cascade or a paid provider."""

    email: str
    name: Optional[str] = None
    title: Optional[str] = None
    role: Optional[str] = None
    linkedin_url: Optional[str] = None
    # Plain strings are accepted so older cached payloads still load
    source: str = ContactSource.SCRAPED.value
    source_metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("source", mode="before")
    @classmethod
    def _source_value(cls, v):
        if isinstance(v, ContactSource):
            return v.value
        return v

    @property
    def local_part(self) -> str:
        return self.email.split("@", 1)[0]


class ScoreBreakdown(BaseModel):
    base_score: int
    title_bonus: int
    source_bonus: int
    linkedin_bonus: int
    role_penalty: int
    final_score: int


class ScoredContact(CandidateContact):
    """CandidateContact plus score, tier and (after validation) status."""

    confidence_score: int
    score_breakdown: ScoreBreakdown
    tier: str
    verification_status: Optional[str] = None


class DomainSearchResult(BaseModel):
    """Cached outcome of a full contact search for one domain."""

    domain: str
    contacts: list[ScoredContact] = []
    total_found: int = 0
    searched_at: datetime = Field(default_factory=_utcnow)


class EmailVerificationRecord(BaseModel):
    """Cached verification outcome, keyed by email alone."""

    email: str
    status: str  # valid, invalid, risky, unknown
    score: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)
    verified_at: datetime = Field(default_factory=_utcnow)


class NameLookupRecord(BaseModel):
    """Cached name + domain -> email resolution."""

    email: str
    name: str
    domain: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    found_at: datetime = Field(default_factory=_utcnow)


class EmailValidationResult(BaseModel):
    email: str
    status: str
    score: int
    deliverable: bool
    mx_records_exist: bool = False
    free_email: Optional[bool] = None
    disposable: Optional[bool] = None
    role_email: Optional[bool] = None
    smtp_check: Optional[bool] = None
    reason: Optional[str] = None
    api_cost_cents: int = 0
    method: str = "dns_only"  # cache, pattern_only, dns_only, paid_api


class ContactSearchResult(BaseModel):
    """Output of the intelligence orchestrator for one domain."""

    contacts: list[ScoredContact] = []
    total_found: int = 0
    sources_used: list[str] = []
    total_cost_cents: int = 0
    cached: bool = False

    @property
    def found_any(self) -> bool:
        return len(self.contacts) > 0


class CostLedger:
    """Per-run spend accumulator. Checked before every billable call."""

    def __init__(self, limit_cents: int):
        self.limit_cents = limit_cents
        self.spent_cents = 0
        self.entries: list[tuple[str, int]] = []

    def can_spend(self) -> bool:
        return self.spent_cents < self.limit_cents

    @property
    def remaining_cents(self) -> int:
        return max(0, self.limit_cents - self.spent_cents)

    def charge(self, cents: int, label: str) -> None:
        if cents <= 0:
            return
        self.spent_cents += cents
        self.entries.append((label, cents))

    def __repr__(self) -> str:
        return f"CostLedger(spent={self.spent_cents}, limit={self.limit_cents})"
