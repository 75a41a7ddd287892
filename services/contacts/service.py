"""Contact finder job service.

One job = one prospect: scrape for free, hand the seed to the intelligence
orchestrator, then persist the selected, non-blocked contacts. When nothing
is found, editor@ / contact@ guesses go through the same selection and
validation as real candidates. Persistence
failures are per-contact; anything else propagates so the queue retries.
"""

import time
from typing import Optional

import httpx
from loguru import logger
from pydantic import BaseModel, Field

from infra.cache_store import ICacheStore
from lib.contact_discovery.cascade import ScrapingCascade
from lib.contact_discovery.email_checks import extract_domain
from lib.contact_discovery.fetcher import PageFetcher
from lib.contact_discovery.models import CandidateContact, ContactSource, ScoredContact
from lib.contact_discovery.scoring import (
    DEFAULT_POLICY,
    ScoringPolicy,
    analyze_contact_quality,
    score_and_rank_contacts,
    select_best_contacts,
)
from lib.providers.registry import build_providers
from services.contacts.cache import ContactCache
from services.contacts.config import PipelineSettings
from services.contacts.email_validation import EmailValidator
from services.contacts.intelligence import ContactIntelligence
from services.contacts.repo import IBlocklist, IContactRepo

PATTERN_PREFIXES = ("editor", "contact")


class ContactJob(BaseModel):
    """Queue payload: {domain, url, prospectId}."""

    prospect_id: str = Field(alias="prospectId")
    domain: Optional[str] = None
    url: Optional[str] = None

    model_config = {"populate_by_name": True}

    def resolved_domain(self) -> Optional[str]:
        return extract_domain(self.domain or "") or extract_domain(self.url or "")


class JobResult(BaseModel):
    found: int = 0
    prospect_id: str
    contacts: list[ScoredContact] = []
    sources_used: list[str] = []
    total_cost_cents: int = 0
    cached: bool = False
    needs_manual_search: bool = False


def pattern_contacts(domain: str, policy: ScoringPolicy = DEFAULT_POLICY) -> list[ScoredContact]:
    """Guessed editor@ / contact@ addresses, scored like any other source."""
    guesses = [
        CandidateContact(email=f"{prefix}@{domain}", source=ContactSource.PATTERN)
        for prefix in PATTERN_PREFIXES
    ]
    return score_and_rank_contacts(guesses, policy)


class ContactFinderService:
    """Runs the whole pipeline for one job."""

    def __init__(
        self,
        cascade: ScrapingCascade,
        intelligence: ContactIntelligence,
        repo: IContactRepo,
        blocklist: IBlocklist,
        validator: EmailValidator,
        pattern_fallback: bool = True,
        policy: ScoringPolicy = DEFAULT_POLICY,
    ):
        self.cascade = cascade
        self.intelligence = intelligence
        self.repo = repo
        self.blocklist = blocklist
        self.validator = validator
        self.pattern_fallback = pattern_fallback
        self.policy = policy

    async def process_job(self, job: ContactJob) -> JobResult:
        domain = job.resolved_domain()
        if not domain:
            raise ValueError(f"Job for prospect {job.prospect_id} has no usable domain or url")
        tag = f"[{domain}]"
        t0 = time.monotonic()
        logger.info(f"{tag} Finding contacts (prospect={job.prospect_id})")

        scraped = await self.cascade.find_by_scraping(domain, job.url)
        result = await self.intelligence.find_contacts(domain, job.url, scraped)

        contacts = list(result.contacts)
        sources = list(result.sources_used)
        if not contacts and self.pattern_fallback:
            logger.warning(f"{tag} No contacts found, using pattern fallback")
            contacts = await self._validated_patterns(domain, tag)
            sources.append("pattern")

        saved: list[ScoredContact] = []
        for contact in contacts:
            if await self.blocklist.is_email_blocked(contact.email):
                logger.debug(f"{tag} Skipping blocked email: {contact.email}")
                continue
            try:
                await self.repo.create(job.prospect_id, contact)
            except Exception as e:
                logger.warning(f"{tag} Failed to save contact {contact.email}: {type(e).__name__}: {e}")
                continue
            saved.append(contact)
            logger.info(f"{tag} Saved {contact.email} ({contact.tier}, score={contact.confidence_score})")

        elapsed = time.monotonic() - t0
        quality = analyze_contact_quality(saved, self.policy)
        if saved:
            logger.info(
                f"{tag} Found {len(saved)} contacts (cost={result.total_cost_cents}c, "
                f"sources={','.join(sources)}, best={quality['best_contact_tier']}) [{elapsed:.1f}s]"
            )
        else:
            logger.warning(f"{tag} No contacts saved [{elapsed:.1f}s]")

        return JobResult(
            found=len(saved),
            prospect_id=job.prospect_id,
            contacts=saved,
            sources_used=sources,
            total_cost_cents=result.total_cost_cents,
            cached=result.cached,
            needs_manual_search=quality["needs_manual_search"],
        )

    async def _validated_patterns(self, domain: str, tag: str) -> list[ScoredContact]:
        guesses = select_best_contacts(pattern_contacts(domain, self.policy), policy=self.policy)
        validations = await self.validator.validate_emails_batch([c.email for c in guesses])
        kept = []
        for contact, validation in zip(guesses, validations):
            if validation.status == "invalid":
                logger.info(f"{tag} Dropping pattern guess {contact.email}: {validation.reason or 'invalid'}")
                continue
            kept.append(contact.model_copy(update={"verification_status": validation.status}))
        return kept


def create_contact_finder(
    settings: PipelineSettings,
    client: httpx.AsyncClient,
    store: ICacheStore,
    repo: IContactRepo,
    blocklist: IBlocklist,
) -> ContactFinderService:
    """Wire the full pipeline from settings."""
    cache = ContactCache(store, ttl_seconds=settings.cache_ttl_seconds)
    providers = build_providers(settings, client)
    validator = EmailValidator(cache, verifier=providers.verifier)
    intelligence = ContactIntelligence(
        cache,
        providers,
        validator,
        max_cost_cents=settings.max_cost_per_prospect_cents,
        paid_verify_min_score=settings.paid_verify_min_score,
        policy=settings.scoring,
    )
    fetcher = PageFetcher(
        client,
        timeout=settings.http_timeout_seconds,
        max_retries=settings.fetch_max_retries,
    )
    cascade = ScrapingCascade(fetcher, search_delay=settings.search_delay_seconds)
    return ContactFinderService(
        cascade,
        intelligence,
        repo,
        blocklist,
        validator,
        pattern_fallback=settings.pattern_fallback,
        policy=settings.scoring,
    )
