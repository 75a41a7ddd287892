"""Multi-source contact intelligence with a per-prospect spend cap.

Stages run in order, each only while nothing usable has been found and the
run's ledger is still below the cap:
  1. Cache       junk-aware domain cache read (free)
  2. Seed        candidates scraped by the cascade (free)
  3. Domain      paid whole-domain email search (flat fee)
  4. People      professional-network search, then name -> email lookups
                 (each lookup billed whether or not it resolves)

Candidates are then scored, the best two selected and validated, and the
non-junk survivors written back to the cache.

All run state (ledger, candidate list) is local to find_contacts, so one
instance serves concurrent jobs.
"""

import time
from typing import Optional

from loguru import logger

from lib.contact_discovery.email_checks import is_acceptable_candidate
from lib.contact_discovery.models import (
    CandidateContact,
    ContactSearchResult,
    CostLedger,
    ScoredContact,
)
from lib.contact_discovery.scoring import (
    DEFAULT_POLICY,
    ScoringPolicy,
    score_and_rank_contacts,
    select_best_contacts,
)
from lib.providers.base import PersonProfile, ProviderError
from lib.providers.registry import ProviderSet
from services.contacts.cache import ContactCache, is_junk_email
from services.contacts.email_validation import EmailValidator

WEBSITE_SCRAPING = "website_scraping"
MAX_SELECTED = 2


class ContactIntelligence:
    """Cache, free seed, then paid sources, with spend tracked per call."""

    def __init__(
        self,
        cache: ContactCache,
        providers: ProviderSet,
        validator: EmailValidator,
        max_cost_cents: int = 50,
        paid_verify_min_score: int = 70,
        max_name_lookups: int = 5,
        policy: ScoringPolicy = DEFAULT_POLICY,
    ):
        self.cache = cache
        self.providers = providers
        self.validator = validator
        self.max_cost_cents = max_cost_cents
        self.paid_verify_min_score = paid_verify_min_score
        self.max_name_lookups = max_name_lookups
        self.policy = policy

    async def find_contacts(
        self,
        domain: str,
        url: Optional[str] = None,
        scraped_seed: Optional[list[CandidateContact]] = None,
    ) -> ContactSearchResult:
        domain = domain.strip().lower()
        tag = f"[{domain}]"
        t0 = time.monotonic()

        # 1. Cache
        cached = await self.cache.get_clean_domain_search(domain)
        if cached:
            logger.info(f"{tag} [1/4 cache] HIT: {len(cached)} clean contacts")
            return ContactSearchResult(
                contacts=cached,
                total_found=len(cached),
                sources_used=["cache"],
                total_cost_cents=0,
                cached=True,
            )

        ledger = CostLedger(self.max_cost_cents)
        candidates: list[CandidateContact] = []
        sources_used: list[str] = []

        # 2. Free seed
        if scraped_seed:
            _merge(candidates, scraped_seed)
            if candidates:
                sources_used.append(WEBSITE_SCRAPING)
                logger.info(f"{tag} [2/4 seed] {len(candidates)} scraped candidates")

        # 3. Paid domain search
        if not candidates:
            if not ledger.can_spend():
                logger.info(f"{tag} [3/4 domain] Skipped, budget spent ({ledger})")
            elif self.providers.domain_search is None:
                logger.info(f"{tag} [3/4 domain] Skipped, no domain search provider configured")
            else:
                found, label = await self._domain_search(domain, ledger, tag)
                if found:
                    _merge(candidates, found)
                    sources_used.append(label)

        # 4. People search + name -> email
        if not candidates:
            if not ledger.can_spend():
                logger.info(f"{tag} [4/4 people] Skipped, budget spent ({ledger})")
            elif self.providers.people_search is None:
                logger.info(f"{tag} [4/4 people] Skipped, no people search provider configured")
            else:
                found, labels = await self._people_search(domain, ledger, tag)
                if found:
                    _merge(candidates, found)
                sources_used.extend(labels)

        if not candidates:
            logger.info(
                f"{tag} No contacts found, cost={ledger.spent_cents}c "
                f"[{time.monotonic() - t0:.1f}s]"
            )
            return ContactSearchResult(sources_used=sources_used, total_cost_cents=ledger.spent_cents)

        ranked = score_and_rank_contacts(candidates, self.policy)
        selected = select_best_contacts(ranked, MAX_SELECTED, self.policy)
        final = await self._validate(selected, ledger, tag)

        keep = [c for c in final if not is_junk_email(c.email)]
        if keep:
            await self.cache.cache_domain_search(domain, keep)

        logger.info(
            f"{tag} Search complete: {len(final)}/{len(candidates)} contacts kept, "
            f"cost={ledger.spent_cents}c, sources={','.join(sources_used)} "
            f"[{time.monotonic() - t0:.1f}s]"
        )
        return ContactSearchResult(
            contacts=final,
            total_found=len(candidates),
            sources_used=sources_used,
            total_cost_cents=ledger.spent_cents,
            cached=False,
        )

    async def _domain_search(
        self, domain: str, ledger: CostLedger, tag: str,
    ) -> tuple[list[CandidateContact], str]:
        provider = self.providers.domain_search
        label = f"{provider.name}_domain_search"
        t0 = time.monotonic()
        try:
            resp = await provider.domain_search(domain)
        except ProviderError as e:
            logger.warning(f"{tag} [3/4 domain] {provider.name} failed: {e}")
            return [], label
        ledger.charge(resp.cost_cents, label)
        elapsed = time.monotonic() - t0

        found = [
            CandidateContact(
                email=c.email,
                name=c.name,
                title=c.position,
                role=c.position,
                linkedin_url=c.linkedin_url,
                source=label,
                source_metadata=c.metadata,
            )
            for c in resp.contacts
        ]
        if found:
            logger.info(
                f"{tag} [3/4 domain] HIT: {provider.name} returned {len(found)} "
                f"(cost={resp.cost_cents}c) [{elapsed:.1f}s]"
            )
        else:
            logger.info(f"{tag} [3/4 domain] {provider.name} returned nothing [{elapsed:.1f}s]")
        return found, label

    async def _people_search(
        self, domain: str, ledger: CostLedger, tag: str,
    ) -> tuple[list[CandidateContact], list[str]]:
        search = self.providers.people_search
        t0 = time.monotonic()
        try:
            resp = await search.search_people(domain)
        except ProviderError as e:
            logger.warning(f"{tag} [4/4 people] {search.name} failed: {e}")
            return [], []
        ledger.charge(resp.cost_cents, search.name)

        if not resp.people:
            logger.info(f"{tag} [4/4 people] {search.name} found no profiles [{time.monotonic() - t0:.1f}s]")
            return [], []

        labels = [search.name]
        found: list[CandidateContact] = []
        for person in resp.people[: self.max_name_lookups]:
            if len(found) >= MAX_SELECTED:
                break
            email, meta = await self._resolve_email(person, domain, ledger, tag)
            if not email:
                continue
            label = meta.pop("label", None)
            found.append(CandidateContact(
                email=email,
                name=person.name,
                title=meta.get("position") or person.title,
                role=meta.get("position") or person.title,
                linkedin_url=meta.get("linkedin_url") or person.linkedin_url,
                source=search.name,
                source_metadata={**person.metadata, **meta},
            ))
            if label and label not in labels:
                labels.append(label)

        logger.info(
            f"{tag} [4/4 people] {search.name}: {len(resp.people)} profiles, "
            f"{len(found)} emails resolved ({ledger}) [{time.monotonic() - t0:.1f}s]"
        )
        return found, labels

    async def _resolve_email(
        self, person: PersonProfile, domain: str, ledger: CostLedger, tag: str,
    ) -> tuple[Optional[str], dict]:
        """Name -> email via the name cache, then the paid finder."""
        first, last = person.split_name()
        if not first or not last:
            return None, {}

        hit = await self.cache.get_cached_name_domain_lookup(person.name, domain)
        if hit:
            logger.debug(f"{tag} Name cache HIT: {person.name} -> {hit.email}")
            return hit.email, {**hit.metadata, "label": "name_cache"}

        finder = self.providers.finder
        if finder is None:
            return None, {}
        if not ledger.can_spend():
            logger.info(f"{tag} Budget spent, skipping lookup for {person.name} ({ledger})")
            return None, {}

        label = f"{finder.name}_email_finder"
        ledger.charge(finder.finder_cost_cents, label)
        try:
            resp = await finder.find_email(first, last, domain)
        except ProviderError as e:
            logger.warning(f"{tag} {finder.name} lookup failed for {person.name}: {e}")
            return None, {}
        if not resp.email:
            logger.debug(f"{tag} {finder.name} found no email for {person.name}")
            return None, {}

        meta = {"finder": finder.name}
        if resp.status:
            meta["finder_status"] = resp.status
        if resp.position:
            meta["position"] = resp.position
        if resp.linkedin_url:
            meta["linkedin_url"] = resp.linkedin_url
        await self.cache.cache_name_domain_lookup(person.name, domain, resp.email, meta)
        return resp.email, {**meta, "label": label}

    async def _validate(
        self, selected: list[ScoredContact], ledger: CostLedger, tag: str,
    ) -> list[ScoredContact]:
        final: list[ScoredContact] = []
        for contact in selected:
            allow_paid = ledger.can_spend() and contact.confidence_score >= self.paid_verify_min_score
            try:
                validation = await self.validator.validate_email(contact.email, allow_paid)
            except Exception as e:
                logger.error(f"{tag} Validation failed for {contact.email}: {e}")
                final.append(contact)
                continue
            ledger.charge(validation.api_cost_cents, f"verify:{validation.method}")
            if validation.status == "invalid":
                logger.info(f"{tag} Dropping {contact.email}: {validation.reason or 'invalid'}")
                continue
            final.append(contact.model_copy(update={"verification_status": validation.status}))
        return final


def _merge(into: list[CandidateContact], new: list[CandidateContact]) -> None:
    """Append format-valid candidates not already present (by email)."""
    seen = {c.email for c in into}
    for c in new:
        if c.email in seen or not is_acceptable_candidate(c.email):
            continue
        seen.add(c.email)
        into.append(c)
