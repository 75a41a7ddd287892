"""Contact cache on top of an ICacheStore.

Key families (all lowercased, 30 day TTL by default):
  contact:domain:{domain}              full search result for a domain
  contact:verify:{email}               email verification outcome
  contact:name:{first-last}@{domain}   name + domain -> email resolution

Store failures are logged and read as a miss; the pipeline never stops on
a cache error.
"""

import re
from typing import Any, Optional

from loguru import logger
from redis.exceptions import RedisError

from infra.cache_store import ICacheStore
from lib.contact_discovery.models import (
    DomainSearchResult,
    EmailVerificationRecord,
    NameLookupRecord,
    ScoredContact,
)

CACHE_PREFIX = "contact:"
DEFAULT_TTL_SECONDS = 30 * 24 * 60 * 60

CACHE_ERRORS = (RedisError, OSError, ValueError)

# Registrar, privacy proxy and hosting addresses that show up in WHOIS/RDAP
# and scraped footers. Never a person at the site.
JUNK_EMAIL_DOMAINS = {
    "godaddy.com", "networksolutionsprivateregistration.com", "contactprivacy.com",
    "domainsbyproxy.com", "whoisguard.com", "privacyguardian.org",
    "withheldforprivacy.com", "bluehost.com", "hostmonster.com", "hostgator.com",
    "web.com", "cloudflare.com", "namecheap.com", "tucows.com",
    "identity-protect.org", "support.aws.com", "amazonaws.com", "registrarmail.net",
    "wordpress.com", "wix.com", "squarespace.com", "sentry.io", "markmonitor.com",
}

JUNK_EMAIL_PREFIXES = (
    "abuse@", "noreply@", "no-reply@", "donotreply@", "postmaster@", "hostmaster@",
    "domain.operations@", "support-domain@", "trustandsafety@",
)


def is_junk_email(email: str) -> bool:
    """Registrar/hosting/platform address or a mailbox nobody reads."""
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        return True
    if email.startswith(JUNK_EMAIL_PREFIXES):
        return True
    domain = email.rsplit("@", 1)[1]
    return any(domain == d or domain.endswith("." + d) for d in JUNK_EMAIL_DOMAINS)


def domain_key(domain: str) -> str:
    return f"{CACHE_PREFIX}domain:{domain.strip().lower()}"


def verify_key(email: str) -> str:
    return f"{CACHE_PREFIX}verify:{email.strip().lower()}"


def name_key(name: str, domain: str) -> str:
    normalized = re.sub(r"\s+", "-", name.strip().lower())
    return f"{CACHE_PREFIX}name:{normalized}@{domain.strip().lower()}"


class ContactCache:
    """Typed access to the contact key families."""

    def __init__(self, store: ICacheStore, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.store = store
        self.ttl_seconds = ttl_seconds

    async def _get(self, key: str) -> Optional[Any]:
        try:
            return await self.store.get(key)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    async def _set(self, key: str, value: Any) -> None:
        try:
            await self.store.set_with_ttl(key, value, self.ttl_seconds)
        except CACHE_ERRORS as e:
            logger.warning(f"Cache write failed for {key}: {e}")

    # Domain search

    async def cache_domain_search(self, domain: str, contacts: list[ScoredContact]) -> None:
        payload = DomainSearchResult(domain=domain.lower(), contacts=contacts, total_found=len(contacts))
        await self._set(domain_key(domain), payload.model_dump(mode="json"))
        logger.debug(f"Cached {len(contacts)} contacts for domain: {domain}")

    async def get_cached_domain_search(self, domain: str) -> Optional[DomainSearchResult]:
        raw = await self._get(domain_key(domain))
        if raw is None:
            logger.debug(f"Cache MISS for domain: {domain}")
            return None
        try:
            result = DomainSearchResult.model_validate(raw)
        except ValueError as e:
            logger.warning(f"Discarding malformed cache entry for {domain}: {e}")
            return None
        logger.debug(f"Cache HIT for domain: {domain}")
        return result

    async def get_clean_domain_search(self, domain: str) -> Optional[list[ScoredContact]]:
        """Cached contacts minus junk. An all-junk entry is deleted and reads as a miss."""
        cached = await self.get_cached_domain_search(domain)
        if cached is None:
            return None
        clean = [c for c in cached.contacts if not is_junk_email(c.email)]
        if clean:
            return clean
        logger.info(f"Cached contacts for {domain} are all junk, purging entry")
        try:
            await self.store.delete(domain_key(domain))
        except CACHE_ERRORS as e:
            logger.warning(f"Cache delete failed for {domain}: {e}")
        return None

    # Email verification

    async def cache_email_verification(
        self,
        email: str,
        status: str,
        score: int,
        metadata: Optional[dict] = None,
    ) -> None:
        record = EmailVerificationRecord(email=email.lower(), status=status, score=score, metadata=metadata or {})
        await self._set(verify_key(email), record.model_dump(mode="json"))

    async def get_cached_email_verification(self, email: str) -> Optional[EmailVerificationRecord]:
        raw = await self._get(verify_key(email))
        if raw is None:
            return None
        try:
            return EmailVerificationRecord.model_validate(raw)
        except ValueError as e:
            logger.warning(f"Discarding malformed verification entry for {email}: {e}")
            return None

    # Name + domain lookups

    async def cache_name_domain_lookup(
        self,
        name: str,
        domain: str,
        email: str,
        metadata: Optional[dict] = None,
    ) -> None:
        record = NameLookupRecord(email=email.lower(), name=name, domain=domain.lower(), metadata=metadata or {})
        await self._set(name_key(name, domain), record.model_dump(mode="json"))
        logger.debug(f"Cached name+domain lookup: {name} @ {domain}")

    async def get_cached_name_domain_lookup(self, name: str, domain: str) -> Optional[NameLookupRecord]:
        raw = await self._get(name_key(name, domain))
        if raw is None:
            return None
        try:
            return NameLookupRecord.model_validate(raw)
        except ValueError as e:
            logger.warning(f"Discarding malformed name lookup for {name} @ {domain}: {e}")
            return None

    # Admin

    async def clear_domain_cache(self, domain: str) -> int:
        """Delete every contact key mentioning the domain."""
        try:
            keys = await self.store.scan_keys(f"{CACHE_PREFIX}*{domain.strip().lower()}*")
            removed = await self.store.delete(*keys) if keys else 0
        except CACHE_ERRORS as e:
            logger.error(f"Error clearing cache for {domain}: {e}")
            return 0
        if removed:
            logger.info(f"Cleared {removed} cache entries for domain: {domain}")
        return removed

    async def clear_all(self) -> int:
        try:
            keys = await self.store.scan_keys(f"{CACHE_PREFIX}*")
            removed = await self.store.delete(*keys) if keys else 0
        except CACHE_ERRORS as e:
            logger.error(f"Error clearing contact cache: {e}")
            return 0
        logger.info(f"Cleared {removed} contact cache entries")
        return removed

    async def get_stats(self) -> dict[str, int]:
        stats = {"total_keys": 0, "domain_searches": 0, "email_verifications": 0, "name_lookups": 0}
        try:
            keys = await self.store.scan_keys(f"{CACHE_PREFIX}*")
        except CACHE_ERRORS as e:
            logger.error(f"Error reading cache stats: {e}")
            return stats
        stats["total_keys"] = len(keys)
        for key in keys:
            family = key[len(CACHE_PREFIX):].split(":", 1)[0]
            if family == "domain":
                stats["domain_searches"] += 1
            elif family == "verify":
                stats["email_verifications"] += 1
            elif family == "name":
                stats["name_lookups"] += 1
        return stats
