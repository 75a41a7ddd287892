"""Contact persistence and blocklist lookups."""

import json
from typing import Optional, Protocol, runtime_checkable

from db.client import get_conn
from db.queries.contacts import IS_DOMAIN_BLOCKED, IS_EMAIL_BLOCKED, UPSERT_CONTACT
from lib.contact_discovery.email_checks import email_domain
from lib.contact_discovery.models import ScoredContact


@runtime_checkable
class IContactRepo(Protocol):
    """Protocol for contact persistence."""

    async def create(self, prospect_id: str, contact: ScoredContact) -> Optional[str]:
        """Upsert a selected contact. Returns its id."""
        ...


@runtime_checkable
class IBlocklist(Protocol):
    """Protocol for blocklist checks."""

    async def is_email_blocked(self, email: str) -> bool:
        ...


class ContactRepo(IContactRepo):
    """asyncpg implementation of IContactRepo."""

    async def create(self, prospect_id: str, contact: ScoredContact) -> Optional[str]:
        async with get_conn() as conn:
            row = await conn.fetchrow(
                UPSERT_CONTACT,
                prospect_id,
                contact.email.lower(),
                contact.name,
                contact.title or contact.role,
                contact.title,
                contact.tier,
                contact.confidence_score,
                contact.source,
                contact.linkedin_url,
                contact.verification_status,
                contact.verification_status == "valid",
                json.dumps(contact.source_metadata, default=str),
            )
        return str(row["id"]) if row else None


class BlocklistRepo(IBlocklist):
    """asyncpg implementation of IBlocklist. A blocked domain blocks all its emails."""

    async def is_email_blocked(self, email: str) -> bool:
        email = email.strip().lower()
        async with get_conn() as conn:
            if await conn.fetchval(IS_EMAIL_BLOCKED, email):
                return True
            return bool(await conn.fetchval(IS_DOMAIN_BLOCKED, email_domain(email)))


class MockContactRepo(IContactRepo):
    """In-memory repo for unit testing."""

    def __init__(self, fail_on: Optional[set[str]] = None):
        self.saved: list[tuple[str, ScoredContact]] = []
        self.fail_on = fail_on or set()

    async def create(self, prospect_id: str, contact: ScoredContact) -> Optional[str]:
        if contact.email in self.fail_on:
            raise RuntimeError(f"insert failed for {contact.email}")
        self.saved.append((prospect_id, contact))
        return str(len(self.saved))


class MockBlocklist(IBlocklist):
    """In-memory blocklist for unit testing."""

    def __init__(self, emails: Optional[set[str]] = None, domains: Optional[set[str]] = None):
        self.emails = {e.lower() for e in emails or set()}
        self.domains = {d.lower() for d in domains or set()}

    async def is_email_blocked(self, email: str) -> bool:
        email = email.lower()
        return email in self.emails or email_domain(email) in self.domains
