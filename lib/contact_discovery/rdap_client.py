"""RDAP domain lookup for contact emails.

Queries the RDAP protocol (WHOIS replacement) for the domain's registration
entities and returns any non-redacted registrant / administrative / technical
contact emails. Free, but most domains are privacy-protected post-GDPR, so
expect a low hit rate.

Rate limit: ~10 requests per 10 seconds on rdap.org proxy.
"""

import asyncio
from typing import Optional

import httpx
from loguru import logger

from lib.contact_discovery.email_checks import extract_domain, is_acceptable_candidate
from lib.contact_discovery.models import CandidateContact, ContactSource

RDAP_PROXY = "https://rdap.org/domain"

CONTACT_ROLES = ("registrant", "administrative", "technical")

# Privacy protection indicators in vCard names and emails
PRIVACY_INDICATORS = frozenset({
    "redacted for privacy",
    "data protected",
    "contact privacy",
    "domains by proxy",
    "whoisguard",
    "privacy protect",
    "withheld for privacy",
    "not disclosed",
    "registration private",
    "domain protection",
    "identity protection",
    "private registration",
    "redacted",
    "statutory masking",
})


def is_privacy_protected(value: Optional[str]) -> bool:
    if not value:
        return True
    lower = value.lower().strip()
    return any(indicator in lower for indicator in PRIVACY_INDICATORS)


def extract_vcard_fields(vcard_array: list) -> dict:
    """Extract name, org, email from a vCard array (RFC 6350 in JSON)."""
    result = {"name": None, "org": None, "email": None}
    if not vcard_array or len(vcard_array) < 2:
        return result

    for field in vcard_array[1]:
        if not isinstance(field, list) or len(field) < 4:
            continue
        prop_name, value = field[0], field[3]
        if not isinstance(value, str) or not value.strip():
            continue
        if prop_name == "fn":
            result["name"] = value.strip()
        elif prop_name == "org":
            result["org"] = value.strip()
        elif prop_name == "email":
            result["email"] = value.strip().lower()
    return result


def _walk_entities(entities: list):
    for entity in entities or []:
        yield entity
        yield from _walk_entities(entity.get("entities", []))


def contacts_from_rdap(data: dict, domain: str) -> list[CandidateContact]:
    """Pull usable contact emails out of an RDAP domain response."""
    contacts: list[CandidateContact] = []
    seen: set[str] = set()
    for entity in _walk_entities(data.get("entities", [])):
        roles = entity.get("roles", [])
        if "registrar" in roles or not any(r in roles for r in CONTACT_ROLES):
            continue
        fields = extract_vcard_fields(entity.get("vcardArray"))
        email = fields["email"]
        if not email or email in seen or is_privacy_protected(fields["name"]) or is_privacy_protected(email):
            continue
        if not is_acceptable_candidate(email):
            continue
        seen.add(email)
        contacts.append(CandidateContact(
            email=email,
            name=fields["name"],
            source=ContactSource.SCRAPED,
            source_metadata={"method": "rdap", "roles": roles, "org": fields["org"], "domain": domain},
        ))
    return contacts


async def rdap_contacts(
    client: httpx.AsyncClient,
    domain: str,
    timeout: float = 15.0,
) -> list[CandidateContact]:
    """Query RDAP for the domain; empty list on any failure."""
    domain = extract_domain(domain) or domain
    if not domain:
        return []

    url = f"{RDAP_PROXY}/{domain}"
    try:
        resp = await client.get(url, timeout=timeout, follow_redirects=True)
        if resp.status_code == 429:
            logger.warning(f"RDAP rate limited for {domain}, backing off")
            await asyncio.sleep(10)
            return []
        if resp.status_code != 200:
            return []
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"RDAP lookup failed for {domain}: {e}")
        return []

    return contacts_from_rdap(data, domain)
