"""Free, local email checks.

Syntax, MX existence, and disposable / free-provider / role-address
classification. Nothing here costs money; the only network call is the
MX lookup.
"""

import re
from typing import Optional
from urllib.parse import urlparse

import dns.asyncresolver
import dns.exception
import dns.resolver
from disposable_email_domains import blocklist as DISPOSABLE_BLOCKLIST
from loguru import logger

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")

# Packaged blocklist misses a few that show up on author pages
EXTRA_DISPOSABLE_DOMAINS = frozenset({
    "mailinator.com", "guerrillamail.com", "tempmail.com", "10minutemail.com",
    "throwaway.email", "fakeinbox.com", "trashmail.com",
})

PLACEHOLDER_DOMAINS = frozenset({
    "example.com", "example.org", "example.net", "test.com", "domain.com",
    "email.com", "yourdomain.com", "yoursite.com", "sentry.io",
})

NOREPLY_LOCALS = ("noreply", "no-reply", "no_reply", "donotreply", "do-not-reply")

ROLE_LOCALS = (
    "info", "contact", "support", "sales", "hello", "admin", "team",
    "help", "service", "inquiries", "general", "office", "enquiries",
)

GENERIC_LOCALS = frozenset({
    "editor", "contact", "info", "hello", "admin", "webmaster", "press",
    "media", "support", "team", "office", "sales", "marketing", "news",
    "general", "help", "inquiries", "enquiries", "mail", "privacy",
})

FREE_EMAIL_PROVIDERS = frozenset({
    "gmail.com", "yahoo.com", "hotmail.com", "outlook.com", "aol.com",
    "icloud.com", "mail.com", "protonmail.com", "zoho.com", "gmx.com",
    "live.com", "msn.com", "yandex.com",
})

# Image/asset names that look like emails (logo@2x.png)
ASSET_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp", ".css", ".js")


def extract_domain(url: str) -> Optional[str]:
    """Extract host (without www.) from a URL or bare domain."""
    if not url:
        return None
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    try:
        parsed = urlparse(url)
        host = parsed.hostname or ""
        if host.startswith("www."):
            host = host[4:]
        return host.lower() if host else None
    except Exception:
        return None


def local_part(email: str) -> str:
    return email.split("@", 1)[0].lower()


def email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].lower() if "@" in email else ""


def is_valid_email_syntax(email: str) -> bool:
    if not email or len(email) > 254:
        return False
    if not EMAIL_PATTERN.match(email):
        return False
    local = email.split("@", 1)[0]
    return 0 < len(local) <= 64


def is_disposable_domain(domain: str) -> bool:
    domain = (domain or "").lower()
    return domain in EXTRA_DISPOSABLE_DOMAINS or domain in DISPOSABLE_BLOCKLIST


def is_placeholder_domain(domain: str) -> bool:
    return (domain or "").lower() in PLACEHOLDER_DOMAINS


def is_noreply_local(local: str) -> bool:
    lower = (local or "").lower()
    return any(marker in lower for marker in NOREPLY_LOCALS)


def is_role_email(email: str) -> bool:
    """Generic role alias: exact or prefix match on the local part."""
    local = local_part(email)
    return any(local == role or local.startswith(role) for role in ROLE_LOCALS)


def is_generic_local(local: str) -> bool:
    return (local or "").lower() in GENERIC_LOCALS


def is_free_email(email: str) -> bool:
    return email_domain(email) in FREE_EMAIL_PROVIDERS


def is_acceptable_candidate(email: str) -> bool:
    """Extraction-time validity check for a harvested address."""
    if not is_valid_email_syntax(email):
        return False
    lower = email.lower()
    if lower.endswith(ASSET_SUFFIXES):
        return False
    domain = email_domain(lower)
    if is_disposable_domain(domain) or is_placeholder_domain(domain):
        return False
    if is_noreply_local(local_part(lower)):
        return False
    return True


async def has_mx_records(domain: str, timeout: float = 10.0) -> Optional[bool]:
    """True if the domain publishes an MX record, False if it does not.

    None when the lookup itself failed (timeout, SERVFAIL, resolver error):
    the answer is unknown, not "no mail".
    """
    if not domain:
        return False
    resolver = dns.asyncresolver.Resolver()
    resolver.timeout = min(5.0, timeout)
    resolver.lifetime = timeout
    try:
        answers = await resolver.resolve(domain, "MX")
        return len(answers) > 0
    except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer):
        return False
    except dns.exception.Timeout:
        logger.warning(f"MX lookup timed out for {domain}")
        return None
    except dns.exception.DNSException as e:
        logger.warning(f"MX lookup failed for {domain}: {e}")
        return None
