"""Free contact-finding strategies, in cascade order.

Each strategy looks at one kind of free source and returns the candidates it
found (possibly none). Shared per-run state such as the seed page HTML and
the author name spotted on it lives on CascadeContext.
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable
from urllib.parse import urljoin

from loguru import logger

from lib.contact_discovery.extraction import (
    candidates_from_html,
    emails_in_text,
    extract_author_links,
    extract_author_name,
    extract_profile_links,
    extract_social_handles,
    infer_name,
    is_team_like_url,
)
from lib.contact_discovery.fetcher import PageFetcher
from lib.contact_discovery.models import CandidateContact, ContactSource
from lib.contact_discovery.rdap_client import rdap_contacts
from lib.contact_discovery.web_search import FallbackSearch, SearchHit, hit_domain

CONTACT_PATHS = [
    "/contact", "/contact-us", "/about", "/about-us", "/team",
    "/editorial", "/write-for-us", "/contribute", "/staff", "/author",
]

MAX_AUTHOR_PAGES = 3
MAX_PROFILE_PAGES = 5
MAX_SOCIAL_HANDLES = 2
MAX_RESULT_PAGES = 3


@dataclass
class CascadeContext:
    """Per-run state shared by the strategies of one cascade run."""

    domain: str
    seed_url: Optional[str]
    fetcher: PageFetcher
    search: FallbackSearch
    author_name: Optional[str] = None
    tag: str = ""
    _seed_html: Optional[str] = field(default=None, repr=False)
    _seed_fetched: bool = field(default=False, repr=False)

    async def seed_html(self) -> Optional[str]:
        """Seed page body, fetched at most once per run."""
        if not self._seed_fetched and self.seed_url:
            self._seed_html = await self.fetcher.fetch(self.seed_url)
        self._seed_fetched = True
        return self._seed_html

    @property
    def base_url(self) -> str:
        return f"https://{self.domain}"


@runtime_checkable
class CascadeStrategy(Protocol):
    name: str

    async def try_find(self, domain: str, context: CascadeContext) -> list[CandidateContact]:
        ...


def _candidate(email: str, source: ContactSource, name: Optional[str] = None, **metadata) -> CandidateContact:
    return CandidateContact(email=email, name=name, source=source, source_metadata=metadata)


class SeedPageStrategy:
    name = "seed_page"

    async def try_find(self, domain: str, context: CascadeContext) -> list[CandidateContact]:
        html = await context.seed_html()
        if not html:
            return []
        return candidates_from_html(html, ContactSource.SCRAPED, page_url=context.seed_url)


class AuthorPageStrategy:
    """Follows author links on the seed page.

    The author's display name is stored on the context even when the
    author pages yield nothing, so the name search can use it later.
    """

    name = "author_page"

    async def try_find(self, domain: str, context: CascadeContext) -> list[CandidateContact]:
        html = await context.seed_html()
        if not html:
            return []

        links = extract_author_links(html, context.seed_url)
        if not context.author_name:
            context.author_name = next((n for _, n in links if n and len(n.split()) >= 2), None) \
                or extract_author_name(html)

        found: list[CandidateContact] = []
        for url, link_name in links[:MAX_AUTHOR_PAGES]:
            page = await context.fetcher.fetch(url)
            if not page:
                continue
            for c in candidates_from_html(page, ContactSource.SCRAPED_AUTHOR, page_url=url):
                if not c.name and (link_name or context.author_name):
                    c.name = link_name or context.author_name
                found.append(c)
            if found:
                break
        return found


class ContactPagesStrategy:
    """Conventional contact/about/team paths on the domain.

    On team-like pages without emails, individual profile links are
    followed (source scraped_team_page).
    """

    name = "contact_pages"

    def __init__(self, paths: Optional[list[str]] = None):
        self.paths = paths or CONTACT_PATHS

    async def try_find(self, domain: str, context: CascadeContext) -> list[CandidateContact]:
        for path in self.paths:
            url = urljoin(context.base_url, path)
            html = await context.fetcher.fetch(url)
            if not html:
                continue

            found = candidates_from_html(html, ContactSource.SCRAPED, page_url=url)
            if found:
                logger.debug(f"{context.tag}   {path}: {len(found)} emails")
                return found

            if is_team_like_url(url):
                found = await self._scan_profiles(html, url, domain, context)
                if found:
                    return found
        return []

    async def _scan_profiles(
        self, html: str, url: str, domain: str, context: CascadeContext,
    ) -> list[CandidateContact]:
        found: list[CandidateContact] = []
        seen: set[str] = set()
        for profile_url in extract_profile_links(html, url, domain, limit=MAX_PROFILE_PAGES):
            page = await context.fetcher.fetch(profile_url)
            if not page:
                continue
            author = extract_author_name(page)
            for c in candidates_from_html(page, ContactSource.SCRAPED_TEAM_PAGE, page_url=profile_url):
                if c.email in seen:
                    continue
                seen.add(c.email)
                if not c.name and author:
                    c.name = author
                found.append(c)
        return found


class RdapStrategy:
    name = "rdap"

    async def try_find(self, domain: str, context: CascadeContext) -> list[CandidateContact]:
        return await rdap_contacts(context.fetcher.client, domain, timeout=context.fetcher.timeout)


async def _emails_from_hits(
    hits: list[SearchHit], domain: str, context: CascadeContext, scan_pages: bool,
) -> list[tuple[str, str, str]]:
    """(email, context text, url) for domain emails in snippets, else result pages."""
    found: list[tuple[str, str, str]] = []
    seen: set[str] = set()
    for hit in hits:
        text = f"{hit.title} {hit.snippet}"
        for email in emails_in_text(text, domain):
            if email not in seen:
                seen.add(email)
                found.append((email, text, hit.url))
    if found or not scan_pages:
        return found

    on_domain = [h for h in hits if (hit_domain(h) or "").endswith(domain)]
    for hit in on_domain[:MAX_RESULT_PAGES]:
        html = await context.fetcher.fetch(hit.url)
        if not html:
            continue
        for c in candidates_from_html(html, page_url=hit.url, only_domain=domain):
            if c.email not in seen:
                seen.add(c.email)
                found.append((c.email, "", hit.url))
        if found:
            break
    return found


class DomainWebSearchStrategy:
    name = "domain_web_search"

    async def try_find(self, domain: str, context: CascadeContext) -> list[CandidateContact]:
        hits: list[SearchHit] = []
        for query in (f'"@{domain}"', f"contact email site:{domain}"):
            hits.extend(await context.search.search(query))
        if not hits:
            return []
        return [
            _candidate(email, ContactSource.SCRAPED, infer_name(email, text), method="web_search", url=url)
            for email, text, url in await _emails_from_hits(hits, domain, context, scan_pages=True)
        ]


class NameWebSearchStrategy:
    """Searches for the author's name next to the domain. Needs a name."""

    name = "name_web_search"

    async def try_find(self, domain: str, context: CascadeContext) -> list[CandidateContact]:
        name = context.author_name
        if not name:
            return []
        hits: list[SearchHit] = []
        for query in (f'"{name}" "@{domain}"', f'"{name}" email {domain}'):
            hits.extend(await context.search.search(query))

        tokens = [t.lower() for t in name.split() if len(t) > 1]
        contacts = []
        for email, text, url in await _emails_from_hits(hits, domain, context, scan_pages=True):
            local = email.split("@", 1)[0]
            if any(t in local for t in tokens):
                contacts.append(_candidate(email, ContactSource.SCRAPED_AUTHOR, name, method="name_search", url=url))
            else:
                contacts.append(_candidate(email, ContactSource.SCRAPED, infer_name(email, text), method="name_search", url=url))
        return contacts


class SocialHandleSearchStrategy:
    name = "social_handle_search"

    async def try_find(self, domain: str, context: CascadeContext) -> list[CandidateContact]:
        html = await context.seed_html()
        if not html:
            return []
        contacts = []
        for handle in extract_social_handles(html, limit=MAX_SOCIAL_HANDLES):
            hits = await context.search.search(f'"{handle}" "@{domain}"')
            for email, text, url in await _emails_from_hits(hits, domain, context, scan_pages=True):
                contacts.append(_candidate(
                    email, ContactSource.SCRAPED, infer_name(email, text),
                    method="social_search", handle=handle, url=url,
                ))
            if contacts:
                break
        return contacts


def default_strategies() -> list[CascadeStrategy]:
    return [
        SeedPageStrategy(),
        AuthorPageStrategy(),
        ContactPagesStrategy(),
        RdapStrategy(),
        DomainWebSearchStrategy(),
        NameWebSearchStrategy(),
        SocialHandleSearchStrategy(),
    ]
