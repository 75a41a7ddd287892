"""HTML extraction helpers for the scraping cascade.

Pulls candidate emails (mailto links, then body text), author links and
display names, individual profile links on team pages, and social handles.
All functions are pure: the same HTML always yields the same output.
"""

import json
import re
from typing import Optional
from urllib.parse import unquote, urljoin, urlparse

from bs4 import BeautifulSoup

from lib.contact_discovery.email_checks import (
    email_domain,
    extract_domain,
    is_acceptable_candidate,
    is_generic_local,
    local_part,
)
from lib.contact_discovery.models import CandidateContact, ContactSource

EMAIL_REGEX = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")

NEARBY_NAME_REGEX = re.compile(r"([A-Z][a-z]+ [A-Z][a-z]+)")

# Capitalised page furniture that looks like "First Last"
NAME_STOPWORDS = frozenset({
    "contact", "us", "get", "in", "touch", "email", "mail", "call", "write",
    "send", "reach", "follow", "about", "our", "team", "click", "here", "read",
    "more", "privacy", "policy", "terms", "home", "news", "subscribe",
    "advertise", "pitch", "tips", "newsletter", "sign", "up", "press", "media",
    "support", "help", "customer", "service", "editorial", "submit", "learn",
    "find", "out", "join", "the", "all", "rights", "reserved", "copyright",
    "posted", "published", "updated", "share", "this", "menu", "search",
    "view", "profile", "questions", "feedback", "inquiries", "enquiries",
})

PROFILE_PATH_REGEX = re.compile(r"/(author|authors|team|staff|contributor|contributors|writer|writers)/", re.IGNORECASE)

TEAM_PAGE_REGEX = re.compile(r"(team|staff|editorial|about|contributors|authors|masthead)", re.IGNORECASE)

BYLINE_SELECTORS = [
    "a[rel~=author]",
    ".author a", "a.author", ".byline a", ".post-author a",
    ".entry-author a", ".author-name a", "a.author-name",
    ".article-author a", "a[href*='/author/']",
]

SOCIAL_PATTERNS = [
    re.compile(r"linkedin\.com/in/([A-Za-z0-9\-_%]+)", re.IGNORECASE),
    re.compile(r"(?:^|[/.])(?:twitter|x)\.com/(?!intent|share|home|hashtag|search|i/)([A-Za-z0-9_]{2,15})(?:[/?#]|$)", re.IGNORECASE),
]

SOCIAL_STOPWORDS = frozenset({"share", "intent", "home", "login", "signup", "about", "privacy", "tos"})

CONTEXT_WINDOW = 100


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _visible_text(soup: BeautifulSoup) -> str:
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return re.sub(r"\s+", " ", soup.get_text(" ")).strip()


def _email_from_mailto(href: str) -> str:
    value = href.split(":", 1)[1] if ":" in href else href
    return unquote(value.split("?", 1)[0]).strip().lower()


def extract_emails(html: str) -> list[tuple[str, str]]:
    """Return (email, context) pairs: mailto links first, then body text.

    Only addresses passing the extraction-time checks are returned, each at
    most once.
    """
    soup = _soup(html)
    found: list[tuple[str, str]] = []
    seen: set[str] = set()

    for a in soup.select("a[href]"):
        href = a.get("href", "")
        if not href.lower().startswith("mailto:"):
            continue
        email = _email_from_mailto(href)
        if email in seen or not is_acceptable_candidate(email):
            continue
        seen.add(email)
        parent = a.parent if a.parent is not None else a
        context = re.sub(r"\s+", " ", parent.get_text(" ")).strip()[:200]
        found.append((email, context))

    text = _visible_text(soup)
    for match in EMAIL_REGEX.finditer(text):
        email = match.group(0).lower().rstrip(".")
        if email in seen or not is_acceptable_candidate(email):
            continue
        seen.add(email)
        start = max(0, match.start() - CONTEXT_WINDOW)
        found.append((email, text[start:match.end() + CONTEXT_WINDOW]))

    return found


def infer_name(email: str, context: str = "") -> Optional[str]:
    """Best-effort display name for an address.

    Prefers the closest capitalised "First Last" before the address in the
    surrounding text, skipping UI phrases like "Contact Us"; otherwise
    title-cases a two-token dotted/underscored local part. Generic local
    parts never produce a name.
    """
    local = local_part(email)
    if not local or is_generic_local(local):
        return None

    if context:
        idx = context.lower().find(email.lower())
        if idx > 0:
            before = context[max(0, idx - CONTEXT_WINDOW):idx]
            for match in reversed(NEARBY_NAME_REGEX.findall(before)):
                if not any(word.lower() in NAME_STOPWORDS for word in match.split()):
                    return match

    tokens = [t for t in re.split(r"[._]", local) if t]
    if len(tokens) == 2 and all(t.isalpha() for t in tokens):
        return " ".join(t.capitalize() for t in tokens)
    return None


def candidates_from_html(
    html: str,
    source: ContactSource = ContactSource.SCRAPED,
    page_url: Optional[str] = None,
    only_domain: Optional[str] = None,
) -> list[CandidateContact]:
    """Extract candidate contacts from one page."""
    candidates = []
    for email, context in extract_emails(html):
        if only_domain and not _matches_domain(email, only_domain):
            continue
        metadata = {"page_url": page_url} if page_url else {}
        candidates.append(CandidateContact(
            email=email,
            name=infer_name(email, context),
            source=source,
            source_metadata=metadata,
        ))
    return candidates


def emails_in_text(text: str, domain: str) -> list[str]:
    """Domain-matching, acceptable emails in plain text, in order, unique."""
    found = []
    for match in EMAIL_REGEX.finditer(text or ""):
        email = match.group(0).lower().rstrip(".")
        if email in found or not _matches_domain(email, domain):
            continue
        if is_acceptable_candidate(email):
            found.append(email)
    return found


def _matches_domain(email: str, domain: str) -> bool:
    addr_domain = email_domain(email)
    domain = domain.lower()
    return addr_domain == domain or addr_domain.endswith("." + domain)


# ── Authors ─────────────────────────────────────────────────────────


def _jsonld_items(soup: BeautifulSoup) -> list[dict]:
    items = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except (json.JSONDecodeError, TypeError):
            continue
        stack = data if isinstance(data, list) else [data]
        for item in stack:
            if not isinstance(item, dict):
                continue
            items.append(item)
            graph = item.get("@graph")
            if isinstance(graph, list):
                items.extend(g for g in graph if isinstance(g, dict))
    return items


def extract_author_links(html: str, base_url: str) -> list[tuple[str, Optional[str]]]:
    """Author profile links (absolute URL, display name) in page order."""
    soup = _soup(html)
    results: list[tuple[str, Optional[str]]] = []
    seen: set[str] = set()

    def _add(href: Optional[str], name: Optional[str]):
        if not href or href.startswith(("mailto:", "javascript:", "#")):
            return
        url = urljoin(base_url, href)
        if not url.startswith(("http://", "https://")) or url in seen:
            return
        seen.add(url)
        clean = name.strip() if name else None
        results.append((url, clean or None))

    for item in _jsonld_items(soup):
        authors = item.get("author")
        for author in (authors if isinstance(authors, list) else [authors]):
            if isinstance(author, dict):
                _add(author.get("url"), author.get("name"))

    for el in soup.select("[itemprop~=author]"):
        link = el if el.name == "a" else el.find("a", href=True)
        name_el = el.find(attrs={"itemprop": "name"})
        name = name_el.get_text(" ", strip=True) if name_el else el.get_text(" ", strip=True)
        if link is not None:
            _add(link.get("href"), name)

    for selector in BYLINE_SELECTORS:
        for a in soup.select(selector):
            _add(a.get("href"), a.get_text(" ", strip=True))

    return results


def extract_author_name(html: str) -> Optional[str]:
    """Author display name from JSON-LD, microdata, byline or meta tag."""
    soup = _soup(html)
    for item in _jsonld_items(soup):
        authors = item.get("author")
        for author in (authors if isinstance(authors, list) else [authors]):
            if isinstance(author, dict) and _looks_like_person(author.get("name")):
                return author["name"].strip()
            if isinstance(author, str) and _looks_like_person(author):
                return author.strip()

    for el in soup.select("[itemprop~=author]"):
        name_el = el.find(attrs={"itemprop": "name"})
        name = name_el.get_text(" ", strip=True) if name_el else el.get_text(" ", strip=True)
        if _looks_like_person(name):
            return name

    for selector in BYLINE_SELECTORS:
        for a in soup.select(selector):
            name = a.get_text(" ", strip=True)
            if _looks_like_person(name):
                return name

    meta = soup.find("meta", attrs={"name": "author"})
    if meta and _looks_like_person(meta.get("content")):
        return meta["content"].strip()
    return None


def _looks_like_person(name: Optional[str]) -> bool:
    if not name or not isinstance(name, str):
        return False
    parts = name.strip().split()
    return 2 <= len(parts) <= 4 and all(p[0].isupper() for p in parts if p[0].isalpha())


# ── Team pages / profiles ───────────────────────────────────────────


def is_team_like_url(url: str) -> bool:
    return bool(TEAM_PAGE_REGEX.search(urlparse(url).path or ""))


def extract_profile_links(html: str, page_url: str, domain: str, limit: int = 5) -> list[str]:
    """Links that look like individual profile pages on the same site."""
    soup = _soup(html)
    links: list[str] = []
    page = page_url.rstrip("/")
    for a in soup.select("a[href]"):
        url = urljoin(page_url, a["href"]).split("#", 1)[0]
        if url.rstrip("/") == page or url in links:
            continue
        if extract_domain(url) != domain.lower():
            continue
        path = urlparse(url).path
        match = PROFILE_PATH_REGEX.search(path)
        # Needs a slug after the section, e.g. /team/jane-doe
        if not match or not path[match.end():].strip("/"):
            continue
        links.append(url)
        if len(links) >= limit:
            break
    return links


def extract_social_handles(html: str, limit: int = 2) -> list[str]:
    """Professional / microblogging handles linked from the page."""
    soup = _soup(html)
    handles: list[str] = []
    for a in soup.select("a[href]"):
        href = a["href"]
        for pattern in SOCIAL_PATTERNS:
            m = pattern.search(href)
            if not m:
                continue
            handle = unquote(m.group(1)).strip("/")
            if handle.lower() in SOCIAL_STOPWORDS or handle in handles:
                continue
            handles.append(handle)
            break
        if len(handles) >= limit:
            break
    return handles
