"""Keyless web search over HTML result pages.

DuckDuckGo's html endpoint is the primary engine and Bing the secondary. Both
are scraped, so either may answer with a CAPTCHA / anomaly page; that surfaces
as EngineBlocked and FallbackSearch moves on to the next engine.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, Protocol, runtime_checkable
from urllib.parse import parse_qs, unquote, urlparse

import httpx
from bs4 import BeautifulSoup
from loguru import logger
from pydantic import BaseModel

from lib.contact_discovery.fetcher import BROWSER_HEADERS

BLOCK_MARKERS = ("captcha", "anomaly-modal", "unusual traffic", "are you a robot")


class SearchHit(BaseModel):
    url: str
    title: str = ""
    snippet: str = ""


class SearchError(Exception):
    """Search engine returned an unusable response."""


class EngineBlocked(SearchError):
    """Search engine served a CAPTCHA / rate-limit page instead of results."""


@runtime_checkable
class SearchEngine(Protocol):
    name: str

    async def search(self, query: str) -> list[SearchHit]:
        ...


def _looks_blocked(html: str) -> bool:
    lower = html.lower()
    return any(marker in lower for marker in BLOCK_MARKERS)


def _check_response(engine: str, resp: httpx.Response) -> str:
    if resp.status_code in (403, 429):
        raise EngineBlocked(f"{engine} returned HTTP {resp.status_code}")
    if resp.status_code != 200:
        raise SearchError(f"{engine} returned HTTP {resp.status_code}")
    return resp.text


def _ddg_target(href: str) -> str:
    """Unwrap //duckduckgo.com/l/?uddg=<url> redirect links."""
    if "uddg=" in href:
        qs = parse_qs(urlparse(href if href.startswith("http") else "https:" + href).query)
        if qs.get("uddg"):
            return unquote(qs["uddg"][0])
    return href


def parse_duckduckgo(html: str) -> list[SearchHit]:
    soup = BeautifulSoup(html, "html.parser")
    hits = []
    for result in soup.select(".result"):
        link = result.select_one("a.result__a")
        if link is None or not link.get("href"):
            continue
        snippet = result.select_one(".result__snippet")
        hits.append(SearchHit(
            url=_ddg_target(link["href"]),
            title=link.get_text(" ", strip=True),
            snippet=snippet.get_text(" ", strip=True) if snippet else "",
        ))
    return hits


def parse_bing(html: str) -> list[SearchHit]:
    soup = BeautifulSoup(html, "html.parser")
    hits = []
    for result in soup.select("li.b_algo"):
        link = result.select_one("h2 a")
        if link is None or not link.get("href"):
            continue
        snippet = result.select_one(".b_caption p") or result.select_one("p")
        hits.append(SearchHit(
            url=link["href"],
            title=link.get_text(" ", strip=True),
            snippet=snippet.get_text(" ", strip=True) if snippet else "",
        ))
    return hits


class DuckDuckGoEngine:
    name = "duckduckgo"
    url = "https://html.duckduckgo.com/html/"

    def __init__(self, client: httpx.AsyncClient, timeout: float = 20.0):
        self._client = client
        self.timeout = timeout

    async def search(self, query: str) -> list[SearchHit]:
        resp = await self._client.post(
            self.url,
            data={"q": query, "b": ""},
            headers=BROWSER_HEADERS,
            timeout=self.timeout,
        )
        html = _check_response(self.name, resp)
        hits = parse_duckduckgo(html)
        if not hits and _looks_blocked(html):
            raise EngineBlocked("duckduckgo served an anomaly page")
        return hits


class BingEngine:
    name = "bing"
    url = "https://www.bing.com/search"

    def __init__(self, client: httpx.AsyncClient, timeout: float = 20.0):
        self._client = client
        self.timeout = timeout

    async def search(self, query: str) -> list[SearchHit]:
        resp = await self._client.get(
            self.url,
            params={"q": query},
            headers=BROWSER_HEADERS,
            timeout=self.timeout,
            follow_redirects=True,
        )
        html = _check_response(self.name, resp)
        hits = parse_bing(html)
        if not hits and _looks_blocked(html):
            raise EngineBlocked("bing served a captcha page")
        return hits


class FallbackSearch:
    """Tries engines in order; the next engine only runs on block or error.

    Sequential requests through one instance are spaced by `delay` seconds,
    so use one instance per discovery run.
    """

    def __init__(
        self,
        engines: list[SearchEngine],
        delay: float = 1.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.engines = engines
        self.delay = delay
        self._sleep = sleep
        self._requests = 0

    async def _pace(self):
        if self._requests > 0 and self.delay > 0:
            await self._sleep(self.delay)
        self._requests += 1

    async def search(self, query: str) -> list[SearchHit]:
        for engine in self.engines:
            await self._pace()
            t0 = time.monotonic()
            try:
                hits = await engine.search(query)
            except EngineBlocked as e:
                logger.warning(f"  [search] {engine.name} blocked: {e}")
                continue
            except (SearchError, httpx.HTTPError) as e:
                logger.warning(f"  [search] {engine.name} failed: {type(e).__name__}: {e}")
                continue
            logger.debug(f"  [search] {engine.name} '{query}' -> {len(hits)} hits ({time.monotonic() - t0:.1f}s)")
            return hits
        return []


def build_search(client: httpx.AsyncClient, delay: float = 1.5, timeout: float = 20.0) -> FallbackSearch:
    """Standard two-engine chain: DuckDuckGo, then Bing."""
    return FallbackSearch(
        [DuckDuckGoEngine(client, timeout=timeout), BingEngine(client, timeout=timeout)],
        delay=delay,
    )


def hit_domain(hit: SearchHit) -> Optional[str]:
    host = urlparse(hit.url).hostname or ""
    return host[4:] if host.startswith("www.") else (host or None)
