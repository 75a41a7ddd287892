"""Scraping cascade: free sources only, stop at the first that yields emails.

  1. Seed article page → mailto links + body text
  2. Author pages linked from the seed (remembers the author's name)
  3. Contact / about / team pages, following individual profiles
  4. RDAP registration contacts
  5. Web search for "@domain"
  6. Web search for the author's name + domain
  7. Web search for social handles found on the seed page

A strategy that fails or times out is logged and skipped; the cascade
itself never raises.
"""

import asyncio
import time
from typing import Callable, Optional

from loguru import logger

from lib.contact_discovery.email_checks import extract_domain
from lib.contact_discovery.fetcher import PageFetcher
from lib.contact_discovery.models import CandidateContact
from lib.contact_discovery.strategies import CascadeContext, CascadeStrategy, default_strategies
from lib.contact_discovery.web_search import FallbackSearch, build_search

STRATEGY_TIMEOUT = 90.0


class ScrapingCascade:
    def __init__(
        self,
        fetcher: PageFetcher,
        strategies: Optional[list[CascadeStrategy]] = None,
        search_factory: Optional[Callable[[], FallbackSearch]] = None,
        search_delay: float = 1.5,
        strategy_timeout: float = STRATEGY_TIMEOUT,
    ):
        self.fetcher = fetcher
        self.strategies = strategies if strategies is not None else default_strategies()
        self.search_factory = search_factory or (
            lambda: build_search(fetcher.client, delay=search_delay, timeout=fetcher.timeout)
        )
        self.strategy_timeout = strategy_timeout

    async def find_by_scraping(self, domain: str, seed_url: Optional[str] = None) -> list[CandidateContact]:
        """Run strategies in order until one produces at least one email."""
        domain = extract_domain(domain) or domain
        tag = f"[{domain}]"
        context = CascadeContext(
            domain=domain,
            seed_url=seed_url,
            fetcher=self.fetcher,
            search=self.search_factory(),
            tag=tag,
        )

        total = len(self.strategies)
        t_start = time.monotonic()
        for i, strategy in enumerate(self.strategies, 1):
            t0 = time.monotonic()
            try:
                found = await asyncio.wait_for(
                    strategy.try_find(domain, context),
                    timeout=self.strategy_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(f"{tag} [{i}/{total} {strategy.name}] Timed out after {self.strategy_timeout:.0f}s")
                continue
            except Exception as e:
                logger.warning(f"{tag} [{i}/{total} {strategy.name}] Failed: {type(e).__name__}: {e}")
                continue

            contacts = _dedupe(found)
            elapsed = time.monotonic() - t0
            if contacts:
                logger.info(
                    f"{tag} [{i}/{total} {strategy.name}] HIT: {len(contacts)} emails "
                    f"({', '.join(c.email for c in contacts[:3])}) [{elapsed:.1f}s]"
                )
                return contacts
            logger.debug(f"{tag} [{i}/{total} {strategy.name}] Nothing [{elapsed:.1f}s]")

        logger.info(f"{tag} Scraping cascade found nothing [{time.monotonic() - t_start:.1f}s]")
        return []


def _dedupe(contacts: list[CandidateContact]) -> list[CandidateContact]:
    seen: set[str] = set()
    unique = []
    for c in contacts:
        if c.email in seen:
            continue
        seen.add(c.email)
        unique.append(c)
    return unique
