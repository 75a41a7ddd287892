"""Pick provider implementations from configured credentials.

Preference order:
  domain search / verifier   Snov, then Hunter
  name -> email finder        Snov, then Hunter, then Apollo
  people search               Apollo (free), then Google CSE
"""

from dataclasses import dataclass
from typing import Optional

import httpx
from loguru import logger

from lib.providers.apollo import ApolloClient
from lib.providers.base import (
    DomainSearchProvider,
    EmailFinderProvider,
    EmailVerifierProvider,
    PeopleSearchProvider,
)
from lib.providers.google_search import GoogleLinkedInSearch
from lib.providers.hunter import HunterClient
from lib.providers.oauth import OAuthTokenProvider
from lib.providers.snov import TOKEN_URL as SNOV_TOKEN_URL, SnovClient
from services.contacts.config import PipelineSettings


@dataclass
class ProviderSet:
    domain_search: Optional[DomainSearchProvider] = None
    finder: Optional[EmailFinderProvider] = None
    verifier: Optional[EmailVerifierProvider] = None
    people_search: Optional[PeopleSearchProvider] = None

    def describe(self) -> str:
        def _n(p):
            return p.name if p else "-"
        return (
            f"domain_search={_n(self.domain_search)} finder={_n(self.finder)} "
            f"verifier={_n(self.verifier)} people_search={_n(self.people_search)}"
        )


def build_providers(settings: PipelineSettings, client: httpx.AsyncClient) -> ProviderSet:
    timeout = settings.http_timeout_seconds
    snov = hunter = apollo = google = None

    if settings.snov_configured:
        tokens = OAuthTokenProvider(
            client, SNOV_TOKEN_URL, settings.snov_client_id, settings.snov_client_secret,
            provider="snov",
        )
        cost = settings.snov_credit_cost_cents
        snov = SnovClient(
            client, tokens,
            domain_search_cost_cents=cost, finder_cost_cents=cost, verify_cost_cents=cost,
            timeout=timeout,
        )
    else:
        logger.info("Snov not configured (SNOV_CLIENT_ID/SNOV_CLIENT_SECRET), skipping")

    if settings.hunter_api_key:
        hunter = HunterClient(
            client, settings.hunter_api_key,
            domain_search_cost_cents=settings.hunter_domain_search_cost_cents,
            finder_cost_cents=settings.hunter_finder_cost_cents,
            verify_cost_cents=settings.hunter_verify_cost_cents,
            timeout=timeout,
        )
    else:
        logger.info("Hunter not configured (HUNTER_API_KEY), skipping")

    if settings.apollo_api_key:
        apollo = ApolloClient(
            client, settings.apollo_api_key,
            finder_cost_cents=settings.apollo_credit_cost_cents, timeout=timeout,
        )
    else:
        logger.info("Apollo not configured (APOLLO_API_KEY), skipping")

    if settings.google_search_configured:
        google = GoogleLinkedInSearch(
            client, settings.google_search_api_key, settings.google_search_cx,
            people_search_cost_cents=settings.google_search_cost_cents, timeout=timeout,
        )
    else:
        logger.info("Google CSE not configured (GOOGLE_SEARCH_API_KEY/GOOGLE_SEARCH_CX), skipping")

    providers = ProviderSet(
        domain_search=snov or hunter,
        finder=snov or hunter or apollo,
        verifier=snov or hunter,
        people_search=apollo or google,
    )
    logger.info(f"Providers: {providers.describe()}")
    return providers
