"""Tests for provider clients (HTTP mocked with httpx.MockTransport)."""

import json

import httpx
import pytest

from lib.providers.apollo import ApolloClient
from lib.providers.base import ProviderError
from lib.providers.google_search import GoogleLinkedInSearch, parse_profile_title
from lib.providers.hunter import HunterClient
from lib.providers.oauth import OAuthTokenProvider
from lib.providers.registry import build_providers
from lib.providers.snov import SnovClient, map_smtp_status
from services.contacts.config import PipelineSettings

pytestmark = pytest.mark.no_db


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHunter:

    @pytest.mark.asyncio
    async def test_domain_search(self):
        def handler(request):
            assert request.url.path == "/v2/domain-search"
            assert request.url.params["domain"] == "acme.com"
            assert request.url.params["api_key"] == "k"
            return httpx.Response(200, json={"data": {"emails": [
                {"value": "jane@acme.com", "first_name": "Jane", "last_name": "Doe",
                 "position": "Editor", "linkedin": "https://linkedin.com/in/jane", "confidence": 91},
                {"value": None},
            ]}})

        result = await HunterClient(_client(handler), "k").domain_search("acme.com")
        assert result.cost_cents == 5
        assert len(result.contacts) == 1
        c = result.contacts[0]
        assert (c.email, c.name, c.position) == ("jane@acme.com", "Jane Doe", "Editor")
        assert c.metadata["hunter_confidence"] == 91

    @pytest.mark.asyncio
    async def test_finder_not_found_still_billed(self):
        hunter = HunterClient(_client(lambda r: httpx.Response(200, json={"data": {"email": None}})), "k")
        result = await hunter.find_email("Jane", "Doe", "acme.com")
        assert result.email is None
        assert result.cost_cents == 1

    @pytest.mark.asyncio
    async def test_verify_status_mapping(self):
        for raw, expected in [("valid", "valid"), ("invalid", "invalid"),
                              ("accept_all", "risky"), ("weird", "unknown")]:
            hunter = HunterClient(_client(lambda r, raw=raw: httpx.Response(
                200, json={"data": {"status": raw, "smtp_check": True}})), "k")
            result = await hunter.verify_email("jane@acme.com")
            assert result.status == expected

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        hunter = HunterClient(_client(lambda r: httpx.Response(429, text="slow down")), "k")
        with pytest.raises(ProviderError):
            await hunter.domain_search("acme.com")

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(ProviderError):
            await HunterClient(_client(handler), "k").verify_email("jane@acme.com")


class SnovFake:
    """Minimal Snov API: token, start endpoints, polled results."""

    def __init__(self, pending_polls=1, result_items=None, status="completed"):
        self.pending_polls = pending_polls
        self.result_items = result_items or []
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/v1/oauth/access_token":
            return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
        assert request.headers["Authorization"] == "Bearer tok"
        if path.endswith("/start"):
            return httpx.Response(200, json={"meta": {"task_hash": "abc"}})
        if self.pending_polls > 0:
            self.pending_polls -= 1
            return httpx.Response(200, json={"status": "in_progress"})
        return httpx.Response(200, json={"status": self.status, "data": self.result_items})


def _snov(fake: SnovFake) -> SnovClient:
    client = _client(fake)
    tokens = OAuthTokenProvider(client, "https://api.snov.io/v1/oauth/access_token", "id", "secret")

    async def no_sleep(_):
        return None

    return SnovClient(client, tokens, sleep=no_sleep)


class TestSnov:

    @pytest.mark.asyncio
    async def test_domain_search_polls_until_complete(self):
        fake = SnovFake(pending_polls=2, result_items=[
            {"email": "jane@acme.com", "first_name": "Jane", "last_name": "Doe", "position": "Editor"},
            {"email": ""},
        ])
        result = await _snov(fake).domain_search("acme.com")
        assert [c.email for c in result.contacts] == ["jane@acme.com"]
        assert result.contacts[0].name == "Jane Doe"
        polls = [r for r in fake.requests if "/result/" in r.url.path]
        assert len(polls) == 3
        assert polls[0].url.path == "/v2/domain-search/domain-emails/result/abc"

    @pytest.mark.asyncio
    async def test_finder_uses_task_hash_query(self):
        fake = SnovFake(pending_polls=0, result_items=[{"email": "jane@acme.com", "smtp_status": "valid"}])
        result = await _snov(fake).find_email("Jane", "Doe", "acme.com")
        assert result.email == "jane@acme.com"
        assert result.status == "valid"
        start = next(r for r in fake.requests if r.url.path.endswith("/start"))
        assert json.loads(start.content)["items"][0] == {"first_name": "Jane", "last_name": "Doe", "domain": "acme.com"}
        poll = fake.requests[-1]
        assert poll.url.path == "/v2/emails-by-domain-by-name/result"
        assert poll.url.params["task_hash"] == "abc"

    @pytest.mark.asyncio
    async def test_verify_catch_all_is_risky(self):
        fake = SnovFake(pending_polls=0, result_items=[{"smtp_status": "catch-all", "is_webmail": False}])
        result = await _snov(fake).verify_email("jane@acme.com")
        assert result.status == "risky"
        assert result.cost_cents == 1

    @pytest.mark.asyncio
    async def test_task_failure_raises(self):
        fake = SnovFake(pending_polls=0, status="failed")
        with pytest.raises(ProviderError):
            await _snov(fake).verify_email("jane@acme.com")

    @pytest.mark.asyncio
    async def test_poll_exhaustion_raises(self):
        fake = SnovFake(pending_polls=100)
        with pytest.raises(ProviderError):
            await _snov(fake).domain_search("acme.com")

    def test_smtp_status_map(self):
        assert map_smtp_status("valid") == "valid"
        assert map_smtp_status("INVALID") == "invalid"
        assert map_smtp_status("risky") == "risky"
        assert map_smtp_status(None) == "unknown"


class TestApollo:

    @pytest.mark.asyncio
    async def test_search_people_skips_incomplete_names(self):
        def handler(request):
            assert request.headers["x-api-key"] == "k"
            body = json.loads(request.content)
            assert body["q_organization_domains"] == "acme.com"
            return httpx.Response(200, json={"people": [
                {"id": "1", "first_name": "Jane", "last_name": "Doe", "title": "Founder"},
                {"id": "2", "first_name": "Bob", "last_name": None},
            ]})

        result = await ApolloClient(_client(handler), "k").search_people("acme.com")
        assert result.cost_cents == 0
        assert [p.name for p in result.people] == ["Jane Doe"]
        assert result.people[0].metadata["apollo_id"] == "1"

    @pytest.mark.asyncio
    async def test_match_returns_email(self):
        def handler(request):
            assert request.url.path == "/api/v1/people/match"
            assert request.url.params["first_name"] == "Jane"
            return httpx.Response(200, json={"person": {"email": "jane@acme.com", "title": "Founder"}})

        result = await ApolloClient(_client(handler), "k").find_email("Jane", "Doe", "acme.com")
        assert result.email == "jane@acme.com"
        assert result.position == "Founder"
        assert result.cost_cents == 1


class TestGoogleLinkedInSearch:

    def test_parse_profile_title(self):
        assert parse_profile_title("Jane Doe - Editor at Acme | LinkedIn") == ("Jane Doe", "Editor at Acme")
        assert parse_profile_title("Jane Doe | LinkedIn") == ("Jane Doe", None)
        assert parse_profile_title("Acme | LinkedIn") == (None, None)

    @pytest.mark.asyncio
    async def test_search_people(self):
        def handler(request):
            assert "site:linkedin.com/in" in request.url.params["q"]
            return httpx.Response(200, json={"items": [
                {"link": "https://www.linkedin.com/in/janedoe", "title": "Jane Doe - Managing Editor - Acme",
                 "snippet": "Managing Editor at Acme"},
                {"link": "https://acme.com/about", "title": "About Acme"},
            ]})

        result = await GoogleLinkedInSearch(_client(handler), "k", "cx").search_people("acme.com")
        assert result.cost_cents == 5
        assert len(result.people) == 1
        p = result.people[0]
        assert (p.name, p.title, p.linkedin_url) == ("Jane Doe", "Managing Editor", "https://www.linkedin.com/in/janedoe")
        assert p.split_name() == ("Jane", "Doe")


class TestBuildProviders:

    def test_nothing_configured(self):
        providers = build_providers(PipelineSettings(), _client(lambda r: httpx.Response(500)))
        assert providers.domain_search is None
        assert providers.finder is None
        assert providers.verifier is None
        assert providers.people_search is None

    def test_snov_preferred_over_hunter(self):
        settings = PipelineSettings(hunter_api_key="h", snov_client_id="id", snov_client_secret="s")
        providers = build_providers(settings, _client(lambda r: httpx.Response(500)))
        assert providers.domain_search.name == "snov"
        assert providers.verifier.name == "snov"

    def test_hunter_and_google(self):
        settings = PipelineSettings(hunter_api_key="h", google_search_api_key="g", google_search_cx="cx")
        providers = build_providers(settings, _client(lambda r: httpx.Response(500)))
        assert providers.domain_search.name == "hunter"
        assert providers.finder.name == "hunter"
        assert providers.people_search.name == "google_linkedin_search"

    def test_apollo_as_people_search_and_last_finder(self):
        settings = PipelineSettings(apollo_api_key="a", google_search_api_key="g", google_search_cx="cx")
        providers = build_providers(settings, _client(lambda r: httpx.Response(500)))
        assert providers.people_search.name == "apollo"
        assert providers.finder.name == "apollo"
        assert providers.domain_search is None
