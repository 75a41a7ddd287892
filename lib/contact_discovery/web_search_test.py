"""Tests for the keyless web search engines and fallback chain."""

import httpx
import pytest

from lib.contact_discovery.web_search import (
    BingEngine,
    DuckDuckGoEngine,
    EngineBlocked,
    FallbackSearch,
    SearchHit,
    parse_bing,
    parse_duckduckgo,
)

pytestmark = pytest.mark.no_db

DDG_HTML = """
<div class="result">
  <a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Facme.com%2Fabout&rut=x">About Acme</a>
  <a class="result__snippet">Contact jane@acme.com for press.</a>
</div>
<div class="result"><span>no link</span></div>
"""

BING_HTML = """
<ol id="b_results">
  <li class="b_algo"><h2><a href="https://acme.com/team">Team</a></h2>
    <div class="b_caption"><p>Our editors: ed@acme.com</p></div></li>
</ol>
"""


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class StaticEngine:
    def __init__(self, name, hits=None, exc=None):
        self.name = name
        self.hits = hits or []
        self.exc = exc
        self.calls = 0

    async def search(self, query):
        self.calls += 1
        if self.exc:
            raise self.exc
        return self.hits


class TestParsers:

    def test_duckduckgo_unwraps_redirect(self):
        hits = parse_duckduckgo(DDG_HTML)
        assert len(hits) == 1
        assert hits[0].url == "https://acme.com/about"
        assert hits[0].title == "About Acme"
        assert "jane@acme.com" in hits[0].snippet

    def test_bing(self):
        hits = parse_bing(BING_HTML)
        assert hits == [SearchHit(url="https://acme.com/team", title="Team", snippet="Our editors: ed@acme.com")]


class TestEngines:

    @pytest.mark.asyncio
    async def test_duckduckgo_posts_query(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = request.content.decode()
            return httpx.Response(200, html=DDG_HTML)

        hits = await DuckDuckGoEngine(_client(handler)).search('"@acme.com"')
        assert seen["method"] == "POST"
        assert "q=%22%40acme.com%22" in seen["body"]
        assert hits[0].url == "https://acme.com/about"

    @pytest.mark.asyncio
    async def test_duckduckgo_captcha_page(self):
        def handler(request):
            return httpx.Response(200, html='<div class="anomaly-modal">Please complete the captcha</div>')

        with pytest.raises(EngineBlocked):
            await DuckDuckGoEngine(_client(handler)).search("q")

    @pytest.mark.asyncio
    async def test_bing_rate_limited(self):
        def handler(request):
            return httpx.Response(429)

        with pytest.raises(EngineBlocked):
            await BingEngine(_client(handler)).search("q")

    @pytest.mark.asyncio
    async def test_bing_no_results_is_empty(self):
        def handler(request):
            return httpx.Response(200, html="<ol id='b_results'></ol>")

        assert await BingEngine(_client(handler)).search("q") == []


class TestFallbackSearch:

    @pytest.mark.asyncio
    async def test_blocked_primary_uses_secondary(self):
        primary = StaticEngine("ddg", exc=EngineBlocked("captcha"))
        secondary = StaticEngine("bing", hits=[SearchHit(url="https://acme.com")])
        hits = await FallbackSearch([primary, secondary], delay=0).search("q")
        assert [h.url for h in hits] == ["https://acme.com"]
        assert primary.calls == 1 and secondary.calls == 1

    @pytest.mark.asyncio
    async def test_network_error_uses_secondary(self):
        primary = StaticEngine("ddg", exc=httpx.ConnectError("down"))
        secondary = StaticEngine("bing", hits=[SearchHit(url="https://acme.com")])
        assert len(await FallbackSearch([primary, secondary], delay=0).search("q")) == 1

    @pytest.mark.asyncio
    async def test_empty_primary_does_not_fall_back(self):
        primary = StaticEngine("ddg", hits=[])
        secondary = StaticEngine("bing", hits=[SearchHit(url="https://acme.com")])
        assert await FallbackSearch([primary, secondary], delay=0).search("q") == []
        assert secondary.calls == 0

    @pytest.mark.asyncio
    async def test_all_engines_fail(self):
        engines = [StaticEngine("a", exc=EngineBlocked("x")), StaticEngine("b", exc=EngineBlocked("y"))]
        assert await FallbackSearch(engines, delay=0).search("q") == []

    @pytest.mark.asyncio
    async def test_delay_between_sequential_requests(self):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        search = FallbackSearch([StaticEngine("a")], delay=1.5, sleep=fake_sleep)
        await search.search("one")
        await search.search("two")
        await search.search("three")
        assert sleeps == [1.5, 1.5]
