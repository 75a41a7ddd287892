"""Tests for EmailValidator."""

from unittest.mock import AsyncMock

import pytest

from infra.cache_store import MemoryCacheStore
from lib.providers.base import ProviderError, VerificationResponse
from services.contacts.cache import ContactCache
from services.contacts.email_validation import EmailValidator

pytestmark = pytest.mark.no_db


class FakeVerifier:
    name = "fake"
    verify_cost_cents = 1

    def __init__(self, status="valid", error=False):
        self.status = status
        self.error = error
        self.calls: list[str] = []

    async def verify_email(self, email):
        self.calls.append(email)
        if self.error:
            raise ProviderError("fake", "HTTP 500")
        return VerificationResponse(status=self.status, raw_status=self.status, smtp_check=True, cost_cents=1)


def _validator(mx=True, verifier=None):
    cache = ContactCache(MemoryCacheStore())
    mx_check = AsyncMock(return_value=mx)
    return EmailValidator(cache, verifier=verifier, mx_check=mx_check), mx_check


class TestValidateEmail:

    @pytest.mark.asyncio
    async def test_no_mx_is_invalid_and_free(self):
        verifier = FakeVerifier()
        validator, mx_check = _validator(mx=False, verifier=verifier)
        result = await validator.validate_email("jane@nomail.example", allow_paid_verification=True)
        assert (result.status, result.score, result.api_cost_cents) == ("invalid", 0, 0)
        assert result.mx_records_exist is False
        mx_check.assert_awaited_once_with("nomail.example")
        assert verifier.calls == []

    @pytest.mark.asyncio
    async def test_mx_lookup_failure_is_unknown_and_not_cached(self):
        validator, mx_check = _validator(mx=None)
        result = await validator.validate_email("jane@slowdns.example")
        assert (result.status, result.score, result.method) == ("unknown", 30, "dns_only")
        assert result.reason == "MX lookup failed"
        assert await validator.cache.get_cached_email_verification("jane@slowdns.example") is None

        await validator.validate_email("jane@slowdns.example")
        assert mx_check.await_count == 2

    @pytest.mark.asyncio
    async def test_mx_lookup_failure_still_tries_paid(self):
        verifier = FakeVerifier()
        validator, _ = _validator(mx=None, verifier=verifier)
        result = await validator.validate_email("jane@slowdns.example", allow_paid_verification=True)
        assert (result.status, result.method) == ("valid", "paid_api")
        assert verifier.calls == ["jane@slowdns.example"]

    @pytest.mark.asyncio
    async def test_bad_syntax_skips_dns(self):
        validator, mx_check = _validator()
        result = await validator.validate_email("not-an-email")
        assert (result.status, result.score, result.method) == ("invalid", 0, "pattern_only")
        mx_check.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dns_only_scoring(self):
        validator, _ = _validator()
        person = await validator.validate_email("jane@acme.com")
        assert (person.status, person.score, person.method) == ("valid", 50, "dns_only")

        role = await validator.validate_email("info@acme.com")
        assert (role.status, role.score) == ("risky", 30)

        free_role = await validator.validate_email("contact@gmail.com")
        assert (free_role.status, free_role.score) == ("risky", 20)

    @pytest.mark.asyncio
    async def test_paid_statuses_map_to_fixed_scores(self):
        for raw, score in [("valid", 95), ("invalid", 0), ("risky", 50), ("unknown", 30)]:
            verifier = FakeVerifier(status=raw)
            validator, _ = _validator(verifier=verifier)
            result = await validator.validate_email("jane@acme.com", allow_paid_verification=True)
            assert (result.status, result.score, result.method) == (raw, score, "paid_api")
            assert result.api_cost_cents == 1

    @pytest.mark.asyncio
    async def test_paid_not_used_unless_allowed(self):
        verifier = FakeVerifier()
        validator, _ = _validator(verifier=verifier)
        result = await validator.validate_email("jane@acme.com", allow_paid_verification=False)
        assert result.method == "dns_only"
        assert verifier.calls == []

    @pytest.mark.asyncio
    async def test_provider_error_falls_through_to_dns(self):
        validator, _ = _validator(verifier=FakeVerifier(error=True))
        result = await validator.validate_email("jane@acme.com", allow_paid_verification=True)
        assert (result.status, result.score, result.method, result.api_cost_cents) == ("valid", 50, "dns_only", 0)

    @pytest.mark.asyncio
    async def test_second_call_hits_cache(self):
        verifier = FakeVerifier()
        validator, mx_check = _validator(verifier=verifier)
        first = await validator.validate_email("Jane@Acme.com", allow_paid_verification=True)
        second = await validator.validate_email("jane@acme.com", allow_paid_verification=True)
        assert first.api_cost_cents == 1
        assert (second.status, second.score, second.method, second.api_cost_cents) == ("valid", 95, "cache", 0)
        assert second.smtp_check is True
        assert len(verifier.calls) == 1
        assert mx_check.await_count == 1


class TestBatch:

    @pytest.mark.asyncio
    async def test_errors_become_unknown(self):
        cache = ContactCache(MemoryCacheStore())

        async def flaky_mx(domain):
            if domain == "boom.com":
                raise RuntimeError("resolver crashed")
            return True

        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        validator = EmailValidator(cache, mx_check=flaky_mx, sleep=fake_sleep)
        results = await validator.validate_emails_batch(["jane@acme.com", "bob@boom.com"])
        assert [r.status for r in results] == ["valid", "unknown"]
        assert results[1].reason == "Validation error"
        assert sleeps == [0.1]
