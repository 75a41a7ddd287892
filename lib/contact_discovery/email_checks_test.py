"""Tests for free email checks."""

import pytest
import dns.exception
import dns.resolver
from unittest.mock import AsyncMock, MagicMock, patch

from lib.contact_discovery.email_checks import (
    extract_domain,
    has_mx_records,
    is_acceptable_candidate,
    is_disposable_domain,
    is_free_email,
    is_role_email,
    is_valid_email_syntax,
)

pytestmark = pytest.mark.no_db


class TestSyntax:

    def test_valid(self):
        assert is_valid_email_syntax("jane.doe@acme.com")
        assert is_valid_email_syntax("j+news@mail.acme.co.uk")

    def test_invalid(self):
        assert not is_valid_email_syntax("")
        assert not is_valid_email_syntax("no-at-sign.com")
        assert not is_valid_email_syntax("jane@acme")
        assert not is_valid_email_syntax("a" * 65 + "@acme.com")
        assert not is_valid_email_syntax("a@" + "b" * 250 + ".com")


class TestClassification:

    def test_role_exact_and_prefix(self):
        assert is_role_email("info@acme.com")
        assert is_role_email("contactus@acme.com")
        assert is_role_email("support-team@acme.com")
        assert not is_role_email("jane@acme.com")

    def test_free_email(self):
        assert is_free_email("someone@gmail.com")
        assert not is_free_email("someone@acme.com")

    def test_disposable(self):
        assert is_disposable_domain("mailinator.com")
        assert not is_disposable_domain("acme.com")

    def test_acceptable_candidate(self):
        assert is_acceptable_candidate("jane@acme.com")
        assert not is_acceptable_candidate("noreply@acme.com")
        assert not is_acceptable_candidate("do-not-reply@acme.com")
        assert not is_acceptable_candidate("you@example.com")
        assert not is_acceptable_candidate("someone@mailinator.com")
        assert not is_acceptable_candidate("icon@2x.png")


class TestExtractDomain:

    def test_strips_www_and_scheme(self):
        assert extract_domain("https://www.Acme.com/blog/post") == "acme.com"

    def test_bare_domain(self):
        assert extract_domain("acme.com") == "acme.com"

    def test_empty(self):
        assert extract_domain("") is None


class TestMxRecords:

    @pytest.mark.asyncio
    async def test_mx_present(self):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(return_value=[MagicMock()])
        with patch("lib.contact_discovery.email_checks.dns.asyncresolver.Resolver", return_value=resolver):
            assert await has_mx_records("acme.com") is True

    @pytest.mark.asyncio
    async def test_nxdomain(self):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=dns.resolver.NXDOMAIN())
        with patch("lib.contact_discovery.email_checks.dns.asyncresolver.Resolver", return_value=resolver):
            assert await has_mx_records("nope.invalid") is False

    @pytest.mark.asyncio
    async def test_no_answer(self):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=dns.resolver.NoAnswer())
        with patch("lib.contact_discovery.email_checks.dns.asyncresolver.Resolver", return_value=resolver):
            assert await has_mx_records("acme.com") is False

    @pytest.mark.asyncio
    async def test_timeout_is_unknown(self):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=dns.exception.Timeout())
        with patch("lib.contact_discovery.email_checks.dns.asyncresolver.Resolver", return_value=resolver):
            assert await has_mx_records("slow.example") is None

    @pytest.mark.asyncio
    async def test_servfail_is_unknown(self):
        resolver = MagicMock()
        resolver.resolve = AsyncMock(side_effect=dns.resolver.NoNameservers())
        with patch("lib.contact_discovery.email_checks.dns.asyncresolver.Resolver", return_value=resolver):
            assert await has_mx_records("broken.example") is None

    @pytest.mark.asyncio
    async def test_empty_domain(self):
        assert await has_mx_records("") is False


@pytest.mark.online
@pytest.mark.asyncio
async def test_mx_live_gmail():
    assert await has_mx_records("gmail.com") is True
