"""Tests for RDAP client."""

import httpx
import pytest

from lib.contact_discovery.rdap_client import contacts_from_rdap, is_privacy_protected, rdap_contacts

pytestmark = pytest.mark.no_db


def _entity(roles, name, email, org=None):
    props = [["version", {}, "text", "4.0"], ["fn", {}, "text", name]]
    if org:
        props.append(["org", {}, "text", org])
    if email:
        props.append(["email", {}, "text", email])
    return {"roles": roles, "vcardArray": ["vcard", props]}


RDAP_RESPONSE = {
    "entities": [
        {
            **_entity(["registrar"], "GoDaddy.com, LLC", "abuse@godaddy.com"),
            "entities": [_entity(["abuse"], "Abuse Desk", "abuse@godaddy.com")],
        },
        _entity(["registrant"], "Jane Doe", "Jane@Acme.com", org="Acme Media"),
        _entity(["technical"], "REDACTED FOR PRIVACY", "redacted@privacy.example"),
        _entity(["administrative"], "Jane Doe", "jane@acme.com"),
    ],
}


class TestContactsFromRdap:

    def test_registrant_email_extracted_once(self):
        contacts = contacts_from_rdap(RDAP_RESPONSE, "acme.com")
        assert [c.email for c in contacts] == ["jane@acme.com"]
        assert contacts[0].name == "Jane Doe"
        assert contacts[0].source_metadata["method"] == "rdap"
        assert contacts[0].source_metadata["org"] == "Acme Media"

    def test_empty_response(self):
        assert contacts_from_rdap({}, "acme.com") == []

    def test_privacy_indicators(self):
        assert is_privacy_protected("Redacted for Privacy")
        assert is_privacy_protected("Domains By Proxy, LLC")
        assert is_privacy_protected(None)
        assert not is_privacy_protected("Jane Doe")


class TestRdapContacts:

    @pytest.mark.asyncio
    async def test_lookup(self):
        def handler(request):
            assert str(request.url) == "https://rdap.org/domain/acme.com"
            return httpx.Response(200, json=RDAP_RESPONSE)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            contacts = await rdap_contacts(client, "https://www.acme.com/blog")
        assert [c.email for c in contacts] == ["jane@acme.com"]

    @pytest.mark.asyncio
    async def test_not_found(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404))) as client:
            assert await rdap_contacts(client, "acme.com") == []

    @pytest.mark.asyncio
    async def test_bad_json(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, text="nope"))) as client:
            assert await rdap_contacts(client, "acme.com") == []


@pytest.mark.online
@pytest.mark.asyncio
async def test_rdap_google_com():
    """google.com is privacy-protected; lookup should succeed without contacts or errors."""
    async with httpx.AsyncClient(timeout=15.0) as client:
        contacts = await rdap_contacts(client, "google.com")
    assert isinstance(contacts, list)
