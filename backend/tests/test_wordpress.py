"""Tests for the WordPress REST client."""

import base64
import json
import re

import httpx
import pytest

from redirect_fixer.schemas.wordpress import WPCredentials
from redirect_fixer.services.wordpress import (
    WordPressClient,
    escape_slashes,
    find_and_replace,
    is_same_authority,
    verify_credentials,
)
from tests.conftest import RecordingTransport

OLD = "https://example.com/old-page"
NEW = "https://example.com/new-page"


class FakeWordPress:
    """Minimal in-memory WordPress REST API."""

    def __init__(self, host="example.com", username="admin", password="abcdabcdabcdabcd"):
        self.host = host
        self.expected_auth = "Basic " + base64.b64encode(f"{username}:{password}".encode()).decode()
        self.items = {"pages": [], "posts": []}
        self.templates = None
        self.reject_updates = set()
        self.cache_error = False

    def add(self, post_type, item_id, raw="", elementor=None):
        meta = {"_elementor_data": elementor} if elementor is not None else []
        item = {"id": item_id, "content": {"raw": raw}, "meta": meta}
        if post_type == "elementor_library":
            self.templates = (self.templates or []) + [item]
        else:
            self.items[post_type].append(item)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.headers.get("authorization") != self.expected_auth:
            return httpx.Response(401, text="Sorry, you are not allowed to do that.")

        path = request.url.path
        if path == "/wp-json/wp/v2/users/me":
            return httpx.Response(200, json={"id": 1, "name": "admin"})

        if path == "/wp-json/wp-super-cache/v1/cache":
            if self.cache_error:
                raise httpx.ConnectError("cache plugin down", request=request)
            return httpx.Response(404)

        match = re.fullmatch(r"/wp-json/wp/v2/(\w+)(?:/(\d+))?", path)
        if not match:
            return httpx.Response(404)
        post_type, item_id = match.group(1), match.group(2)

        if post_type == "elementor_library":
            if self.templates is None:
                return httpx.Response(404, json={"code": "rest_no_route"})
            collection = self.templates
        else:
            collection = self.items.get(post_type)
            if collection is None:
                return httpx.Response(404)

        if request.method == "GET":
            per_page = int(request.url.params["per_page"])
            page = int(request.url.params["page"])
            start = (page - 1) * per_page
            return httpx.Response(200, json=collection[start:start + per_page])

        item_id = int(item_id)
        if item_id in self.reject_updates:
            return httpx.Response(403, text="Forbidden")
        body = json.loads(request.content)
        for item in collection:
            if item["id"] == item_id:
                if "content" in body:
                    item["content"]["raw"] = body["content"]
                if "meta" in body:
                    item["meta"] = body["meta"]
        return httpx.Response(200, json={"id": item_id})


@pytest.fixture
def site():
    return FakeWordPress()


@pytest.fixture
def credentials():
    return WPCredentials(
        site_url="https://example.com/ ",
        username=" admin ",
        app_password="abcd abcd abcd abcd",
    )


def make_client(credentials, handler, page_size=100):
    transport = RecordingTransport(handler)
    return WordPressClient(credentials, timeout=5, page_size=page_size, transport=transport), transport


# =========================================================================
# Credentials
# =========================================================================

@pytest.mark.asyncio
async def test_verify_valid_credentials(site, credentials):
    client, transport = make_client(credentials, site.handler)
    async with client:
        result = await client.verify_credentials()

    assert result.valid is True
    assert result.status == 200
    assert str(transport.requests[0].url) == "https://example.com/wp-json/wp/v2/users/me"


@pytest.mark.asyncio
async def test_verify_rejected_credentials(site):
    credentials = WPCredentials(site_url="https://example.com", username="admin", app_password="wrong")
    client, _ = make_client(credentials, site.handler)
    async with client:
        result = await client.verify_credentials()

    assert result.valid is False
    assert result.status == 401
    assert "not allowed" in result.message


@pytest.mark.asyncio
async def test_verify_follows_redirect_to_www_host(site, credentials):
    def handler(request):
        if request.url.host == "example.com":
            return httpx.Response(301, headers={"Location": f"https://www.example.com{request.url.path}"})
        return site.handler(request)

    client, transport = make_client(credentials, handler)
    async with client:
        result = await client.verify_credentials()

    assert result.valid is True
    assert [r.url.host for r in transport.requests] == ["example.com", "www.example.com"]
    assert transport.requests[1].headers["authorization"] == site.expected_auth


@pytest.mark.asyncio
async def test_verify_refuses_redirect_to_other_host(site, credentials):
    def handler(request):
        if request.url.host == "example.com":
            return httpx.Response(301, headers={"Location": "https://attacker.test/wp-json/wp/v2/users/me"})
        return site.handler(request)

    client, transport = make_client(credentials, handler)
    async with client:
        result = await client.verify_credentials()

    assert result.valid is False
    assert "attacker.test" in result.message
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_verify_network_error():
    def handler(request):
        raise httpx.ConnectError("Name or service not known", request=request)

    credentials = WPCredentials(site_url="https://nowhere.test", username="a", app_password="b")
    result = await verify_credentials(credentials, transport=httpx.MockTransport(handler))

    assert result.valid is False
    assert "Name or service not known" in result.message


@pytest.mark.parametrize("original,target,allowed", [
    ("https://example.com/a", "https://www.example.com/a", True),
    ("https://www.example.com/a", "https://example.com/a", True),
    ("http://example.com/a", "https://example.com/a", True),
    ("https://example.com/a", "http://example.com/a", False),
    ("https://example.com/a", "https://other.com/a", False),
    ("https://example.com/a", "https://example.com:8443/a", False),
    ("https://example.com/a", "ftp://example.com/a", False),
    ("http://example.com:8080/a", "https://example.com:9443/a", False),
    ("http://example.com:8080/a", "https://example.com/a", False),
    ("http://example.com:80/a", "https://example.com/a", True),
    ("https://example.com:443/a", "https://example.com/a", True),
])
def test_is_same_authority(original, target, allowed):
    assert is_same_authority(original, target) is allowed


# =========================================================================
# Find and replace
# =========================================================================

@pytest.mark.asyncio
async def test_replaces_raw_content(site, credentials):
    site.add("pages", 10, raw=f'<a href="{OLD}">Old</a>')
    site.add("pages", 11, raw="nothing to see")

    result = await find_and_replace(credentials, OLD, NEW, transport=httpx.MockTransport(site.handler))

    assert result.success is True
    assert result.affected_pages == 1
    assert result.failed_pages == 0
    assert site.items["pages"][0]["content"]["raw"] == f'<a href="{NEW}">Old</a>'
    assert site.items["pages"][1]["content"]["raw"] == "nothing to see"


@pytest.mark.asyncio
async def test_replaces_escaped_elementor_data(site, credentials):
    elementor = json.dumps([{"settings": {"link": {"url": OLD}}}])
    assert escape_slashes(OLD) not in elementor
    elementor = elementor.replace("/", "\\/")
    site.add("posts", 5, elementor=elementor)

    client, transport = make_client(credentials, site.handler)
    async with client:
        result = await client.find_and_replace(OLD, NEW)

    assert result.affected_pages == 1
    updates = [b for b in transport.json_bodies("POST") if "meta" in b]
    assert updates == [{"meta": {"_elementor_data": elementor.replace(escape_slashes(OLD), escape_slashes(NEW))}}]


@pytest.mark.asyncio
async def test_only_changed_fields_are_sent(site, credentials):
    site.add("pages", 1, raw=f"see {OLD} and {OLD}")

    client, transport = make_client(credentials, site.handler)
    async with client:
        await client.find_and_replace(OLD, NEW)

    update = transport.json_bodies("POST")[0]
    assert update == {"content": f"see {NEW} and {NEW}"}


@pytest.mark.asyncio
async def test_templates_and_pages_are_summed(site, credentials):
    escaped = escape_slashes(OLD)
    site.add("pages", 1, raw=OLD)
    site.add("posts", 2, raw=OLD)
    site.add("elementor_library", 3, elementor=f'[{{"url":"{escaped}"}}]')

    result = await find_and_replace(credentials, OLD, NEW, transport=httpx.MockTransport(site.handler))

    assert result.affected_pages == 3


@pytest.mark.asyncio
async def test_paginates_until_short_page(site, credentials):
    for item_id in range(1, 6):
        site.add("pages", item_id, raw=OLD)

    client, transport = make_client(credentials, site.handler, page_size=2)
    async with client:
        result = await client.find_and_replace(OLD, NEW)

    assert result.affected_pages == 5
    page_requests = [r for r in transport.requests if r.method == "GET" and r.url.path.endswith("/pages")]
    assert [r.url.params["page"] for r in page_requests] == ["1", "2", "3"]
    assert page_requests[0].url.params["context"] == "edit"


@pytest.mark.asyncio
async def test_rejected_updates_are_counted_separately(site, credentials):
    site.add("pages", 1, raw=OLD)
    site.add("pages", 2, raw=OLD)
    site.reject_updates.add(2)

    result = await find_and_replace(credentials, OLD, NEW, transport=httpx.MockTransport(site.handler))

    assert result.success is True
    assert result.affected_pages == 1
    assert result.failed_pages == 1


@pytest.mark.asyncio
async def test_cache_clear_failure_is_ignored(site, credentials):
    site.add("pages", 1, raw=OLD)
    site.cache_error = True

    client, transport = make_client(credentials, site.handler)
    async with client:
        result = await client.find_and_replace(OLD, NEW)

    assert result.success is True
    assert result.affected_pages == 1
    assert "/wp-json/wp-super-cache/v1/cache" in transport.paths("POST")


@pytest.mark.asyncio
async def test_network_failure_reports_error(credentials):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    result = await find_and_replace(credentials, OLD, NEW, transport=httpx.MockTransport(handler))

    assert result.success is False
    assert result.affected_pages == 0
    assert "timed out" in result.message
