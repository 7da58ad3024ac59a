from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from urllib.parse import parse_qs

import httpx
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from stocksync.infrastructure.http import AuthError, AutoTraderClient, ProviderError

BASE_URL = "https://api-test.example"


def _client(handler) -> AutoTraderClient:
    return AutoTraderClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))


def test_authenticate_posts_form_credentials() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "tok-1", "expires_in": 900})

    async def run() -> str:
        async with _client(handler) as client:
            return await client.authenticate("my-key", "my-secret")

    assert asyncio.run(run()) == "tok-1"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/authenticate"
    assert parse_qs(request.content.decode()) == {"key": ["my-key"], "secret": ["my-secret"]}


def test_authenticate_rejected_raises_auth_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"message": "bad credentials"})

    async def run() -> None:
        async with _client(handler) as client:
            await client.authenticate("my-key", "wrong")

    with pytest.raises(AuthError) as excinfo:
        asyncio.run(run())
    assert excinfo.value.status_code == 401


def test_authenticate_without_token_raises_auth_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"expires_in": 900})

    async def run() -> None:
        async with _client(handler) as client:
            await client.authenticate("my-key", "my-secret")

    with pytest.raises(AuthError, match="access token"):
        asyncio.run(run())


def test_authenticate_requires_credentials() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, json={"access_token": "tok"})

    async def run() -> None:
        async with _client(handler) as client:
            await client.authenticate("", "")

    with pytest.raises(AuthError):
        asyncio.run(run())
    assert calls == []


def test_fetch_page_sends_paging_params_and_parses_totals() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "results": [
                    {"vehicle": {"registration": "AB12CDE"}},
                    {"vehicle": {"registration": "CD34EFG"}},
                    "not-a-listing",
                ],
                "totalResults": 250,
                "page": {"number": 2, "size": 100, "totalPages": 3},
            },
        )

    async def run():
        async with _client(handler) as client:
            return await client.fetch_page("tok-1", "10012345", 2, 100)

    page = asyncio.run(run())

    assert len(page.items) == 2
    assert page.total_results == 250
    assert page.total_pages == 3
    request = seen[0]
    assert request.url.path == "/stock"
    assert request.url.params["advertiserId"] == "10012345"
    assert request.url.params["page"] == "2"
    assert request.url.params["pageSize"] == "100"
    assert request.headers["Authorization"] == "Bearer tok-1"


def test_fetch_page_without_page_block_leaves_totals_empty() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": []})

    async def run():
        async with _client(handler) as client:
            return await client.fetch_page("tok-1", "10012345", 1)

    page = asyncio.run(run())
    assert page.items == []
    assert page.total_pages is None
    assert page.total_results is None


def test_fetch_page_http_error_raises_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="maintenance")

    async def run():
        async with _client(handler) as client:
            return await client.fetch_page("tok-1", "10012345", 1)

    with pytest.raises(ProviderError) as excinfo:
        asyncio.run(run())
    assert excinfo.value.status_code == 503
    assert "(HTTP 503)" in str(excinfo.value)


def test_fetch_page_without_results_raises_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"errors": ["nope"]})

    async def run():
        async with _client(handler) as client:
            return await client.fetch_page("tok-1", "10012345", 1)

    with pytest.raises(ProviderError, match="no results"):
        asyncio.run(run())
