"""Tests for the two-tier page fetcher."""

import asyncio

import httpx

from config import Settings
from conftest import page
from fetcher import MIN_HTML_LENGTH, fetch_page

PROXY = "https://api.scraperapi.com/"


def _run(coro):
    return asyncio.run(coro)


class TestFetchPage:
    def test_proxy_rejection_falls_through_to_direct(self, mock_client):
        def handler(request):
            if str(request.url).startswith(PROXY):
                return httpx.Response(401, text="bad key")
            return httpx.Response(200, text=page("<h1>Mug</h1>"))

        settings = Settings(render_proxy_api_key="k")

        async def go():
            async with mock_client(handler) as client:
                return await fetch_page("https://shop.example.com/p/mug", client, settings)

        result = _run(go())
        assert result.ok
        assert result.strategy == "direct"
        assert "render proxy rejected credentials (401)" in result.notes

    def test_every_tier_failing(self, mock_client, settings):
        async def go():
            async with mock_client(lambda request: httpx.Response(403, text="Access Denied")) as client:
                return await fetch_page("https://www.dsw.com/product/x/1", client, settings)

        result = _run(go())
        assert not result.ok
        assert result.html is None
        assert result.strategy == "none"
        assert result.status_code == 403
        assert result.notes == ["render proxy not configured", "direct fetch blocked (403)"]

    def test_proxy_success_requests_rendering(self, mock_client):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text=page("<h1>Drill</h1>"))

        settings = Settings(render_proxy_api_key="k")

        async def go():
            async with mock_client(handler) as client:
                return await fetch_page("https://www.homedepot.com/p/drill/123", client, settings)

        result = _run(go())
        assert result.strategy == "render_proxy"
        assert len(seen) == 1
        params = seen[0].url.params
        assert params["render"] == "true"
        assert params["api_key"] == "k"
        assert params["url"] == "https://www.homedepot.com/p/drill/123"

    def test_plain_site_is_not_rendered(self, mock_client):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text=page("<h1>Mug</h1>"))

        async def go():
            async with mock_client(handler) as client:
                return await fetch_page("https://www.amazon.com/dp/B0TEST", client, Settings(render_proxy_api_key="k"))

        _run(go())
        assert "render" not in seen[0].url.params

    def test_short_body_is_unusable(self, mock_client, settings):
        body = "x" * (MIN_HTML_LENGTH - 1)

        async def go():
            async with mock_client(lambda request: httpx.Response(200, text=body)) as client:
                return await fetch_page("https://shop.example.com/p/mug", client, settings)

        result = _run(go())
        assert not result.ok
        assert result.status_code == 200
        assert f"direct fetch returned 200 ({len(body)} bytes)" in result.notes

    def test_network_error_is_a_note(self, mock_client, settings):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async def go():
            async with mock_client(handler) as client:
                return await fetch_page("https://shop.example.com/p/mug", client, settings)

        result = _run(go())
        assert result.strategy == "none"
        assert result.status_code is None
        assert "direct fetch failed: ConnectError" in result.notes

    def test_direct_request_sends_browser_headers(self, mock_client, settings):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text=page("<h1>Mug</h1>"))

        async def go():
            async with mock_client(handler) as client:
                return await fetch_page("https://shop.example.com/p/mug", client, settings)

        _run(go())
        assert seen[0].headers["Referer"] == "https://shop.example.com"
        assert "Chrome" in seen[0].headers["User-Agent"]
