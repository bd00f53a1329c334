"""
Page fetching: rendering proxy first (when configured), then a direct request.

Each tier makes exactly one attempt. Timeouts, network errors and non-2xx
responses are ordinary outcomes that move on to the next tier; the caller
receives ``FetchResult(html=None, strategy="none")`` when every tier failed.
"""

from dataclasses import dataclass, field
from urllib.parse import urlparse

import httpx

from config import Settings
from sites import needs_render

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Cache-Control": "max-age=0",
}

# Bodies shorter than this are block pages or empty shells
MIN_HTML_LENGTH = 500


@dataclass
class FetchResult:
    html: str | None = None
    strategy: str = "none"  # render_proxy | direct | none
    status_code: int | None = None
    notes: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.html)


def _usable(response: httpx.Response) -> bool:
    return response.is_success and len(response.text) >= MIN_HTML_LENGTH


async def _fetch_render_proxy(url: str, client: httpx.AsyncClient, settings: Settings, notes: list[str]) -> str | None:
    params = {"api_key": settings.render_proxy_api_key, "url": url}
    if needs_render(url):
        params["render"] = "true"
    try:
        response = await client.get(settings.render_proxy_url, params=params, timeout=settings.render_proxy_timeout)
    except httpx.HTTPError as e:
        notes.append(f"render proxy failed: {type(e).__name__}")
        return None
    if response.status_code in (401, 403):
        notes.append(f"render proxy rejected credentials ({response.status_code})")
        return None
    if not _usable(response):
        notes.append(f"render proxy returned {response.status_code} ({len(response.text)} bytes)")
        return None
    return response.text


async def _fetch_direct(url: str, client: httpx.AsyncClient, settings: Settings, notes: list[str]) -> tuple[str | None, int | None]:
    parsed = urlparse(url)
    headers = {**BROWSER_HEADERS, "Referer": f"{parsed.scheme}://{parsed.netloc}"}
    try:
        response = await client.get(url, headers=headers, timeout=settings.direct_fetch_timeout, follow_redirects=True)
    except httpx.HTTPError as e:
        notes.append(f"direct fetch failed: {type(e).__name__}")
        return None, None
    if response.status_code == 403:
        notes.append("direct fetch blocked (403)")
        return None, 403
    if not _usable(response):
        notes.append(f"direct fetch returned {response.status_code} ({len(response.text)} bytes)")
        return None, response.status_code
    return response.text, response.status_code


async def fetch_page(url: str, client: httpx.AsyncClient, settings: Settings) -> FetchResult:
    """Try each fetch tier once, in order."""
    notes: list[str] = []

    if settings.render_proxy_enabled:
        html = await _fetch_render_proxy(url, client, settings, notes)
        if html:
            return FetchResult(html=html, strategy="render_proxy", status_code=200, notes=notes)
    else:
        notes.append("render proxy not configured")

    html, status = await _fetch_direct(url, client, settings, notes)
    if html:
        return FetchResult(html=html, strategy="direct", status_code=status, notes=notes)

    return FetchResult(status_code=status, notes=notes)
