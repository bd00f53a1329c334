"""
Per-site adapters.

The pipeline is site-agnostic: the adapter for a URL is chosen once by hostname
and carries the site's price tiers, image rules, brand default and any image
derivable from the URL itself.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

from images import ImageChoice, select_image
from prices import PriceResolution, resolve_prices


def hostname(url: str | None) -> str:
    if not url:
        return ""
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return host.lower().removeprefix("www.")


# =====================================================================
# URL-derived images
# =====================================================================

_DSW_PRODUCT_RE = re.compile(r"/product/[^/]+/(\d+)")
DSW_IMAGE_TEMPLATE = (
    "https://images.dsw.com/is/image/DSWShoes/{product_id}_{color}_ss_01"
    "?impolicy=qlt-medium-high&imwidth=640&imdensity=2"
)


def dsw_image_from_url(url: str) -> str | None:
    """DSW image URLs follow the product id and the activeColor query parameter."""
    parsed = urlparse(url)
    match = _DSW_PRODUCT_RE.search(parsed.path)
    color = parse_qs(parsed.query).get("activeColor", [None])[0]
    if not match or not color:
        return None
    return DSW_IMAGE_TEMPLATE.format(product_id=match.group(1), color=color)


# =====================================================================
# Adapters
# =====================================================================


@dataclass(frozen=True)
class SiteAdapter:
    name: str
    domains: tuple[str, ...] = ()
    brand_default: str | None = None
    url_image: Callable[[str], str | None] | None = None

    def matches(self, host: str) -> bool:
        return any(d in host for d in self.domains)

    def resolve_price(self, html: str, json_ld_price: float | None = None) -> PriceResolution:
        return resolve_prices(html, self.name, json_ld_price)

    def resolve_image(self, candidates: list[str], html: str) -> ImageChoice:
        return select_image(candidates, html, self.name)

    def resolve_brand_default(self, product_name: str | None = None) -> str | None:
        return self.brand_default

    def image_from_url(self, url: str) -> str | None:
        return self.url_image(url) if self.url_image else None


GENERIC = SiteAdapter(name="generic")

ADAPTERS = (
    SiteAdapter(name="amazon", domains=("amazon.com", "amazon.")),
    SiteAdapter(name="macys", domains=("macys.com",)),
    SiteAdapter(name="tommy", domains=("tommy.com",), brand_default="Tommy Hilfiger"),
    SiteAdapter(name="dsw", domains=("dsw.com",), url_image=dsw_image_from_url),
)


def adapter_for(url: str | None) -> SiteAdapter:
    host = hostname(url)
    for adapter in ADAPTERS:
        if adapter.matches(host):
            return adapter
    return GENERIC


# =====================================================================
# Store names and render hints
# =====================================================================

STORE_NAMES = {
    "amazon": "Amazon",
    "macys": "Macy's",
    "tommy": "Tommy Hilfiger",
    "dsw": "DSW",
    "target": "Target",
    "walmart": "Walmart",
    "bestbuy": "Best Buy",
    "nordstrom": "Nordstrom",
    "homedepot": "Home Depot",
}

# Single-page apps that only render product data with JavaScript
RENDER_HOSTS = ("homedepot.com", "lowes.com", "bestbuy.com", "tommy.com")


def store_name(url: str | None) -> str:
    host = hostname(url)
    if not host:
        return ""
    label = host.split(".")[0]
    for key, name in STORE_NAMES.items():
        if key in host:
            return name
    return label[:1].upper() + label[1:]


def needs_render(url: str | None) -> bool:
    host = hostname(url)
    return any(host == h or host.endswith("." + h) for h in RENDER_HOSTS)
