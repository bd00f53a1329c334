"""Shared fixtures for the extractor test suite."""

import sys
from pathlib import Path

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import ai  # noqa: E402
from config import Settings  # noqa: E402

# Pages shorter than the fetcher's minimum are treated as block pages
PADDING = "<p>" + "Lorem ipsum dolor sit amet, consectetur adipiscing elit. " * 12 + "</p>"


def page(body: str, head: str = "") -> str:
    """Wrap fragments in a minimal HTML document."""
    return f"<html><head>{head}</head><body>{body}{PADDING}</body></html>"


def json_ld(payload: str) -> str:
    return f'<script type="application/ld+json">{payload}</script>'


@pytest.fixture
def settings():
    """Settings with every optional collaborator switched off."""
    return Settings()


@pytest.fixture
def semantic_off(monkeypatch):
    monkeypatch.setattr(ai, "is_configured", lambda: False)


@pytest.fixture
def semantic_on(monkeypatch):
    monkeypatch.setattr(ai, "is_configured", lambda: True)


@pytest.fixture
def mock_client():
    """Build an AsyncClient whose requests are answered by ``handler``."""
    clients = []

    def factory(handler):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    return factory


@pytest.fixture
def amazon_discount_html():
    """Amazon buy box with a current price, a list price and a "66% off" label."""
    return page(
        '<div id="corePriceDisplay_desktop_feature_div">'
        '<span class="a-price aok-align-center"><span class="a-price-symbol">$</span>'
        '<span class="a-price-whole">29<span class="a-price-decimal">.</span></span>'
        '<span class="a-price-fraction">99</span></span>'
        '<span class="a-size-large savingsPercentage">66% off</span>'
        "<span>List Price:</span>"
        '<span class="a-price a-text-price"><span class="a-price-whole">89</span>'
        '<span class="a-price-fraction">50</span></span>'
        "</div>"
    )


@pytest.fixture
def amazon_single_price_html():
    return page(
        '<div id="corePrice_feature_div"><span class="a-price">'
        '<span class="a-price-whole">179<span class="a-price-decimal">.</span></span>'
        '<span class="a-price-fraction">99</span></span></div>'
    )


@pytest.fixture
def product_page_html():
    """Generic product page described entirely by JSON-LD."""
    return page(
        "<h1>Acme Trail Running Shoes</h1>",
        head=json_ld(
            '{"@context": "https://schema.org", "@type": "Product",'
            ' "name": "Acme Trail Running Shoes",'
            ' "description": "Lightweight &amp; grippy.",'
            ' "image": "https://cdn.example.com/images/products/trail-shoe.jpg",'
            ' "brand": {"@type": "Brand", "name": "Acme"},'
            ' "offers": {"@type": "Offer", "price": "89.99", "availability": "https://schema.org/InStock"},'
            ' "aggregateRating": {"@type": "AggregateRating", "ratingValue": "4.5", "reviewCount": "210"}}'
        ),
    )


@pytest.fixture
def marketing_only_html():
    """A page whose only images are banners and promos."""
    return page(
        '<img src="https://cdn.example.com/promo/holiday-sale.jpg">'
        '<img src="https://www.example.com/assets/banner/hero-wide.jpg">',
        head=(
            '<meta property="og:image" content="https://www.example.com/marketing/spring-campaign.jpg">'
            + json_ld('{"@type": "Product", "name": "Mystery Widget", "offers": {"price": "12.00"}}')
        ),
    )
