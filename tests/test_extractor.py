"""Tests for the extraction pipeline: heuristic pass, URL-only guesses, semantic fallback and gift ideas."""

import asyncio

import httpx
import pytest

import ai
import extractor
from conftest import json_ld, page
from errors import InvalidInputError, RateLimitedError, SemanticAuthError
from extractor import (
    BLOCKED_NOTICE,
    GIFT_IDEA_NOTICE,
    HEURISTIC_ONLY_NOTICE,
    IMAGE_NOTICE,
    clean_page_title,
    extract_from_html,
    extract_gift_idea,
    extract_product,
    product_name_from_url,
)
from models import SemanticProduct

DSW_URL = "https://www.dsw.com/product/vince-camuto-womens-cozy-sweater/512345?activeColor=001"
LAMP_URL = "https://shop.example.com/products/desk-lamp"

NO_PRICE_HTML = page(
    "<h1>Desk Lamp</h1>",
    head=json_ld(
        '{"@type": "Product", "name": "Desk Lamp",'
        ' "image": "https://cdn.example.com/images/products/desk-lamp.jpg"}'
    ),
)


def fake_responses(monkeypatch, reply=None, error=None):
    """Replace the semantic collaborator with a canned reply or error."""
    calls = []

    async def responses(model, input, text_format=None):
        calls.append(input)
        if error is not None:
            raise error
        return SemanticProduct.model_validate(reply)

    monkeypatch.setattr(ai, "responses", responses)
    return calls


def run_extract(mock_client, settings, url, html=None, status=200):
    def handler(request):
        return httpx.Response(status, text=html or "Access Denied")

    async def go():
        async with mock_client(handler) as client:
            return await extract_product(url, client=client, settings=settings)

    return asyncio.run(go())


class TestNames:
    def test_clean_amazon_title(self):
        assert clean_page_title("Amazon.com: Ninja Air Fryer : Home & Kitchen") == "Ninja Air Fryer"

    def test_clean_store_suffix(self):
        assert clean_page_title("Cozy Sweater - Vince Camuto | Macy's", "Macy's") == "Cozy Sweater - Vince Camuto"
        assert clean_page_title("Trail Runner - Example.com") == "Trail Runner"

    def test_dash_inside_name_is_kept(self):
        assert clean_page_title("Crew Neck - Navy") == "Crew Neck - Navy"

    def test_name_from_url(self):
        assert product_name_from_url(DSW_URL) == "Vince Camuto Womens Cozy Sweater"
        assert product_name_from_url("https://www.amazon.com/dp/B0TEST1234") is None


class TestExtractFromHtml:
    def test_structured_product_page(self, product_page_html):
        outcome = extract_from_html(product_page_html, "https://shop.example.com/products/trail-runner")
        product = outcome.product
        assert product.product_name == "Acme Trail Running Shoes"
        assert product.price == 89.99
        assert product.image_url == "https://cdn.example.com/images/products/trail-shoe.jpg"
        assert product.category == "Shoes"
        assert product.stock_status == "In Stock"
        assert product.rating == 4.5
        assert product.review_count == 210
        assert product.description == "Lightweight & grippy."
        assert product.attributes["brand"] == "Acme"
        assert product.notice is None
        assert product.product_url_for_image_extraction is None
        assert outcome.trace.semantic_skipped == "offline"

    def test_marketing_images_are_never_chosen(self, marketing_only_html):
        url = "https://www.example.com/p/mystery-widget"
        product = extract_from_html(marketing_only_html, url).product
        assert product.product_name == "Mystery Widget"
        assert product.image_url is None
        assert IMAGE_NOTICE in product.notice
        assert product.product_url_for_image_extraction == url


class TestBlockedSites:
    def test_guess_from_url(self, mock_client, settings, semantic_off):
        outcome = run_extract(mock_client, settings, DSW_URL, status=403)
        product = outcome.product
        assert product.product_name == "Vince Camuto Womens Cozy Sweater"
        assert BLOCKED_NOTICE in product.notice
        assert product.image_url.startswith("https://images.dsw.com/is/image/DSWShoes/512345_001_ss_01")
        assert product.category == "Clothing"
        assert product.attributes["brand"] == "Vince Camuto"
        assert product.fetch_strategy == "none"
        assert product.store_name == "DSW"
        assert product.price is None
        assert outcome.trace.semantic_skipped == "not_configured"


class TestSemanticFallback:
    def test_complete_page_skips_fallback(self, mock_client, settings, semantic_on, monkeypatch, product_page_html):
        calls = fake_responses(monkeypatch, reply={})
        outcome = run_extract(mock_client, settings, "https://shop.example.com/products/trail-runner", product_page_html)
        assert calls == []
        assert outcome.trace.semantic_skipped == "complete"
        assert outcome.product.fetch_strategy == "direct"

    def test_fills_missing_price(self, mock_client, settings, semantic_on, monkeypatch):
        fake_responses(monkeypatch, reply={"productName": "Some Other Lamp", "price": 19.99})
        outcome = run_extract(mock_client, settings, LAMP_URL, NO_PRICE_HTML)
        assert outcome.product.product_name == "Desk Lamp"
        assert outcome.product.price == 19.99
        assert outcome.product.notice is None
        assert "price" in outcome.trace.fields_from_semantic
        assert outcome.trace.semantic_calls == 1

    def test_rate_limit_degrades_to_heuristics(self, mock_client, settings, semantic_on, monkeypatch):
        fake_responses(monkeypatch, error=RateLimitedError())
        outcome = run_extract(mock_client, settings, LAMP_URL, NO_PRICE_HTML)
        assert outcome.product.product_name == "Desk Lamp"
        assert outcome.product.price is None
        assert HEURISTIC_ONLY_NOTICE in outcome.product.notice
        assert outcome.trace.semantic_error == "rate_limited"

    def test_auth_failure_propagates(self, mock_client, settings, semantic_on, monkeypatch):
        fake_responses(monkeypatch, error=SemanticAuthError())
        with pytest.raises(SemanticAuthError):
            run_extract(mock_client, settings, LAMP_URL, NO_PRICE_HTML)

    def test_url_only_guess_never_sets_price(self, mock_client, settings, semantic_on, monkeypatch):
        calls = fake_responses(monkeypatch, reply={"price": 49.0, "description": "A soft knit sweater."})
        product = run_extract(mock_client, settings, DSW_URL, status=403).product
        assert product.price is None
        assert product.description == "A soft knit sweater."
        assert DSW_URL in calls[0][1]["content"]


class TestGiftIdea:
    def test_suggestion(self, semantic_on, monkeypatch):
        fake_responses(
            monkeypatch,
            reply={
                "productName": "Sherpa Throw Blanket",
                "price": "39.99",
                "storeName": "Target",
                "category": "Home & Kitchen",
                "imageUrl": "https://cdn.example.com/images/products/blanket.jpg",
            },
        )
        outcome = asyncio.run(extract_gift_idea("  something cozy for my mom  "))
        product = outcome.product
        assert product.product_name == "Sherpa Throw Blanket"
        assert product.price == 39.99
        assert product.is_from_gift_idea is True
        assert product.notice == GIFT_IDEA_NOTICE
        assert product.fetch_strategy == "gift_idea"
        assert product.image_url is None
        assert product.store_name == "Target"

    def test_requires_semantic_extraction(self, semantic_off):
        with pytest.raises(InvalidInputError):
            asyncio.run(extract_gift_idea("something cozy"))

    def test_empty_idea(self, semantic_on):
        with pytest.raises(InvalidInputError):
            asyncio.run(extract_gift_idea("   "))


class TestValidation:
    @pytest.mark.parametrize("value", ["not a url", "ftp://example.com/file", "https://localhost/x"])
    def test_invalid_url(self, value, settings):
        with pytest.raises(InvalidInputError):
            asyncio.run(extract_product(value, settings=settings))

    def test_is_product_url(self):
        assert extractor.is_product_url("https://www.example.com/p/1")
        assert not extractor.is_product_url("www.example.com/p/1")
